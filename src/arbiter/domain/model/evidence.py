"""Read-only inputs produced by extractors before resolution runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from arbiter.domain.model.base import check_confidence, utc_now

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from arbiter.domain.model.enums import AssumptionBasis, EvidenceType


@dataclass(frozen=True, slots=True, kw_only=True)
class EvidenceSource:
    """Where a unit of evidence was extracted from."""

    document_id: str
    page_number: int
    extractor: str
    confidence: float
    bbox: tuple[float, float, float, float] | None = None

    def __post_init__(self) -> None:
        check_confidence(self.confidence, what="Extractor")


@dataclass(frozen=True, slots=True, kw_only=True)
class Evidence:
    """A unit of extracted raw material (a schedule row, a text snippet)."""

    id: str
    type: EvidenceType
    source: EvidenceSource
    content: object = None
    metadata: Mapping[str, object] = field(default_factory=dict[str, object])
    created_at: datetime = field(default_factory=utc_now)
    version: str = "1"


@dataclass(frozen=True, slots=True, kw_only=True)
class Assumption:
    """A named default value used when evidence is absent.

    ``supersedes`` points at an earlier assumption for the same key. The earlier
    entry stays in the ledger untouched; the ledger simply stops treating it as
    active.
    """

    id: str
    key: str
    value: object
    basis: AssumptionBasis
    confidence: float
    source: str | None = None
    supersedes: str | None = None
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        check_confidence(self.confidence, what="Assumption")
