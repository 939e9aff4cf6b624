"""Candidate answers produced by strategies."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from arbiter.domain.model.base import check_confidence, utc_now

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class Alternative:
    """A value a producer considered but did not return."""

    value: object
    confidence: float
    reason: str

    def __post_init__(self) -> None:
        check_confidence(self.confidence, what="Alternative")


@dataclass(frozen=True, slots=True, kw_only=True)
class Inference:
    """One producer's candidate answer for ``topic``.

    Several inferences may share a topic; they are competing hypotheses and the
    resolver picks one of them.
    """

    id: str
    topic: str
    value: object
    confidence: float
    method: str
    used_evidence: tuple[str, ...] = ()
    used_assumptions: tuple[str, ...] = ()
    explanation: str = ""
    alternatives: tuple[Alternative, ...] = ()
    stage: str = ""
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        check_confidence(self.confidence, what="Inference")
