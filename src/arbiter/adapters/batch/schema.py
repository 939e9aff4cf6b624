"""Batch file schemas: evidence, assumptions, inferences and producer descriptors."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from arbiter.domain.model import AssumptionBasis, EvidenceType

log = logging.getLogger(__name__)


class BatchBaseModel(BaseModel):
    model_config = ConfigDict(extra="allow", alias_generator=to_camel, populate_by_name=True)
    _logged_extra_keys: ClassVar[set[str]] = set()

    def model_post_init(self, _context: object, /) -> None:
        extras = self.__pydantic_extra__
        if not extras:
            return
        new_keys = set(extras).difference(self._logged_extra_keys)
        if not new_keys:
            return
        self._logged_extra_keys.update(new_keys)
        log.warning(
            "Batch %s: unmodeled keys: %s",
            type(self).__name__,
            ", ".join(sorted(new_keys)),
        )


class BatchEvidenceSource(BatchBaseModel):
    document_id: str
    page_number: int = Field(ge=1)
    extractor: str
    confidence: float = Field(ge=0, le=1)
    bbox: tuple[float, float, float, float] | None = None


class BatchEvidence(BatchBaseModel):
    id: str
    type: EvidenceType
    source: BatchEvidenceSource
    content: object = None
    metadata: dict[str, object] = Field(default_factory=dict[str, object])
    created_at: datetime | None = None


class BatchAssumption(BatchBaseModel):
    id: str
    key: str
    value: object
    basis: AssumptionBasis
    confidence: float = Field(ge=0, le=1)
    source: str | None = None
    supersedes: str | None = None
    created_at: datetime | None = None


class BatchAlternative(BatchBaseModel):
    value: object
    confidence: float = Field(ge=0, le=1)
    reason: str = ""


class BatchInference(BatchBaseModel):
    id: str
    topic: str = Field(min_length=1)
    value: object
    confidence: float = Field(ge=0, le=1)
    method: str
    used_evidence: list[str] = Field(default_factory=list[str])
    used_assumptions: list[str] = Field(default_factory=list[str])
    explanation: str = ""
    alternatives: list[BatchAlternative] = Field(default_factory=list[BatchAlternative])
    stage: str = ""
    created_at: datetime | None = None


class BatchStrategy(BatchBaseModel):
    """Producer identity only; behaviour never travels in a batch file."""

    method: str
    source_type: str
    name: str = ""
    topic: str = ""


class BatchDocument(BatchBaseModel):
    run_id: str | None = None
    policy_id: str | None = None
    evidence: list[BatchEvidence] = Field(default_factory=list[BatchEvidence])
    assumptions: list[BatchAssumption] = Field(default_factory=list[BatchAssumption])
    inferences: list[BatchInference] = Field(default_factory=list[BatchInference])
    strategies: list[BatchStrategy] = Field(default_factory=list[BatchStrategy])
