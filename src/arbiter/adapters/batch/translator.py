"""Translate validated batch documents into domain records."""

from __future__ import annotations

from typing import TYPE_CHECKING

from arbiter.domain.model import (
    Alternative,
    Assumption,
    Evidence,
    EvidenceSource,
    Inference,
    utc_now,
)
from arbiter.domain.strategy import StrategyDescriptor

if TYPE_CHECKING:
    from datetime import datetime

    from .schema import BatchAssumption, BatchEvidence, BatchInference, BatchStrategy


def _timestamp(value: datetime | None) -> datetime:
    return value if value is not None else utc_now()


def translate_evidence(payload: BatchEvidence) -> Evidence:
    source = payload.source
    return Evidence(
        id=payload.id,
        type=payload.type,
        source=EvidenceSource(
            document_id=source.document_id,
            page_number=source.page_number,
            extractor=source.extractor,
            confidence=source.confidence,
            bbox=source.bbox,
        ),
        content=payload.content,
        metadata=dict(payload.metadata),
        created_at=_timestamp(payload.created_at),
    )


def translate_assumption(payload: BatchAssumption) -> Assumption:
    return Assumption(
        id=payload.id,
        key=payload.key,
        value=payload.value,
        basis=payload.basis,
        confidence=payload.confidence,
        source=payload.source,
        supersedes=payload.supersedes,
        created_at=_timestamp(payload.created_at),
    )


def translate_inference(payload: BatchInference) -> Inference:
    return Inference(
        id=payload.id,
        topic=payload.topic,
        value=payload.value,
        confidence=payload.confidence,
        method=payload.method,
        used_evidence=tuple(payload.used_evidence),
        used_assumptions=tuple(payload.used_assumptions),
        explanation=payload.explanation,
        alternatives=tuple(
            Alternative(value=alt.value, confidence=alt.confidence, reason=alt.reason)
            for alt in payload.alternatives
        ),
        stage=payload.stage,
        created_at=_timestamp(payload.created_at),
    )


def translate_strategy(payload: BatchStrategy) -> StrategyDescriptor:
    return StrategyDescriptor(
        method=payload.method,
        source_type=payload.source_type,
        name=payload.name or payload.method,
        topic=payload.topic,
    )
