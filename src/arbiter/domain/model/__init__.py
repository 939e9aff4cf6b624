"""Public domain model surface."""

from __future__ import annotations

from arbiter.domain.model.audit import Decision, Flag, PolicySnapshot
from arbiter.domain.model.base import Clock, CounterIds, IdFactory, utc_now, uuid_ids
from arbiter.domain.model.enums import (
    AssumptionBasis,
    EvidenceType,
    FlagType,
    ResolutionMethod,
    Severity,
    SourceType,
)
from arbiter.domain.model.evidence import Assumption, Evidence, EvidenceSource
from arbiter.domain.model.inference import Alternative, Inference

__all__ = [
    "Alternative",
    "Assumption",
    "AssumptionBasis",
    "Clock",
    "CounterIds",
    "Decision",
    "Evidence",
    "EvidenceSource",
    "EvidenceType",
    "Flag",
    "FlagType",
    "IdFactory",
    "Inference",
    "PolicySnapshot",
    "ResolutionMethod",
    "Severity",
    "SourceType",
    "utc_now",
    "uuid_ids",
]
