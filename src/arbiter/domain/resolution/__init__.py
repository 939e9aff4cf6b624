"""Conflict resolution for competing inferences.

Flow:
1) group a batch of inferences by topic
2) filter each topic's candidates by the acceptance threshold
3) rank the survivors (confidence gap, source reliability, tiebreaker priority)
4) emit exactly one decision plus flags per topic into the ledger
5) aggregate a batch summary (auto / manual review / policy violations)
"""

from __future__ import annotations

from .contracts import ConflictCandidate, ConflictResolutionResult
from .resolver import ConflictResolver, rank_candidates, resolve_conflicts
from .stage import (
    ResolutionOutput,
    ResolutionStage,
    ResolutionSummary,
    group_by_topic,
    resolution_report,
    validate_decisions,
)

__all__ = [
    "ConflictCandidate",
    "ConflictResolutionResult",
    "ConflictResolver",
    "ResolutionOutput",
    "ResolutionStage",
    "ResolutionSummary",
    "group_by_topic",
    "rank_candidates",
    "resolution_report",
    "resolve_conflicts",
    "validate_decisions",
]
