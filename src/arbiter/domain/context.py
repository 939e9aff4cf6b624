"""Explicit context threaded through resolution calls (policy snapshot + ledger handle)."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING
from uuid import uuid4

from arbiter.domain.model import uuid_ids
from arbiter.domain.model.base import utc_now

if TYPE_CHECKING:
    from arbiter.domain.ledger import InferenceLedger
    from arbiter.domain.model import Clock, IdFactory
    from arbiter.domain.policy import Policy


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolutionContext:
    """Immutable per-stage context; the ledger is the only shared mutable resource."""

    policy: Policy
    ledger: InferenceLedger
    stage: str
    trace_id: str = field(default_factory=lambda: uuid4().hex[:12])
    ids: IdFactory = uuid_ids
    clock: Clock = utc_now

    def get_threshold(self, name: str) -> float:
        return self.policy.get_threshold(name)

    def get_source_reliability(self, source_type: str) -> float:
        return self.policy.get_source_reliability(source_type)

    def get_tiebreaker_priority(self, source_type: str) -> int:
        return self.policy.get_tiebreaker_priority(source_type)

    def for_stage(self, stage: str) -> ResolutionContext:
        """Return a child context for ``stage`` sharing ledger, policy and trace id."""

        return replace(self, stage=stage)
