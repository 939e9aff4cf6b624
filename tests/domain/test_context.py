from __future__ import annotations

from typing import TYPE_CHECKING

from arbiter.domain.model import SourceType

if TYPE_CHECKING:
    from arbiter.domain.context import ResolutionContext


def test_context_delegates_to_policy(ctx: ResolutionContext) -> None:
    assert ctx.get_threshold("acceptInference") == 0.7
    assert ctx.get_source_reliability(SourceType.EXPLICIT_NOTE) == 0.85
    assert ctx.get_tiebreaker_priority(SourceType.PLAN_SYMBOL) == 2


def test_for_stage_shares_ledger_and_trace(ctx: ResolutionContext) -> None:
    child = ctx.for_stage("Review")

    assert child.stage == "Review"
    assert ctx.stage == "ConflictResolution"
    assert child.ledger is ctx.ledger
    assert child.trace_id == ctx.trace_id
    assert child.policy is ctx.policy
