"""Policy-driven arbitration of competing inferences for one topic.

Resolution policy:
- no candidate clears ``acceptInference`` -> ``policy_violation`` with a
  LOW_CONFIDENCE flag and an unresolved decision
- one candidate clears it -> ``auto``, selected unconditionally
- several candidates -> ranked by confidence gap, source reliability, then
  tiebreaker priority; ``auto`` when the top two are at least ``conflictGap``
  apart, otherwise ``manual_review`` with a temporary pick and a penalized
  confidence
- any failure while computing the above -> ``policy_violation`` with a
  POLICY_VIOLATION flag; the failure never escapes for a single topic

Every outcome is appended to the ledger (decision first, then its flags)
before ``resolve`` returns.
"""

from __future__ import annotations

import math
from functools import cmp_to_key
from logging import getLogger
from typing import TYPE_CHECKING, Final

from arbiter.domain.model import (
    Decision,
    Flag,
    FlagType,
    PolicySnapshot,
    ResolutionMethod,
    Severity,
)
from arbiter.domain.policy import (
    ACCEPT_INFERENCE,
    CONFLICT_GAP,
    DEFAULT_SOURCE_RELIABILITY,
    UNRANKED_TIEBREAKER_PRIORITY,
)
from arbiter.domain.resolution.contracts import (
    ConflictCandidate,
    ConflictResolutionResult,
    Err,
    Ok,
)
from arbiter.domain.strategy import strategy_lookup

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from arbiter.domain.context import ResolutionContext
    from arbiter.domain.model import Inference
    from arbiter.domain.resolution.contracts import Outcome
    from arbiter.domain.strategy import StrategyLike

log = getLogger(__name__)

RELIABILITY_MARGIN: Final[float] = 0.1
GAP_TOLERANCE: Final[float] = 1e-9
MANUAL_REVIEW_PENALTY: Final[float] = 0.8

RULE_CONFIDENCE_THRESHOLD: Final[str] = "confidence_threshold"
RULE_SINGLE_INFERENCE: Final[str] = "single_inference"
RULE_CONFIDENCE_GAP: Final[str] = "confidence_gap"
RULE_SOURCE_RELIABILITY: Final[str] = "source_reliability"
RULE_TIEBREAKER_PRIORITY: Final[str] = "tiebreaker_priority"
RULE_TEMPORARY_SELECTION: Final[str] = "temporary_selection"
RULE_MANUAL_REVIEW: Final[str] = "manual_review_required"
RULE_ERROR_FALLBACK: Final[str] = "error_fallback"


class ConflictResolver:
    """Produce exactly one ``Decision`` (and zero or more ``Flag``s) per topic."""

    def resolve(
        self,
        topic: str,
        inferences: Iterable[Inference],
        strategies: Iterable[StrategyLike],
        ctx: ResolutionContext,
    ) -> ConflictResolutionResult:
        outcome = self._try_resolve(topic, inferences, strategies, ctx)
        match outcome:
            case Ok(value=result):
                pass
            case Err(reason=reason):
                result = self._error_fallback(topic, reason, ctx)

        ctx.ledger.add_decision(result.decision)
        for flag in result.flags:
            ctx.ledger.add_flag(flag)

        log.info(
            "[%s] Topic %s resolved with method: %s",
            ctx.trace_id,
            topic,
            result.resolution_method,
        )
        return result

    def _try_resolve(
        self,
        topic: str,
        inferences: Iterable[Inference],
        strategies: Iterable[StrategyLike],
        ctx: ResolutionContext,
    ) -> Outcome[ConflictResolutionResult]:
        try:
            candidates = _unique_by_id(
                inference for inference in inferences if inference.topic == topic
            )
            accept = ctx.get_threshold(ACCEPT_INFERENCE)
            valid = [inference for inference in candidates if inference.confidence >= accept]

            if not valid:
                return Ok(self._no_valid_inferences(topic, candidates, ctx))
            if len(valid) == 1:
                return Ok(self._single_inference(valid[0], ctx))
            return Ok(self._multiple_inferences(valid, strategy_lookup(strategies), ctx))
        except Exception as exc:  # noqa: BLE001
            log.exception("[%s] Conflict resolution failed for topic %s", ctx.trace_id, topic)
            return Err(reason=str(exc) or type(exc).__name__, exception=exc)

    def _no_valid_inferences(
        self,
        topic: str,
        candidates: Sequence[Inference],
        ctx: ResolutionContext,
    ) -> ConflictResolutionResult:
        accept = ctx.get_threshold(ACCEPT_INFERENCE)
        decision = Decision(
            id=ctx.ids("dec"),
            topic=topic,
            selected_value=None,
            selected_inference_id="",
            competing_inferences=tuple(inference.id for inference in candidates),
            justification="No valid inferences available. Manual review required.",
            policy_used=ctx.policy.snapshot(ACCEPT_INFERENCE, rules=(RULE_CONFIDENCE_THRESHOLD,)),
            stage=ctx.stage,
            created_at=ctx.clock(),
        )
        flag = Flag(
            id=ctx.ids("flag"),
            type=FlagType.LOW_CONFIDENCE,
            severity=Severity.HIGH,
            message=(
                f'No inferences for topic "{topic}" meet confidence threshold ({accept})'
            ),
            topic=topic,
            evidence_ids=_flatten(inference.used_evidence for inference in candidates),
            assumption_ids=_flatten(inference.used_assumptions for inference in candidates),
            inference_ids=tuple(inference.id for inference in candidates),
            decision_id=decision.id,
            created_at=ctx.clock(),
        )
        log.warning(
            "[%s] Topic %s: none of %d inferences reach acceptInference=%s",
            ctx.trace_id,
            topic,
            len(candidates),
            accept,
        )
        return ConflictResolutionResult(
            decision=decision,
            flags=(flag,),
            confidence=0.0,
            resolution_method=ResolutionMethod.POLICY_VIOLATION,
        )

    def _single_inference(
        self, inference: Inference, ctx: ResolutionContext
    ) -> ConflictResolutionResult:
        decision = Decision(
            id=ctx.ids("dec"),
            topic=inference.topic,
            selected_value=inference.value,
            selected_inference_id=inference.id,
            competing_inferences=(),
            justification=(
                "Single high-confidence inference available "
                f"({_percent(inference.confidence)}%)"
            ),
            policy_used=ctx.policy.snapshot(ACCEPT_INFERENCE, rules=(RULE_SINGLE_INFERENCE,)),
            stage=ctx.stage,
            created_at=ctx.clock(),
        )
        return ConflictResolutionResult(
            decision=decision,
            flags=(),
            confidence=inference.confidence,
            resolution_method=ResolutionMethod.AUTO,
        )

    def _multiple_inferences(
        self,
        inferences: Sequence[Inference],
        strategies: Mapping[str, StrategyLike],
        ctx: ResolutionContext,
    ) -> ConflictResolutionResult:
        candidates = rank_candidates(
            [_candidate(inference, strategies, ctx) for inference in inferences],
            conflict_gap=ctx.get_threshold(CONFLICT_GAP),
        )
        winner, runner_up = candidates[0], candidates[1]
        gap = winner.confidence - runner_up.confidence
        if _reaches(gap, ctx.get_threshold(CONFLICT_GAP)):
            return self._auto_resolve(candidates, gap, ctx)
        return self._manual_review(candidates, gap, ctx)

    def _auto_resolve(
        self,
        candidates: Sequence[ConflictCandidate],
        gap: float,
        ctx: ResolutionContext,
    ) -> ConflictResolutionResult:
        winner, rejected = candidates[0], candidates[1:]
        inference = winner.inference
        rejected_methods = ", ".join(candidate.method for candidate in rejected)
        decision = Decision(
            id=ctx.ids("dec"),
            topic=inference.topic,
            selected_value=inference.value,
            selected_inference_id=inference.id,
            competing_inferences=tuple(candidate.inference.id for candidate in rejected),
            justification=(
                f"Auto-resolved using policy: {inference.method} selected over "
                f"{rejected_methods}. Confidence gap: {_percent(gap)}%"
            ),
            policy_used=ctx.policy.snapshot(
                ACCEPT_INFERENCE,
                CONFLICT_GAP,
                rules=(RULE_CONFIDENCE_GAP, RULE_SOURCE_RELIABILITY, RULE_TIEBREAKER_PRIORITY),
            ),
            stage=ctx.stage,
            created_at=ctx.clock(),
        )
        flag = Flag(
            id=ctx.ids("flag"),
            type=FlagType.CONFLICT,
            severity=Severity.LOW,
            message=(
                f'Conflict auto-resolved for topic "{inference.topic}". {inference.method} '
                f"selected with {_percent(inference.confidence)}% confidence."
            ),
            topic=inference.topic,
            evidence_ids=inference.used_evidence,
            assumption_ids=inference.used_assumptions,
            inference_ids=(inference.id,),
            decision_id=decision.id,
            created_at=ctx.clock(),
            resolved=True,
        )
        return ConflictResolutionResult(
            decision=decision,
            flags=(flag,),
            confidence=inference.confidence,
            resolution_method=ResolutionMethod.AUTO,
        )

    def _manual_review(
        self,
        candidates: Sequence[ConflictCandidate],
        gap: float,
        ctx: ResolutionContext,
    ) -> ConflictResolutionResult:
        winner = candidates[0].inference
        conflict_gap = ctx.get_threshold(CONFLICT_GAP)
        decision = Decision(
            id=ctx.ids("dec"),
            topic=winner.topic,
            selected_value=winner.value,
            selected_inference_id=winner.id,
            competing_inferences=tuple(candidate.inference.id for candidate in candidates[1:]),
            justification=(
                f"Temporary selection pending manual review. {winner.method} selected with "
                f"highest confidence ({_percent(winner.confidence)}%) but gap below threshold."
            ),
            policy_used=ctx.policy.snapshot(
                ACCEPT_INFERENCE,
                CONFLICT_GAP,
                rules=(RULE_TEMPORARY_SELECTION, RULE_MANUAL_REVIEW),
            ),
            stage=ctx.stage,
            created_at=ctx.clock(),
        )
        flag = Flag(
            id=ctx.ids("flag"),
            type=FlagType.CONFLICT,
            severity=Severity.MEDIUM,
            message=(
                f'Conflict requires manual review for topic "{winner.topic}". Confidence gap '
                f"({_percent(gap)}%) below threshold ({_percent(conflict_gap)}%)."
            ),
            topic=winner.topic,
            evidence_ids=_flatten(c.inference.used_evidence for c in candidates),
            assumption_ids=_flatten(c.inference.used_assumptions for c in candidates),
            inference_ids=tuple(c.inference.id for c in candidates),
            decision_id=decision.id,
            created_at=ctx.clock(),
        )
        return ConflictResolutionResult(
            decision=decision,
            flags=(flag,),
            confidence=winner.confidence * MANUAL_REVIEW_PENALTY,
            resolution_method=ResolutionMethod.MANUAL_REVIEW,
        )

    def _error_fallback(
        self, topic: str, reason: str, ctx: ResolutionContext
    ) -> ConflictResolutionResult:
        decision = Decision(
            id=ctx.ids("dec"),
            topic=topic,
            selected_value=None,
            selected_inference_id="",
            competing_inferences=(),
            justification=f"Resolution failed due to error: {reason}",
            policy_used=PolicySnapshot(applied_rules=(RULE_ERROR_FALLBACK,)),
            stage=ctx.stage,
            created_at=ctx.clock(),
        )
        flag = Flag(
            id=ctx.ids("flag"),
            type=FlagType.POLICY_VIOLATION,
            severity=Severity.CRITICAL,
            message=f'Conflict resolution failed for topic "{topic}": {reason}',
            topic=topic,
            decision_id=decision.id,
            created_at=ctx.clock(),
        )
        return ConflictResolutionResult(
            decision=decision,
            flags=(flag,),
            confidence=0.0,
            resolution_method=ResolutionMethod.POLICY_VIOLATION,
        )


def rank_candidates(
    candidates: Iterable[ConflictCandidate], *, conflict_gap: float
) -> list[ConflictCandidate]:
    """Order candidates best-first using the three-level cascade.

    1. confidence, when two candidates differ by more than ``conflict_gap``
    2. source reliability, when it differs by more than ``RELIABILITY_MARGIN``
    3. tiebreaker priority, ascending
    """

    def compare(a: ConflictCandidate, b: ConflictCandidate) -> float:
        if _exceeds(abs(a.confidence - b.confidence), conflict_gap):
            return b.confidence - a.confidence
        if _exceeds(abs(a.source_reliability - b.source_reliability), RELIABILITY_MARGIN):
            return b.source_reliability - a.source_reliability
        return a.tiebreaker_priority - b.tiebreaker_priority

    return sorted(candidates, key=cmp_to_key(compare))


def resolve_conflicts(
    topic: str,
    inferences: Iterable[Inference],
    strategies: Iterable[StrategyLike],
    ctx: ResolutionContext,
) -> ConflictResolutionResult:
    """Single-topic entry point."""

    return ConflictResolver().resolve(topic, inferences, strategies, ctx)


def _candidate(
    inference: Inference,
    strategies: Mapping[str, StrategyLike],
    ctx: ResolutionContext,
) -> ConflictCandidate:
    strategy = strategies.get(inference.method)
    if strategy is None:
        log.debug(
            "[%s] No strategy registered for method %s; using unranked defaults",
            ctx.trace_id,
            inference.method,
        )
        return ConflictCandidate(
            inference=inference,
            strategy=None,
            source_reliability=DEFAULT_SOURCE_RELIABILITY,
            tiebreaker_priority=UNRANKED_TIEBREAKER_PRIORITY,
        )
    return ConflictCandidate(
        inference=inference,
        strategy=strategy,
        source_reliability=ctx.get_source_reliability(strategy.source_type),
        tiebreaker_priority=ctx.get_tiebreaker_priority(strategy.source_type),
    )


def _unique_by_id(inferences: Iterable[Inference]) -> list[Inference]:
    """Drop repeated ids; the first occurrence keeps its position."""

    unique: dict[str, Inference] = {}
    for inference in inferences:
        unique.setdefault(inference.id, inference)
    return list(unique.values())


def _flatten(groups: Iterable[Iterable[str]]) -> tuple[str, ...]:
    return tuple(item for group in groups for item in group)


def _percent(value: float) -> int:
    return math.floor(value * 100 + 0.5)


def _reaches(value: float, limit: float) -> bool:
    """``value >= limit``, treating float noise around ``limit`` as equal."""

    return value >= limit or math.isclose(value, limit, abs_tol=GAP_TOLERANCE)


def _exceeds(value: float, limit: float) -> bool:
    return value > limit and not math.isclose(value, limit, abs_tol=GAP_TOLERANCE)
