"""Batch orchestration of conflict resolution across every topic in a run."""

from __future__ import annotations

import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Final

from arbiter.domain.errors import MalformedBatchError
from arbiter.domain.model import Flag, FlagType, Inference, ResolutionMethod, Severity
from arbiter.domain.resolution.resolver import ConflictResolver

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from arbiter.domain.context import ResolutionContext
    from arbiter.domain.model import Decision
    from arbiter.domain.resolution.contracts import ConflictResolutionResult
    from arbiter.domain.strategy import StrategyLike

log = getLogger(__name__)

STAGE_NAME: Final[str] = "ConflictResolution"


@dataclass(slots=True)
class ResolutionSummary:
    auto_resolved: int = 0
    manual_review: int = 0
    policy_violations: int = 0

    def record(self, method: ResolutionMethod) -> None:
        match method:
            case ResolutionMethod.AUTO:
                self.auto_resolved += 1
            case ResolutionMethod.MANUAL_REVIEW:
                self.manual_review += 1
            case ResolutionMethod.POLICY_VIOLATION:
                self.policy_violations += 1

    @property
    def total(self) -> int:
        return self.auto_resolved + self.manual_review + self.policy_violations


@dataclass(slots=True, kw_only=True)
class ResolutionOutput:
    decisions: list[Decision] = field(default_factory=list)
    flags: list[Flag] = field(default_factory=list[Flag])
    resolution_summary: ResolutionSummary = field(default_factory=ResolutionSummary)
    results: dict[str, ConflictResolutionResult] = field(default_factory=dict)

    @property
    def total_decisions(self) -> int:
        return len(self.decisions)

    @property
    def total_flags(self) -> int:
        return len(self.flags)


@dataclass(slots=True)
class _TopicOutcome:
    topic: str
    result: ConflictResolutionResult | None = None
    error_flag: Flag | None = None


class ResolutionStage:
    """Resolve every topic of a batch, isolating per-topic failures.

    Topics are independent, so with ``max_workers > 1`` they are resolved on a
    thread pool; the ledger serializes its own appends. Output order always
    follows the first occurrence of each topic in the input.
    """

    name = STAGE_NAME

    def __init__(self, resolver: ConflictResolver | None = None, *, max_workers: int = 1) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.resolver = resolver or ConflictResolver()
        self.max_workers = max_workers

    def run(
        self,
        inferences: Iterable[Inference],
        strategies: Iterable[StrategyLike],
        ctx: ResolutionContext,
    ) -> ResolutionOutput:
        log.info("[%s] Entering stage: %s", ctx.trace_id, self.name)
        started = time.perf_counter()
        try:
            by_topic = group_by_topic(inferences)
        except MalformedBatchError:
            log.exception("[%s] %s stage failed: batch cannot be grouped", ctx.trace_id, self.name)
            log.info(
                "[%s] Exiting stage: %s (FAILED) in %dms",
                ctx.trace_id,
                self.name,
                _elapsed_ms(started),
            )
            raise

        active_strategies = tuple(strategies)
        outcomes = self._resolve_topics(by_topic, active_strategies, ctx)

        output = ResolutionOutput()
        for outcome in outcomes:
            if outcome.result is not None:
                output.results[outcome.topic] = outcome.result
                output.decisions.append(outcome.result.decision)
                output.flags.extend(outcome.result.flags)
                output.resolution_summary.record(outcome.result.resolution_method)
            elif outcome.error_flag is not None:
                output.flags.append(outcome.error_flag)
                output.resolution_summary.record(ResolutionMethod.POLICY_VIOLATION)

        # Already appended by the resolver; the ledger ignores ids it has seen.
        for decision in output.decisions:
            ctx.ledger.add_decision(decision)
        for flag in output.flags:
            ctx.ledger.add_flag(flag)

        summary = output.resolution_summary
        log.info(
            "[%s] Conflict resolution summary: auto=%d manual_review=%d policy_violations=%d",
            ctx.trace_id,
            summary.auto_resolved,
            summary.manual_review,
            summary.policy_violations,
        )
        log.info(
            "[%s] Exiting stage: %s (SUCCESS) in %dms",
            ctx.trace_id,
            self.name,
            _elapsed_ms(started),
        )
        return output

    def _resolve_topics(
        self,
        by_topic: dict[str, list[Inference]],
        strategies: Sequence[StrategyLike],
        ctx: ResolutionContext,
    ) -> list[_TopicOutcome]:
        def resolve_one(item: tuple[str, list[Inference]]) -> _TopicOutcome:
            topic, topic_inferences = item
            return self._resolve_topic(topic, topic_inferences, strategies, ctx)

        items = list(by_topic.items())
        if self.max_workers == 1 or len(items) <= 1:
            return [resolve_one(item) for item in items]
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(resolve_one, items))

    def _resolve_topic(
        self,
        topic: str,
        inferences: list[Inference],
        strategies: Sequence[StrategyLike],
        ctx: ResolutionContext,
    ) -> _TopicOutcome:
        log.info(
            "[%s] Resolving conflicts for topic: %s (%d inferences)",
            ctx.trace_id,
            topic,
            len(inferences),
        )
        try:
            result = self.resolver.resolve(topic, inferences, strategies, ctx)
        except Exception as exc:  # noqa: BLE001
            log.exception("[%s] Conflict resolution failed for topic %s", ctx.trace_id, topic)
            flag = Flag(
                id=ctx.ids("flag"),
                type=FlagType.POLICY_VIOLATION,
                severity=Severity.CRITICAL,
                message=f'Conflict resolution failed for topic "{topic}": {exc}',
                topic=topic,
                inference_ids=tuple(inference.id for inference in inferences),
                created_at=ctx.clock(),
            )
            ctx.ledger.add_flag(flag)
            return _TopicOutcome(topic=topic, error_flag=flag)
        return _TopicOutcome(topic=topic, result=result)


def group_by_topic(inferences: Iterable[Inference]) -> dict[str, list[Inference]]:
    """Group inferences by topic in order of each topic's first occurrence.

    A repeated inference id is kept once, at its first position.
    """

    if isinstance(inferences, (str, bytes)):
        raise MalformedBatchError("Inference batch must be an iterable of Inference records")
    try:
        items = list(inferences)
    except TypeError as exc:
        raise MalformedBatchError(f"Inference batch is not iterable: {exc}") from exc

    grouped: dict[str, list[Inference]] = {}
    seen: set[str] = set()
    for position, inference in enumerate(items):
        if not isinstance(inference, Inference):
            raise MalformedBatchError(
                f"Batch item {position} is {type(inference).__name__}, not an Inference"
            )
        if not isinstance(inference.topic, str) or not inference.topic:
            raise MalformedBatchError(f"Inference {inference.id} has no topic")
        if inference.id in seen:
            continue
        seen.add(inference.id)
        grouped.setdefault(inference.topic, []).append(inference)
    return grouped


def validate_decisions(
    decisions: Iterable[Decision], inferences: Iterable[Inference]
) -> tuple[str, ...]:
    """Report decisions that point at inferences outside ``inferences``."""

    known = {inference.id for inference in inferences}
    errors: list[str] = []
    for decision in decisions:
        if decision.selected_inference_id and decision.selected_inference_id not in known:
            errors.append(
                f"Decision {decision.id} references non-existent inference "
                f"{decision.selected_inference_id}"
            )
        errors.extend(
            f"Decision {decision.id} references non-existent competing inference {competing}"
            for competing in decision.competing_inferences
            if competing not in known
        )
    return tuple(errors)


def resolution_report(output: ResolutionOutput) -> str:
    """Human-readable summary of one resolution pass."""

    summary = output.resolution_summary
    severities = Counter(flag.severity for flag in output.flags)
    topics = list(dict.fromkeys(decision.topic for decision in output.decisions))
    lines = [
        "=== Conflict Resolution Report ===",
        f"Total Decisions: {output.total_decisions}",
        f"Total Flags: {output.total_flags}",
        "",
        "Resolution Methods:",
        f"  Auto-resolved: {summary.auto_resolved}",
        f"  Manual review required: {summary.manual_review}",
        f"  Policy violations: {summary.policy_violations}",
        "",
        "Topics with Decisions:",
        *(f"  - {topic}" for topic in topics),
        "",
        "Flags by Severity:",
        *(f"  {severity}: {severities.get(severity, 0)}" for severity in reversed(Severity)),
    ]
    return "\n".join(lines)


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)
