"""Run producers against the ledger and record their inferences."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from arbiter.domain.model import Flag, FlagType, Inference, Severity
from arbiter.domain.strategy import StrategyContext

if TYPE_CHECKING:
    from collections.abc import Sequence

    from arbiter.domain.context import ResolutionContext
    from arbiter.domain.strategy import Strategy, StrategyResult

log = getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class CollectionOutput:
    inferences: list[Inference] = field(default_factory=list[Inference])
    topics: list[str] = field(default_factory=list[str])
    flags: list[Flag] = field(default_factory=list[Flag])
    skipped: list[str] = field(default_factory=list[str])

    @property
    def total_inferences(self) -> int:
        return len(self.inferences)


class InferenceCollectionStage:
    """Execute every producer that can handle its topic, concurrently.

    Successful results become inferences appended to the ledger. A producer
    that reports failure is logged and skipped; one that raises (or exceeds
    ``timeout`` seconds) gets a medium-severity POLICY_VIOLATION flag. Neither
    stops the other producers.
    """

    name = "MultiStrategyInference"

    def __init__(
        self,
        strategies: Sequence[Strategy],
        *,
        document_id: str = "unknown",
        page_number: int = 1,
        timeout: float | None = None,
    ) -> None:
        self.strategies = list(strategies)
        self.document_id = document_id
        self.page_number = page_number
        self.timeout = timeout

    def add_strategy(self, strategy: Strategy) -> None:
        self.strategies.append(strategy)

    def run(self, ctx: ResolutionContext) -> CollectionOutput:
        return asyncio.run(self.run_async(ctx))

    async def run_async(self, ctx: ResolutionContext) -> CollectionOutput:
        log.info("[%s] Entering stage: %s", ctx.trace_id, self.name)
        evidence = ctx.ledger.evidence
        assumptions = ctx.ledger.active_assumptions()

        output = CollectionOutput()
        runnable: list[tuple[Strategy, StrategyContext]] = []
        for strategy in self.strategies:
            if strategy.topic not in output.topics:
                output.topics.append(strategy.topic)
            context = StrategyContext(
                document_id=self.document_id,
                page_number=self.page_number,
                topic=strategy.topic,
                available_evidence=evidence,
                available_assumptions=assumptions,
            )
            if not strategy.can_handle(context):
                log.info(
                    "[%s] Strategy %s cannot handle context for topic %s",
                    ctx.trace_id,
                    strategy.name,
                    strategy.topic,
                )
                output.skipped.append(strategy.name)
                continue
            runnable.append((strategy, context))

        results = await asyncio.gather(
            *(self._execute(strategy, context, ctx) for strategy, context in runnable),
            return_exceptions=True,
        )
        for (strategy, _context), result in zip(runnable, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                output.flags.append(self._record_failure(strategy, result, ctx))
                continue
            if not result.success:
                log.info(
                    "[%s] Strategy %s failed for topic %s: %s",
                    ctx.trace_id,
                    strategy.name,
                    strategy.topic,
                    result.error,
                )
                continue
            inference = self._to_inference(strategy, result, ctx)
            ctx.ledger.add_inference(inference)
            output.inferences.append(inference)
            log.info(
                "[%s] Strategy %s generated inference for topic %s with confidence %d%%",
                ctx.trace_id,
                strategy.name,
                strategy.topic,
                round(result.confidence * 100),
            )

        log.info("[%s] Exiting stage: %s (SUCCESS)", ctx.trace_id, self.name)
        return output

    async def _execute(
        self, strategy: Strategy, context: StrategyContext, ctx: ResolutionContext
    ) -> StrategyResult:
        if self.timeout is None:
            return await strategy.execute(context, ctx)
        return await asyncio.wait_for(strategy.execute(context, ctx), timeout=self.timeout)

    @staticmethod
    def _to_inference(
        strategy: Strategy, result: StrategyResult, ctx: ResolutionContext
    ) -> Inference:
        create = getattr(strategy, "create_inference", None)
        if create is not None:
            return create(result, ctx)

        return Inference(
            id=ctx.ids("inf"),
            topic=strategy.topic,
            value=result.value,
            confidence=result.confidence,
            method=strategy.method,
            used_evidence=result.used_evidence,
            used_assumptions=result.used_assumptions,
            explanation=result.explanation,
            alternatives=result.alternatives,
            stage=ctx.stage,
            created_at=ctx.clock(),
        )

    @staticmethod
    def _record_failure(strategy: Strategy, exc: Exception, ctx: ResolutionContext) -> Flag:
        message = str(exc) or type(exc).__name__
        log.error(
            "[%s] Strategy %s execution failed: %s",
            ctx.trace_id,
            strategy.name,
            message,
        )
        flag = Flag(
            id=ctx.ids("flag"),
            type=FlagType.POLICY_VIOLATION,
            severity=Severity.MEDIUM,
            message=f"Strategy {strategy.name} failed for topic {strategy.topic}: {message}",
            topic=strategy.topic,
            created_at=ctx.clock(),
        )
        ctx.ledger.add_flag(flag)
        return flag
