from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from arbiter.domain.collection import InferenceCollectionStage
from arbiter.domain.model import (
    Assumption,
    AssumptionBasis,
    FlagType,
    ResolutionMethod,
    Severity,
    SourceType,
)
from arbiter.domain.resolution import ResolutionStage
from arbiter.domain.strategy import AssumedDefaultStrategy, StrategyResult
from tests.support.strategies import FailingStrategy, FixedStrategy, RaisingStrategy

if TYPE_CHECKING:
    from arbiter.domain.context import ResolutionContext
    from arbiter.domain.strategy import StrategyContext


class SlowStrategy(FixedStrategy):
    async def execute(self, context: StrategyContext, ctx: ResolutionContext) -> StrategyResult:
        await asyncio.sleep(1)
        return StrategyResult.ok(self.value, self.confidence, "too late")


def test_collection_records_successful_results(ctx: ResolutionContext) -> None:
    schedule = FixedStrategy(
        topic="door_width", method="fromSchedule", source_type=SourceType.SCHEDULE_TABLE
    )
    note = FixedStrategy(
        topic="door_width",
        method="fromNote",
        source_type=SourceType.EXPLICIT_NOTE,
        value="34in",
        confidence=0.6,
    )

    output = InferenceCollectionStage([schedule, note], document_id="doc-1").run(ctx)

    assert output.total_inferences == 2
    assert output.topics == ["door_width"]
    assert [inference.method for inference in output.inferences] == ["fromSchedule", "fromNote"]
    assert ctx.ledger.inferences == tuple(output.inferences)


def test_collection_skips_and_flags_failures(ctx: ResolutionContext) -> None:
    skipped = FixedStrategy(
        topic="door_width", method="fromPlan", source_type=SourceType.PLAN_SYMBOL, handles=False
    )
    failing = FailingStrategy(
        topic="door_width", method="fromNote", source_type=SourceType.EXPLICIT_NOTE
    )
    raising = RaisingStrategy(
        topic="ceiling_height", method="fromVision", source_type=SourceType.VISION_LLM
    )
    working = FixedStrategy(
        topic="ceiling_height", method="fromSchedule", source_type=SourceType.SCHEDULE_TABLE
    )

    output = InferenceCollectionStage([skipped, failing, raising, working]).run(ctx)

    assert skipped.calls == 0
    assert output.skipped == [skipped.name]
    assert [inference.topic for inference in output.inferences] == ["ceiling_height"]
    (flag,) = output.flags
    assert flag.type is FlagType.POLICY_VIOLATION
    assert flag.severity is Severity.MEDIUM
    assert "extractor crashed" in flag.message
    assert ctx.ledger.flags == (flag,)


def test_collection_times_out_slow_producers(ctx: ResolutionContext) -> None:
    slow = SlowStrategy(topic="door_width", method="fromVision", source_type=SourceType.VISION_LLM)

    output = InferenceCollectionStage([slow], timeout=0.01).run(ctx)

    assert output.inferences == []
    (flag,) = output.flags
    assert "TimeoutError" in flag.message


def test_collection_feeds_resolution(ctx: ResolutionContext) -> None:
    ctx.ledger.add_assumption(
        Assumption(
            id="asm_1",
            key="ceiling_height",
            value="8ft",
            basis=AssumptionBasis.REGIONAL_DEFAULT,
            confidence=0.8,
        )
    )
    producers = [
        FixedStrategy(
            topic="door_width",
            method="fromSchedule",
            source_type=SourceType.SCHEDULE_TABLE,
            confidence=0.92,
        ),
        FixedStrategy(
            topic="door_width",
            method="fromNote",
            source_type=SourceType.EXPLICIT_NOTE,
            value="32in",
            confidence=0.55,
        ),
        AssumedDefaultStrategy("ceiling_height", "ceiling_height"),
    ]

    collected = InferenceCollectionStage(producers).run(ctx)
    output = ResolutionStage().run(collected.inferences, producers, ctx)

    door = output.results["door_width"]
    assert door.resolution_method is ResolutionMethod.AUTO
    assert door.decision.selected_value == "36in"
    # 0.8 * 0.6 falls below acceptInference
    ceiling = output.results["ceiling_height"]
    assert ceiling.resolution_method is ResolutionMethod.POLICY_VIOLATION
    assert ceiling.flags[0].assumption_ids == ("asm_1",)
    assert ctx.ledger.validate_integrity() == ()
