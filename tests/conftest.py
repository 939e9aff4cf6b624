from __future__ import annotations

import itertools
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest

from arbiter.domain.context import ResolutionContext
from arbiter.domain.ledger import InferenceLedger
from arbiter.domain.model import CounterIds, Inference
from arbiter.domain.policy import default_policy

if TYPE_CHECKING:
    from collections.abc import Callable

    from arbiter.domain.model import Clock

FIXED_NOW = datetime(2025, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def fixed_clock() -> Clock:
    return lambda: FIXED_NOW


@pytest.fixture
def ids() -> CounterIds:
    return CounterIds()


@pytest.fixture
def ledger(ids: CounterIds, fixed_clock: Clock) -> InferenceLedger:
    return InferenceLedger("run-1", "default", ids=ids, clock=fixed_clock)


@pytest.fixture
def ctx(ledger: InferenceLedger, ids: CounterIds, fixed_clock: Clock) -> ResolutionContext:
    return ResolutionContext(
        policy=default_policy(),
        ledger=ledger,
        stage="ConflictResolution",
        trace_id="trace-test",
        ids=ids,
        clock=fixed_clock,
    )


@pytest.fixture
def make_inference(fixed_clock: Clock) -> Callable[..., Inference]:
    counter = itertools.count(1)

    def factory(
        confidence: float,
        *,
        topic: str = "door_width",
        value: object = None,
        method: str = "fromSchedule",
        inference_id: str | None = None,
        used_evidence: tuple[str, ...] = (),
        used_assumptions: tuple[str, ...] = (),
    ) -> Inference:
        number = next(counter)
        return Inference(
            id=inference_id or f"inf_{number}",
            topic=topic,
            value=value if value is not None else f"value-{number}",
            confidence=confidence,
            method=method,
            used_evidence=used_evidence,
            used_assumptions=used_assumptions,
            created_at=fixed_clock(),
        )

    return factory
