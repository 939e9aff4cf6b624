"""Shared conflict-resolution contract components.

This module intentionally holds only:
- the public result of resolving one topic
- candidate annotations used while ranking
- the internal ``Ok`` / ``Err`` step outcome
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeAlias, TypeVar

from arbiter.domain.model import ResolutionMethod

if TYPE_CHECKING:
    from arbiter.domain.model import Decision, Flag, Inference
    from arbiter.domain.strategy import StrategyLike


@dataclass(frozen=True, slots=True, kw_only=True)
class ConflictCandidate:
    """A valid inference annotated with its producer's policy weights."""

    inference: Inference
    strategy: StrategyLike | None
    source_reliability: float
    tiebreaker_priority: int

    @property
    def confidence(self) -> float:
        return self.inference.confidence

    @property
    def method(self) -> str:
        return self.inference.method


@dataclass(frozen=True, slots=True, kw_only=True)
class ConflictResolutionResult:
    """Decision and flags produced for one topic, plus the reported confidence."""

    decision: Decision
    flags: tuple[Flag, ...]
    confidence: float
    resolution_method: ResolutionMethod

    @property
    def needs_review(self) -> bool:
        return self.resolution_method is not ResolutionMethod.AUTO


T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True, slots=True)
class Err:
    reason: str
    exception: BaseException | None = field(default=None, compare=False)


Outcome: TypeAlias = Ok[T] | Err
