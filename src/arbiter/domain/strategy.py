"""Producer (strategy) contract.

Producers are external to the resolver: it only ever reads their output as
``Inference`` data plus each producer's ``source_type`` to look up reliability
and tiebreaker priority in the policy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Protocol, TypeAlias

from arbiter.domain.model import Alternative, Inference, SourceType

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from arbiter.domain.context import ResolutionContext
    from arbiter.domain.model import Assumption, Evidence, EvidenceType

log = getLogger(__name__)


@dataclass(frozen=True, slots=True, kw_only=True)
class StrategyContext:
    """What a producer may look at for one topic."""

    document_id: str
    page_number: int
    topic: str
    available_evidence: tuple[Evidence, ...] = ()
    available_assumptions: tuple[Assumption, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class StrategyResult:
    """Outcome of one producer execution; failed results carry ``error`` and zero confidence."""

    success: bool
    confidence: float
    explanation: str
    value: object = None
    used_evidence: tuple[str, ...] = ()
    used_assumptions: tuple[str, ...] = ()
    alternatives: tuple[Alternative, ...] = ()
    error: str | None = None

    @classmethod
    def ok(
        cls,
        value: object,
        confidence: float,
        explanation: str,
        *,
        used_evidence: Iterable[str] = (),
        used_assumptions: Iterable[str] = (),
        alternatives: Iterable[Alternative] = (),
    ) -> StrategyResult:
        return cls(
            success=True,
            value=value,
            confidence=confidence,
            explanation=explanation,
            used_evidence=tuple(used_evidence),
            used_assumptions=tuple(used_assumptions),
            alternatives=tuple(alternatives),
        )

    @classmethod
    def failed(
        cls,
        error: str,
        explanation: str,
        *,
        used_evidence: Iterable[str] = (),
        used_assumptions: Iterable[str] = (),
    ) -> StrategyResult:
        return cls(
            success=False,
            confidence=0.0,
            explanation=explanation,
            used_evidence=tuple(used_evidence),
            used_assumptions=tuple(used_assumptions),
            error=error,
        )


class Strategy(Protocol):
    """Capability implemented by every producer."""

    name: str
    topic: str
    method: str
    source_type: str

    def can_handle(self, context: StrategyContext) -> bool: ...

    async def execute(
        self, context: StrategyContext, ctx: ResolutionContext
    ) -> StrategyResult: ...


@dataclass(frozen=True, slots=True)
class StrategyDescriptor:
    """Identity of a producer without its behaviour, e.g. when replaying a stored batch."""

    method: str
    source_type: str
    name: str = ""
    topic: str = ""


StrategyLike: TypeAlias = Strategy | StrategyDescriptor


def strategy_lookup(strategies: Iterable[StrategyLike]) -> Mapping[str, StrategyLike]:
    """Index producers by ``method``; the first registration of a method wins."""

    lookup: dict[str, StrategyLike] = {}
    for strategy in strategies:
        lookup.setdefault(strategy.method, strategy)
    return lookup


class BaseStrategy(ABC):
    """Shared helpers for producer implementations."""

    name: str
    topic: str
    method: str
    source_type: str

    @abstractmethod
    def can_handle(self, context: StrategyContext) -> bool: ...

    @abstractmethod
    async def execute(self, context: StrategyContext, ctx: ResolutionContext) -> StrategyResult: ...

    def source_reliability(self, ctx: ResolutionContext) -> float:
        return ctx.get_source_reliability(self.source_type)

    def tiebreaker_priority(self, ctx: ResolutionContext) -> int:
        return ctx.get_tiebreaker_priority(self.source_type)

    def create_inference(self, result: StrategyResult, ctx: ResolutionContext) -> Inference:
        if not result.success:
            raise ValueError(f"Strategy {self.name} cannot build an inference from a failed result")
        return Inference(
            id=ctx.ids("inf"),
            topic=self.topic,
            value=result.value,
            confidence=result.confidence,
            method=self.method,
            used_evidence=result.used_evidence,
            used_assumptions=result.used_assumptions,
            explanation=result.explanation,
            alternatives=result.alternatives,
            stage=ctx.stage,
            created_at=ctx.clock(),
        )

    @staticmethod
    def find_evidence_by_type(
        evidence_type: EvidenceType, available: Sequence[Evidence]
    ) -> list[Evidence]:
        return [evidence for evidence in available if evidence.type == evidence_type]

    @staticmethod
    def best_assumption(key: str, available: Sequence[Assumption]) -> Assumption | None:
        best: Assumption | None = None
        for assumption in available:
            if assumption.key != key:
                continue
            if best is None or assumption.confidence > best.confidence:
                best = assumption
        return best

    @staticmethod
    def calculate_confidence(
        evidence_quality: float,
        assumption_reliability: float,
        base_confidence: float = 0.8,
    ) -> float:
        """Evidence quality weighs 0.7, assumption reliability 0.3; capped at 1."""

        weighted = evidence_quality * 0.7 + assumption_reliability * 0.3
        return min(base_confidence * weighted, 1.0)

    def log_execution(self, result: StrategyResult, ctx: ResolutionContext) -> None:
        log.debug(
            "[%s] Strategy %s executed: topic=%s method=%s success=%s confidence=%.2f "
            "evidence=%d assumptions=%d",
            ctx.trace_id,
            self.name,
            self.topic,
            self.method,
            result.success,
            result.confidence,
            len(result.used_evidence),
            len(result.used_assumptions),
        )


class AssumedDefaultStrategy(BaseStrategy):
    """Answer a topic from the best available assumption for ``assumption_key``.

    This is the fallback producer used when documents say nothing about a
    topic: its confidence is the assumption's own confidence scaled by the
    policy's reliability for ``assumed_default`` sources.
    """

    method = "fromAssumedDefault"
    source_type = SourceType.ASSUMED_DEFAULT

    def __init__(self, topic: str, assumption_key: str, *, name: str | None = None) -> None:
        self.topic = topic
        self.assumption_key = assumption_key
        self.name = name or f"AssumedDefault[{assumption_key}]"

    def can_handle(self, context: StrategyContext) -> bool:
        return any(a.key == self.assumption_key for a in context.available_assumptions)

    async def execute(self, context: StrategyContext, ctx: ResolutionContext) -> StrategyResult:
        assumption = self.best_assumption(self.assumption_key, context.available_assumptions)
        if assumption is None:
            return StrategyResult.failed(
                f"No assumption available for {self.assumption_key}",
                "Default assumption lookup found nothing",
            )

        confidence = min(assumption.confidence * self.source_reliability(ctx), 1.0)
        alternatives = tuple(
            Alternative(
                value=other.value,
                confidence=other.confidence,
                reason=f"lower-confidence {other.basis} assumption",
            )
            for other in context.available_assumptions
            if other.key == self.assumption_key and other.id != assumption.id
        )
        result = StrategyResult.ok(
            assumption.value,
            confidence,
            f"Assumed {self.assumption_key}={assumption.value!r} from {assumption.basis}"
            + (f" ({assumption.source})" if assumption.source else ""),
            used_assumptions=(assumption.id,),
            alternatives=alternatives,
        )
        self.log_execution(result, ctx)
        return result

