"""Resolution policy: thresholds, source reliability priors, tiebreaker order.

A policy is a pure lookup table. It is never mutated while a run is in
progress; overrides produce a new policy through ``merge_policy``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING, Final

from arbiter.domain.errors import UnknownThresholdError
from arbiter.domain.model import PolicySnapshot, SourceType

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

log = getLogger(__name__)

DEFAULT_POLICY_ID: Final[str] = "default"
LEGACY_POLICY_ID: Final[str] = "legacy_compat_v0"
DEFAULT_SOURCE_RELIABILITY: Final[float] = 0.5
UNRANKED_TIEBREAKER_PRIORITY: Final[int] = 999

ACCEPT_INFERENCE: Final[str] = "acceptInference"
CONFLICT_GAP: Final[str] = "conflictGap"
MAX_AMBIGUITY: Final[str] = "maxAmbiguity"

_THRESHOLD_FIELDS: Final[dict[str, str]] = {
    ACCEPT_INFERENCE: "accept_inference",
    CONFLICT_GAP: "conflict_gap",
    MAX_AMBIGUITY: "max_ambiguity",
    "accept_inference": "accept_inference",
    "conflict_gap": "conflict_gap",
    "max_ambiguity": "max_ambiguity",
}


@dataclass(frozen=True, slots=True)
class Thresholds:
    accept_inference: float = 0.7
    conflict_gap: float = 0.15
    max_ambiguity: float = 0.3


def _default_reliability() -> dict[str, float]:
    return {
        SourceType.SCHEDULE_TABLE: 0.9,
        SourceType.EXPLICIT_NOTE: 0.85,
        SourceType.PLAN_SYMBOL: 0.8,
        SourceType.VISION_LLM: 0.75,
        SourceType.ASSUMED_DEFAULT: 0.6,
    }


def _default_tiebreakers() -> tuple[str, ...]:
    return (
        SourceType.SCHEDULE_TABLE,
        SourceType.EXPLICIT_NOTE,
        SourceType.PLAN_SYMBOL,
        SourceType.VISION_LLM,
    )


@dataclass(frozen=True, slots=True, kw_only=True)
class Policy:
    """Named thresholds, per-source reliability weights and tiebreaker order."""

    id: str = DEFAULT_POLICY_ID
    version: str = "1.0.0"
    thresholds: Thresholds = field(default_factory=Thresholds)
    source_reliability: Mapping[str, float] = field(default_factory=_default_reliability)
    tiebreakers: tuple[str, ...] = field(default_factory=_default_tiebreakers)

    def get_threshold(self, name: str) -> float:
        attribute = _THRESHOLD_FIELDS.get(name)
        if attribute is None:
            raise UnknownThresholdError(f"Policy {self.id} defines no threshold named {name!r}")
        return getattr(self.thresholds, attribute)

    def get_source_reliability(self, source_type: str) -> float:
        return self.source_reliability.get(source_type, DEFAULT_SOURCE_RELIABILITY)

    def get_tiebreaker_priority(self, source_type: str) -> int:
        """Ascending is better; unranked sources lose every tiebreak."""

        try:
            return self.tiebreakers.index(source_type)
        except ValueError:
            return UNRANKED_TIEBREAKER_PRIORITY

    def snapshot(self, *threshold_names: str, rules: Iterable[str]) -> PolicySnapshot:
        return PolicySnapshot(
            thresholds={name: self.get_threshold(name) for name in threshold_names},
            tiebreakers=self.tiebreakers,
            applied_rules=tuple(rules),
        )


def default_policy() -> Policy:
    """Conservative defaults used when no project policy is configured."""

    return Policy()


def merge_policy(
    base: Policy,
    *,
    policy_id: str | None = None,
    version: str | None = None,
    thresholds: Mapping[str, float] | None = None,
    source_reliability: Mapping[str, float] | None = None,
    tiebreakers: Iterable[str] | None = None,
) -> Policy:
    """Return ``base`` with the given overrides applied.

    Threshold and reliability maps are merged key by key; a tiebreaker list
    replaces the base order entirely.
    """

    merged_thresholds = base.thresholds
    if thresholds:
        updates: dict[str, float] = {}
        for name, value in thresholds.items():
            attribute = _THRESHOLD_FIELDS.get(name)
            if attribute is None:
                raise UnknownThresholdError(f"Unknown threshold override {name!r}")
            updates[attribute] = float(value)
        merged_thresholds = replace(base.thresholds, **updates)

    merged_reliability = dict(base.source_reliability)
    if source_reliability:
        merged_reliability.update(source_reliability)

    return Policy(
        id=policy_id or base.id,
        version=version or base.version,
        thresholds=merged_thresholds,
        source_reliability=merged_reliability,
        tiebreakers=tuple(tiebreakers) if tiebreakers is not None else base.tiebreakers,
    )


def validate_policy(policy: Policy) -> tuple[str, ...]:
    """Return advisory problems with ``policy``; an empty tuple means it is sound."""

    errors: list[str] = []
    thresholds = policy.thresholds
    for name in ("accept_inference", "conflict_gap", "max_ambiguity"):
        value = getattr(thresholds, name)
        if not 0.0 <= value <= 1.0:
            errors.append(f"{name} threshold must be within [0, 1], got {value}")

    if thresholds.accept_inference < 0.5:
        errors.append("acceptInference threshold should be >= 0.5 for reliable results")
    if thresholds.conflict_gap < 0.1:
        errors.append("conflictGap threshold should be >= 0.1 to avoid excessive manual review")
    if thresholds.max_ambiguity > 0.5:
        errors.append("maxAmbiguity threshold should be <= 0.5 to maintain quality")

    total_reliability = sum(policy.source_reliability.values())
    if not 2.0 <= total_reliability <= 5.0:
        errors.append("Source reliability weights should sum to between 2.0 and 5.0")

    ranked = set(policy.source_reliability)
    invalid = [source for source in policy.tiebreakers if source not in ranked]
    if invalid:
        errors.append(
            f"Invalid tiebreakers: {', '.join(invalid)}. "
            f"Valid types: {', '.join(sorted(ranked))}"
        )
    return tuple(errors)


class PolicyRegistry:
    """Default policy plus project-specific policies keyed by id."""

    def __init__(self, default: Policy | None = None) -> None:
        self._default = default or default_policy()
        self._projects: dict[str, Policy] = {}

    @property
    def default(self) -> Policy:
        return self._default

    def get(self, policy_id: str) -> Policy:
        project_policy = self._projects.get(policy_id)
        if project_policy is not None:
            return project_policy
        if policy_id not in (DEFAULT_POLICY_ID, LEGACY_POLICY_ID):
            log.warning("Policy %s not found, falling back to default", policy_id)
        return self._default

    def register(
        self,
        project_id: str,
        *,
        thresholds: Mapping[str, float] | None = None,
        source_reliability: Mapping[str, float] | None = None,
        tiebreakers: Iterable[str] | None = None,
        version: str | None = None,
    ) -> Policy:
        """Merge overrides onto the default policy and store it under ``project_id``.

        Advisory problems are logged; the policy is still registered.
        """

        policy = merge_policy(
            self._default,
            policy_id=project_id,
            version=version,
            thresholds=thresholds,
            source_reliability=source_reliability,
            tiebreakers=tiebreakers,
        )
        for problem in validate_policy(policy):
            log.warning("Policy %s: %s", project_id, problem)
        self._projects[project_id] = policy
        return policy

    def add(self, policy: Policy) -> None:
        self._projects[policy.id] = policy

    def available_ids(self) -> tuple[str, ...]:
        return (DEFAULT_POLICY_ID, LEGACY_POLICY_ID, *self._projects)
