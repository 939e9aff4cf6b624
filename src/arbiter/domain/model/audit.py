"""Audit records emitted by conflict resolution."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from arbiter.domain.model.base import utc_now

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from arbiter.domain.model.enums import FlagType, Severity


@dataclass(frozen=True, slots=True, kw_only=True)
class PolicySnapshot:
    """Thresholds, tiebreaker order and rule names consulted for one decision."""

    thresholds: Mapping[str, float] = field(default_factory=dict[str, float])
    tiebreakers: tuple[str, ...] = ()
    applied_rules: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class Decision:
    """The single arbitrated outcome for a topic in one resolution pass.

    ``selected_value`` is ``None`` and ``selected_inference_id`` is empty when
    nothing could be selected.
    """

    id: str
    topic: str
    selected_value: object
    selected_inference_id: str
    competing_inferences: tuple[str, ...]
    justification: str
    policy_used: PolicySnapshot
    stage: str
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self) -> None:
        if self.selected_inference_id and self.selected_inference_id in self.competing_inferences:
            raise ValueError(
                f"Decision {self.id}: selected inference {self.selected_inference_id} "
                "cannot also be listed as competing"
            )

    @property
    def is_resolved(self) -> bool:
        return bool(self.selected_inference_id)


@dataclass(eq=False, slots=True, kw_only=True)
class Flag:
    """Out-of-band signal attached to a topic or decision.

    Every field is fixed at creation except ``resolved``, which review workflows
    toggle through ``mark_resolved``.
    """

    id: str
    type: FlagType
    severity: Severity
    message: str
    topic: str | None = None
    evidence_ids: tuple[str, ...] = ()
    assumption_ids: tuple[str, ...] = ()
    inference_ids: tuple[str, ...] = ()
    decision_id: str | None = None
    created_at: datetime = field(default_factory=utc_now)
    resolved: bool = False

    def mark_resolved(self, resolved: bool = True) -> None:
        self.resolved = resolved
