"""Append-only audit ledger for evidence, assumptions, inferences, decisions and flags.

The ledger never rejects an entry because of its content. Dangling references
(an inference citing evidence the ledger has not seen, a decision selecting an
unknown inference) are logged and kept in ``warnings`` so callers can report
them; checking references is the caller's responsibility.

Adds are serialized with a lock so concurrent topic resolutions never
interleave a partially written entry.
"""

from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from arbiter.domain.model import (
    Assumption,
    Decision,
    Evidence,
    Flag,
    Inference,
    utc_now,
    uuid_ids,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from arbiter.domain.model import Clock, IdFactory

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LedgerSummary:
    total_evidence: int
    total_assumptions: int
    total_inferences: int
    total_decisions: int
    total_flags: int
    unresolved_flags: int
    average_confidence: float


class InferenceLedger:
    """Append-only store keyed by entity kind."""

    def __init__(
        self,
        run_id: str,
        policy_id: str,
        *,
        ids: IdFactory = uuid_ids,
        clock: Clock = utc_now,
    ) -> None:
        self.id = ids("ledger")
        self.run_id = run_id
        self.policy_id = policy_id
        self.created_at: datetime = clock()
        self.completed_at: datetime | None = None
        self._clock = clock
        self._lock = threading.RLock()
        self._evidence: dict[str, Evidence] = {}
        self._assumptions: dict[str, Assumption] = {}
        self._inferences: dict[str, Inference] = {}
        self._decisions: dict[str, Decision] = {}
        self._flags: dict[str, Flag] = {}
        self._warnings: list[str] = []

    # ------------------------------------------------------------------ adds

    def add_evidence(self, evidence: Evidence) -> str:
        with self._lock:
            if evidence.id not in self._evidence:
                self._evidence[evidence.id] = evidence
        return evidence.id

    def add_assumption(self, assumption: Assumption) -> str:
        with self._lock:
            if assumption.id in self._assumptions:
                return assumption.id
            if assumption.supersedes and assumption.supersedes not in self._assumptions:
                self._warn(
                    f"Assumption {assumption.id} supersedes unknown assumption "
                    f"{assumption.supersedes}"
                )
            self._assumptions[assumption.id] = assumption
        return assumption.id

    def add_inference(self, inference: Inference) -> str:
        with self._lock:
            if inference.id in self._inferences:
                return inference.id
            self._check_references(
                f"Inference {inference.id}",
                evidence_ids=inference.used_evidence,
                assumption_ids=inference.used_assumptions,
            )
            self._inferences[inference.id] = inference
        return inference.id

    def add_decision(self, decision: Decision) -> str:
        with self._lock:
            if decision.id in self._decisions:
                return decision.id
            selected = (decision.selected_inference_id,) if decision.selected_inference_id else ()
            self._check_references(
                f"Decision {decision.id}",
                inference_ids=(*selected, *decision.competing_inferences),
            )
            self._decisions[decision.id] = decision
        return decision.id

    def add_flag(self, flag: Flag) -> str:
        with self._lock:
            if flag.id in self._flags:
                return flag.id
            self._check_references(
                f"Flag {flag.id}",
                evidence_ids=flag.evidence_ids,
                assumption_ids=flag.assumption_ids,
                inference_ids=flag.inference_ids,
            )
            if flag.decision_id and flag.decision_id not in self._decisions:
                self._warn(f"Flag {flag.id} references unknown decision {flag.decision_id}")
            self._flags[flag.id] = flag
        return flag.id

    # --------------------------------------------------------------- lookups

    def get_evidence(self, evidence_id: str) -> Evidence | None:
        return self._evidence.get(evidence_id)

    def get_assumption(self, assumption_id: str) -> Assumption | None:
        return self._assumptions.get(assumption_id)

    def get_inference(self, inference_id: str) -> Inference | None:
        return self._inferences.get(inference_id)

    def get_decision(self, decision_id: str) -> Decision | None:
        return self._decisions.get(decision_id)

    def get_flag(self, flag_id: str) -> Flag | None:
        return self._flags.get(flag_id)

    @property
    def evidence(self) -> tuple[Evidence, ...]:
        with self._lock:
            return tuple(self._evidence.values())

    @property
    def assumptions(self) -> tuple[Assumption, ...]:
        with self._lock:
            return tuple(self._assumptions.values())

    @property
    def inferences(self) -> tuple[Inference, ...]:
        with self._lock:
            return tuple(self._inferences.values())

    @property
    def decisions(self) -> tuple[Decision, ...]:
        with self._lock:
            return tuple(self._decisions.values())

    @property
    def flags(self) -> tuple[Flag, ...]:
        with self._lock:
            return tuple(self._flags.values())

    @property
    def warnings(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._warnings)

    def inferences_for_topic(self, topic: str) -> tuple[Inference, ...]:
        return tuple(inference for inference in self.inferences if inference.topic == topic)

    def decisions_for_topic(self, topic: str) -> tuple[Decision, ...]:
        return tuple(decision for decision in self.decisions if decision.topic == topic)

    def active_assumptions(self) -> tuple[Assumption, ...]:
        """Assumptions not superseded by a later entry."""

        assumptions = self.assumptions
        superseded = {a.supersedes for a in assumptions if a.supersedes}
        return tuple(a for a in assumptions if a.id not in superseded)

    def current_assumption(self, key: str) -> Assumption | None:
        """Highest-confidence active assumption for ``key`` (first added wins ties)."""

        best: Assumption | None = None
        for assumption in self.active_assumptions():
            if assumption.key != key:
                continue
            if best is None or assumption.confidence > best.confidence:
                best = assumption
        return best

    # ------------------------------------------------------------- reporting

    def get_summary(self) -> LedgerSummary:
        with self._lock:
            confidences = [
                *(e.source.confidence for e in self._evidence.values()),
                *(a.confidence for a in self._assumptions.values()),
                *(i.confidence for i in self._inferences.values()),
                *(1.0 for _ in self._decisions),
            ]
            average = sum(confidences) / len(confidences) if confidences else 0.0
            return LedgerSummary(
                total_evidence=len(self._evidence),
                total_assumptions=len(self._assumptions),
                total_inferences=len(self._inferences),
                total_decisions=len(self._decisions),
                total_flags=len(self._flags),
                unresolved_flags=sum(1 for f in self._flags.values() if not f.resolved),
                average_confidence=average,
            )

    def validate_integrity(self) -> tuple[str, ...]:
        """Return every orphaned reference currently in the ledger."""

        errors: list[str] = []
        with self._lock:
            for inference in self._inferences.values():
                errors.extend(
                    self._missing(
                        f"Inference {inference.id}",
                        evidence_ids=inference.used_evidence,
                        assumption_ids=inference.used_assumptions,
                    )
                )
            for decision in self._decisions.values():
                selected = (
                    (decision.selected_inference_id,) if decision.selected_inference_id else ()
                )
                errors.extend(
                    self._missing(
                        f"Decision {decision.id}",
                        inference_ids=(*selected, *decision.competing_inferences),
                    )
                )
            for flag in self._flags.values():
                errors.extend(
                    self._missing(
                        f"Flag {flag.id}",
                        evidence_ids=flag.evidence_ids,
                        assumption_ids=flag.assumption_ids,
                        inference_ids=flag.inference_ids,
                    )
                )
                if flag.decision_id and flag.decision_id not in self._decisions:
                    errors.append(f"Flag {flag.id} references unknown decision {flag.decision_id}")
        return tuple(errors)

    def mark_completed(self) -> None:
        self.completed_at = self._clock()

    def to_dict(self) -> dict[str, object]:
        """Plain-data export for audit bundle builders."""

        with self._lock:
            return {
                "id": self.id,
                "run_id": self.run_id,
                "policy_id": self.policy_id,
                "created_at": self.created_at.isoformat(),
                "completed_at": self.completed_at.isoformat() if self.completed_at else None,
                "evidence": [asdict(e) for e in self._evidence.values()],
                "assumptions": [asdict(a) for a in self._assumptions.values()],
                "inferences": [asdict(i) for i in self._inferences.values()],
                "decisions": [asdict(d) for d in self._decisions.values()],
                "flags": [asdict(f) for f in self._flags.values()],
            }

    # --------------------------------------------------------------- helpers

    def _check_references(
        self,
        owner: str,
        *,
        evidence_ids: Iterable[str] = (),
        assumption_ids: Iterable[str] = (),
        inference_ids: Iterable[str] = (),
    ) -> None:
        for problem in self._missing(
            owner,
            evidence_ids=evidence_ids,
            assumption_ids=assumption_ids,
            inference_ids=inference_ids,
        ):
            self._warn(problem)

    def _missing(
        self,
        owner: str,
        *,
        evidence_ids: Iterable[str] = (),
        assumption_ids: Iterable[str] = (),
        inference_ids: Iterable[str] = (),
    ) -> list[str]:
        problems = [
            f"{owner} references unknown evidence {eid}"
            for eid in evidence_ids
            if eid not in self._evidence
        ]
        problems.extend(
            f"{owner} references unknown assumption {aid}"
            for aid in assumption_ids
            if aid not in self._assumptions
        )
        problems.extend(
            f"{owner} references unknown inference {iid}"
            for iid in inference_ids
            if iid not in self._inferences
        )
        return problems

    def _warn(self, message: str) -> None:
        self._warnings.append(message)
        log.warning("Ledger %s: %s", self.id, message)
