from __future__ import annotations

import threading
from typing import TYPE_CHECKING

import pytest

from arbiter.domain.model import (
    Assumption,
    AssumptionBasis,
    Decision,
    Evidence,
    EvidenceSource,
    EvidenceType,
    Flag,
    FlagType,
    PolicySnapshot,
    Severity,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from arbiter.domain.ledger import InferenceLedger
    from arbiter.domain.model import Inference

    InferenceFactory = Callable[..., Inference]


def _evidence(evidence_id: str = "ev_1", confidence: float = 0.9) -> Evidence:
    return Evidence(
        id=evidence_id,
        type=EvidenceType.SCHEDULE,
        source=EvidenceSource(
            document_id="doc-1",
            page_number=3,
            extractor="schedule-parser",
            confidence=confidence,
        ),
        content={"mark": "D1", "width": "36in"},
    )


def _assumption(
    assumption_id: str,
    *,
    value: object = "36in",
    confidence: float = 0.6,
    supersedes: str | None = None,
) -> Assumption:
    return Assumption(
        id=assumption_id,
        key="door_width",
        value=value,
        basis=AssumptionBasis.IRC_CODE,
        confidence=confidence,
        supersedes=supersedes,
    )


def _decision(decision_id: str, selected: str, competing: tuple[str, ...] = ()) -> Decision:
    return Decision(
        id=decision_id,
        topic="door_width",
        selected_value="36in",
        selected_inference_id=selected,
        competing_inferences=competing,
        justification="test",
        policy_used=PolicySnapshot(),
        stage="ConflictResolution",
    )


def test_ledger_records_entries_in_insertion_order(
    ledger: InferenceLedger, make_inference: InferenceFactory
) -> None:
    ledger.add_evidence(_evidence("ev_1"))
    ledger.add_evidence(_evidence("ev_2"))
    first = make_inference(0.9, used_evidence=("ev_1",))
    second = make_inference(0.8, used_evidence=("ev_2",))
    ledger.add_inference(first)
    ledger.add_inference(second)

    assert [evidence.id for evidence in ledger.evidence] == ["ev_1", "ev_2"]
    assert ledger.inferences == (first, second)
    assert ledger.get_inference(first.id) is first
    assert ledger.warnings == ()


def test_ledger_ignores_duplicate_ids(
    ledger: InferenceLedger, make_inference: InferenceFactory
) -> None:
    inference = make_inference(0.9)
    ledger.add_inference(inference)
    ledger.add_inference(make_inference(0.1, inference_id=inference.id))

    assert ledger.inferences == (inference,)


def test_dangling_references_are_warnings_not_errors(
    ledger: InferenceLedger, make_inference: InferenceFactory
) -> None:
    inference = make_inference(0.9, used_evidence=("ev_missing",))

    ledger.add_inference(inference)
    ledger.add_decision(_decision("dec_1", "inf_missing"))

    assert ledger.get_inference(inference.id) is inference
    assert ledger.get_decision("dec_1") is not None
    assert ledger.warnings == (
        f"Inference {inference.id} references unknown evidence ev_missing",
        "Decision dec_1 references unknown inference inf_missing",
    )


def test_validate_integrity_lists_orphans(
    ledger: InferenceLedger, make_inference: InferenceFactory
) -> None:
    inference = make_inference(0.9, used_assumptions=("asm_missing",))
    ledger.add_inference(inference)
    ledger.add_flag(
        Flag(
            id="flag_1",
            type=FlagType.MISSING_INFO,
            severity=Severity.LOW,
            message="width not found",
            decision_id="dec_missing",
        )
    )

    errors = ledger.validate_integrity()

    assert f"Inference {inference.id} references unknown assumption asm_missing" in errors
    assert "Flag flag_1 references unknown decision dec_missing" in errors


def test_superseded_assumptions_stay_recorded_but_inactive(ledger: InferenceLedger) -> None:
    original = _assumption("asm_1", value="32in", confidence=0.9)
    override = _assumption("asm_2", value="36in", confidence=0.7, supersedes="asm_1")
    ledger.add_assumption(original)
    ledger.add_assumption(override)

    assert ledger.assumptions == (original, override)
    assert ledger.active_assumptions() == (override,)
    assert ledger.current_assumption("door_width") is override
    assert ledger.current_assumption("ceiling_height") is None


def test_summary_counts_and_average_confidence(
    ledger: InferenceLedger, make_inference: InferenceFactory
) -> None:
    ledger.add_evidence(_evidence(confidence=0.8))
    ledger.add_assumption(_assumption("asm_1", confidence=0.6))
    inference = make_inference(0.7)
    ledger.add_inference(inference)
    ledger.add_decision(_decision("dec_1", inference.id))
    flag = Flag(id="flag_1", type=FlagType.CONFLICT, severity=Severity.LOW, message="m")
    ledger.add_flag(flag)
    ledger.add_flag(
        Flag(id="flag_2", type=FlagType.CONFLICT, severity=Severity.LOW, message="m", resolved=True)
    )

    summary = ledger.get_summary()

    assert summary.total_evidence == 1
    assert summary.total_assumptions == 1
    assert summary.total_inferences == 1
    assert summary.total_decisions == 1
    assert summary.total_flags == 2
    assert summary.unresolved_flags == 1
    assert summary.average_confidence == pytest.approx((0.8 + 0.6 + 0.7 + 1.0) / 4)

    flag.mark_resolved()
    assert ledger.get_summary().unresolved_flags == 0


def test_empty_ledger_summary(ledger: InferenceLedger) -> None:
    summary = ledger.get_summary()

    assert summary.total_flags == 0
    assert summary.average_confidence == 0.0


def test_to_dict_exports_entries(ledger: InferenceLedger, make_inference: InferenceFactory) -> None:
    ledger.add_evidence(_evidence())
    ledger.add_inference(make_inference(0.9, used_evidence=("ev_1",)))
    ledger.mark_completed()

    exported = ledger.to_dict()

    assert exported["run_id"] == "run-1"
    assert exported["policy_id"] == "default"
    assert exported["completed_at"] == "2025-03-01T12:00:00+00:00"
    assert exported["inferences"][0]["used_evidence"] == ("ev_1",)  # type: ignore[index]
    assert exported["evidence"][0]["source"]["page_number"] == 3  # type: ignore[index]


def test_concurrent_adds_are_all_recorded(
    ledger: InferenceLedger, make_inference: InferenceFactory
) -> None:
    inferences = [make_inference(0.5, topic=f"topic_{index}") for index in range(200)]

    def add(chunk: list[Inference]) -> None:
        for inference in chunk:
            ledger.add_inference(inference)

    threads = [threading.Thread(target=add, args=(inferences[i::4],)) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert ledger.get_summary().total_inferences == 200
    assert ledger.inferences_for_topic("topic_7") == (inferences[7],)
