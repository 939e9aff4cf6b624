"""Batch file payloads shared by adapter, app and CLI tests."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


def batch_payload() -> dict[str, object]:
    return {
        "runId": "run-42",
        "policyId": "default",
        "evidence": [
            {
                "id": "ev_1",
                "type": "schedule",
                "source": {
                    "documentId": "A-101",
                    "pageNumber": 4,
                    "extractor": "schedule-parser",
                    "confidence": 0.95,
                },
                "content": {"mark": "D1", "width": "36in"},
            },
        ],
        "assumptions": [
            {
                "id": "asm_1",
                "key": "ceiling_height",
                "value": "8ft",
                "basis": "regional_default",
                "confidence": 0.8,
            },
        ],
        "inferences": [
            {
                "id": "inf_1",
                "topic": "door_width",
                "value": "36in",
                "confidence": 0.9,
                "method": "fromSchedule",
                "usedEvidence": ["ev_1"],
            },
            {
                "id": "inf_2",
                "topic": "door_width",
                "value": "30in",
                "confidence": 0.6,
                "method": "fromVision",
            },
            {
                "id": "inf_3",
                "topic": "ceiling_height",
                "value": "8ft",
                "confidence": 0.85,
                "method": "fromNote",
                "alternatives": [{"value": "9ft", "confidence": 0.4, "reason": "section B"}],
            },
            {
                "id": "inf_4",
                "topic": "ceiling_height",
                "value": "9ft",
                "confidence": 0.8,
                "method": "fromSchedule",
                "usedAssumptions": ["asm_1"],
            },
        ],
        "strategies": [
            {"method": "fromSchedule", "sourceType": "schedule_table"},
            {"method": "fromNote", "sourceType": "explicit_note"},
            {"method": "fromVision", "sourceType": "vision_llm"},
        ],
    }


def write_batch(path: Path, payload: dict[str, object] | None = None) -> Path:
    path.write_text(json.dumps(payload or batch_payload()), encoding="utf-8")
    return path
