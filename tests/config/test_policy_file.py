from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from arbiter.config import PolicyValidationError, load_policy_file, parse_policy
from arbiter.domain.model import SourceType

if TYPE_CHECKING:
    from pathlib import Path


def test_load_toml_policy(tmp_path: Path) -> None:
    path = tmp_path / "policy.toml"
    path.write_text(
        """
[policy]
id = "project-7"
version = "2.1.0"
tiebreakers = ["explicit_note", "schedule_table"]

[policy.thresholds]
acceptInference = 0.75
conflictGap = 0.2

[policy.sourceReliability]
vision_llm = 0.7
""",
        encoding="utf-8",
    )

    policy = load_policy_file(path)

    assert policy.id == "project-7"
    assert policy.version == "2.1.0"
    assert policy.get_threshold("acceptInference") == 0.75
    assert policy.get_threshold("conflictGap") == 0.2
    assert policy.get_threshold("maxAmbiguity") == 0.3
    assert policy.get_source_reliability(SourceType.VISION_LLM) == 0.7
    assert policy.get_source_reliability(SourceType.SCHEDULE_TABLE) == 0.9
    assert policy.get_tiebreaker_priority(SourceType.EXPLICIT_NOTE) == 0


def test_load_json_policy_with_snake_case_keys(tmp_path: Path) -> None:
    path = tmp_path / "policy.json"
    path.write_text(json.dumps({"thresholds": {"accept_inference": 0.8}}), encoding="utf-8")

    policy = load_policy_file(path)

    assert policy.id == "default"
    assert policy.get_threshold("acceptInference") == 0.8


def test_out_of_range_threshold_is_rejected() -> None:
    with pytest.raises(PolicyValidationError) as excinfo:
        parse_policy({"thresholds": {"conflictGap": 1.5}})

    assert any("conflictGap" in error for error in excinfo.value.errors)


def test_unknown_threshold_is_rejected() -> None:
    with pytest.raises(PolicyValidationError):
        parse_policy({"thresholds": {"minSupport": 0.2}})


def test_out_of_range_reliability_is_rejected() -> None:
    with pytest.raises(PolicyValidationError, match="Invalid policy document"):
        parse_policy({"sourceReliability": {"vision_llm": 3}})


def test_advisory_problems_warn_unless_strict(caplog: pytest.LogCaptureFixture) -> None:
    data = {"id": "loose", "thresholds": {"acceptInference": 0.4}}

    with caplog.at_level(logging.WARNING):
        policy = parse_policy(data)
    assert policy.get_threshold("acceptInference") == 0.4
    assert "should be >= 0.5" in caplog.text

    with pytest.raises(PolicyValidationError) as excinfo:
        parse_policy(data, strict=True)
    assert excinfo.value.errors


@pytest.mark.parametrize(
    ("name", "content"),
    [("policy.yaml", "id: x"), ("policy.toml", "id = "), ("policy.json", "{")],
)
def test_unreadable_policy_files(tmp_path: Path, name: str, content: str) -> None:
    path = tmp_path / name
    path.write_text(content, encoding="utf-8")

    with pytest.raises(PolicyValidationError):
        load_policy_file(path)


def test_missing_policy_file(tmp_path: Path) -> None:
    with pytest.raises(PolicyValidationError, match="Cannot read policy file"):
        load_policy_file(tmp_path / "absent.toml")
