from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from arbiter.ui import cli
from tests.support.batches import write_batch

if TYPE_CHECKING:
    from pathlib import Path

    from arbiter.domain.resolution import ResolutionOutput


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "load_dotenv", lambda: False)
    for name in ("ARBITER_POLICY_PATH", "ARBITER_MAX_WORKERS", "ARBITER_STAGE"):
        monkeypatch.delenv(name, raising=False)


def test_cli_resolve_prints_summary(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = write_batch(tmp_path / "batch.json")

    cli.main(["resolve", str(path)])

    out = capsys.readouterr().out
    assert "Resolved 2 topics: auto=1 manual_review=1 policy_violations=0 flags=1" in out
    assert "Conflict Resolution Report" not in out


def test_cli_resolve_with_report_and_overrides(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    path = write_batch(tmp_path / "batch.json")
    policy = tmp_path / "policy.toml"
    policy.write_text("[thresholds]\nacceptInference = 0.95\n", encoding="utf-8")

    cli.main(
        ["resolve", str(path), "--policy", str(policy), "--max-workers", "2", "--report"]
    )

    out = capsys.readouterr().out
    assert "policy_violations=2" in out
    assert "=== Conflict Resolution Report ===" in out
    assert "  - door_width" in out


def test_cli_passes_config_to_resolution(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    captured: dict[str, object] = {}
    original = cli.resolve_batch

    def spy(*args: object, **kwargs: object) -> ResolutionOutput:
        captured.update(kwargs)
        return original(*args, **kwargs)  # type: ignore[arg-type]

    monkeypatch.setattr(cli, "resolve_batch", spy)

    cli.main(["resolve", str(write_batch(tmp_path / "batch.json")), "--stage", "Review"])

    config = captured["config"]
    assert config.stage_name == "Review"  # type: ignore[attr-defined]
    assert config.max_workers == 1  # type: ignore[attr-defined]


def test_cli_rejects_invalid_worker_count(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["resolve", str(tmp_path / "batch.json"), "--max-workers", "0"])

    assert excinfo.value.code == 2


def test_cli_rejects_unknown_command() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["audit"])

    assert excinfo.value.code == 2


def test_cli_missing_batch_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["resolve", str(tmp_path / "absent.json")])

    assert excinfo.value.code == 1
