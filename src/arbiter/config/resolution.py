"""Resolution run configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_int, optional_env_var
from .errors import ConfigurationError

DEFAULT_STAGE_NAME: Final[str] = "ConflictResolution"
DEFAULT_POLICY_ID: Final[str] = "default"
DEFAULT_MAX_WORKERS: Final[int] = 1


@dataclass(frozen=True, slots=True)
class ResolutionConfig:
    policy_path: Path | None = None
    policy_id: str = DEFAULT_POLICY_ID
    stage_name: str = DEFAULT_STAGE_NAME
    max_workers: int = DEFAULT_MAX_WORKERS
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ConfigurationError(f"max_workers must be at least 1, got {self.max_workers}")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigurationError(f"Unknown log level: {self.log_level}")


def get_resolution_config() -> ResolutionConfig:
    policy_path = optional_env_var("ARBITER_POLICY_PATH")
    return ResolutionConfig(
        policy_path=Path(policy_path).expanduser() if policy_path else None,
        policy_id=optional_env_var("ARBITER_POLICY_ID") or DEFAULT_POLICY_ID,
        stage_name=optional_env_var("ARBITER_STAGE") or DEFAULT_STAGE_NAME,
        max_workers=env_int("ARBITER_MAX_WORKERS", DEFAULT_MAX_WORKERS),
        log_level=optional_env_var("ARBITER_LOG_LEVEL") or "INFO",
    )
