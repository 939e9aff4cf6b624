"""Policy documents (TOML or JSON) validated into ``Policy`` objects."""

from __future__ import annotations

import json
import tomllib
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from arbiter.domain.policy import Policy, default_policy, merge_policy, validate_policy

from .errors import PolicyValidationError

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)


class ThresholdsDocument(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    accept_inference: float | None = Field(default=None, ge=0, le=1, alias="acceptInference")
    conflict_gap: float | None = Field(default=None, ge=0, le=1, alias="conflictGap")
    max_ambiguity: float | None = Field(default=None, ge=0, le=1, alias="maxAmbiguity")


class PolicyDocument(BaseModel):
    """On-disk policy; omitted sections fall back to the default policy."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str | None = None
    version: str | None = None
    thresholds: ThresholdsDocument = Field(default_factory=ThresholdsDocument)
    source_reliability: dict[str, float] = Field(
        default_factory=dict[str, float], alias="sourceReliability"
    )
    tiebreakers: list[str] | None = None

    @field_validator("source_reliability")
    @classmethod
    def _weights_in_range(cls, value: dict[str, float]) -> dict[str, float]:
        for source_type, weight in value.items():
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"reliability for {source_type} must be within [0, 1]")
        return value

    def to_policy(self, base: Policy | None = None) -> Policy:
        thresholds = self.thresholds.model_dump(exclude_none=True)
        return merge_policy(
            base or default_policy(),
            policy_id=self.id,
            version=self.version,
            thresholds=thresholds,
            source_reliability=self.source_reliability,
            tiebreakers=self.tiebreakers,
        )


def parse_policy(data: object, *, strict: bool = False) -> Policy:
    """Validate raw policy data; ``strict`` turns advisory problems into errors."""

    try:
        document = PolicyDocument.model_validate(data)
    except ValidationError as exc:
        problems = tuple(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise PolicyValidationError("Invalid policy document", errors=problems) from exc

    policy = document.to_policy()
    problems = validate_policy(policy)
    if problems and strict:
        raise PolicyValidationError(f"Policy {policy.id} failed validation", errors=problems)
    for problem in problems:
        log.warning("Policy %s: %s", policy.id, problem)
    return policy


def load_policy_file(path: Path, *, strict: bool = False) -> Policy:
    """Load a ``.toml`` or ``.json`` policy file."""

    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            with path.open("rb") as handle:
                data: object = tomllib.load(handle)
        elif suffix == ".json":
            with path.open(encoding="utf-8") as handle:
                data = json.load(handle)
        else:
            raise PolicyValidationError(f"Unsupported policy file type: {path.name}")
    except (OSError, tomllib.TOMLDecodeError, json.JSONDecodeError) as exc:
        raise PolicyValidationError(f"Cannot read policy file {path}: {exc}") from exc

    # TOML documents may nest everything under a [policy] table.
    if isinstance(data, dict) and set(data) == {"policy"}:
        data = data["policy"]
    return parse_policy(data, strict=strict)


