"""Application orchestration entry points."""

from __future__ import annotations

import json
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from pydantic import ValidationError

from arbiter.adapters.batch import (
    BatchDocument,
    translate_assumption,
    translate_evidence,
    translate_inference,
    translate_strategy,
)
from arbiter.config import get_resolution_config, load_policy_file
from arbiter.domain.context import ResolutionContext
from arbiter.domain.errors import MalformedBatchError
from arbiter.domain.ledger import InferenceLedger
from arbiter.domain.model import utc_now, uuid_ids
from arbiter.domain.policy import PolicyRegistry
from arbiter.domain.resolution import ResolutionOutput, ResolutionStage

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from arbiter.config import ResolutionConfig
    from arbiter.domain.model import Clock, IdFactory, Inference
    from arbiter.domain.policy import Policy
    from arbiter.domain.strategy import StrategyDescriptor, StrategyLike

log = getLogger(__name__)


@dataclass(slots=True, kw_only=True)
class LoadedBatch:
    """A batch file's records with the ledger they were appended to."""

    ledger: InferenceLedger
    inferences: tuple[Inference, ...]
    strategies: tuple[StrategyDescriptor, ...]


def load_batch(path: Path, *, ids: IdFactory = uuid_ids, clock: Clock = utc_now) -> LoadedBatch:
    """Read a JSON batch file and append its evidence, assumptions and inferences to a new ledger."""

    try:
        with path.open(encoding="utf-8") as handle:
            payload = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise MalformedBatchError(f"Cannot read batch file {path}: {exc}") from exc

    try:
        document = BatchDocument.model_validate(payload)
    except ValidationError as exc:
        raise MalformedBatchError(f"Invalid batch file {path}: {exc}") from exc

    try:
        evidence = [translate_evidence(item) for item in document.evidence]
        assumptions = [translate_assumption(item) for item in document.assumptions]
        inferences = tuple(translate_inference(item) for item in document.inferences)
    except ValueError as exc:
        raise MalformedBatchError(f"Invalid batch file {path}: {exc}") from exc

    ledger = InferenceLedger(
        run_id=document.run_id or path.stem,
        policy_id=document.policy_id or "default",
        ids=ids,
        clock=clock,
    )
    for item in evidence:
        ledger.add_evidence(item)
    for item in assumptions:
        ledger.add_assumption(item)
    for item in inferences:
        ledger.add_inference(item)

    log.info(
        "Loaded batch %s: evidence=%d, assumptions=%d, inferences=%d, strategies=%d",
        path.name,
        len(evidence),
        len(assumptions),
        len(inferences),
        len(document.strategies),
    )
    return LoadedBatch(
        ledger=ledger,
        inferences=inferences,
        strategies=tuple(translate_strategy(item) for item in document.strategies),
    )


def resolve_batch(
    inferences: Iterable[Inference],
    strategies: Iterable[StrategyLike],
    *,
    ledger: InferenceLedger,
    config: ResolutionConfig | None = None,
    policy: Policy | None = None,
    ids: IdFactory = uuid_ids,
    clock: Clock = utc_now,
) -> ResolutionOutput:
    """Resolve every topic in ``inferences`` and record the outcome in ``ledger``.

    The policy comes from ``policy`` when given, else from the configured policy
    file, else from the registry by the configured policy id.
    """

    effective_config = config or get_resolution_config()
    effective_policy = policy or _configured_policy(effective_config)
    ctx = ResolutionContext(
        policy=effective_policy,
        ledger=ledger,
        stage=effective_config.stage_name,
        ids=ids,
        clock=clock,
    )
    log.info(
        "Starting resolution: run=%s, policy=%s@%s, stage=%s, max_workers=%d",
        ledger.run_id,
        effective_policy.id,
        effective_policy.version,
        ctx.stage,
        effective_config.max_workers,
    )
    stage = ResolutionStage(max_workers=effective_config.max_workers)
    return stage.run(inferences, strategies, ctx)


def _configured_policy(config: ResolutionConfig) -> Policy:
    if config.policy_path is not None:
        return load_policy_file(config.policy_path)
    return PolicyRegistry().get(config.policy_id)
