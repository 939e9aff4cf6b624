# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from arbiter.app import load_batch, resolve_batch
from arbiter.config import (
    ConfigurationError,
    configure_logging,
    get_resolution_config,
)
from arbiter.domain.resolution import resolution_report

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from arbiter.config import ResolutionConfig

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Resolve competing inferences into decisions")
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve = subparsers.add_parser("resolve", help="Resolve a JSON batch of inferences")
    resolve.add_argument("batch", type=Path, help="Path to the batch file")
    resolve.add_argument(
        "--policy",
        type=Path,
        help="Policy file (.toml or .json); overrides ARBITER_POLICY_PATH",
    )
    resolve.add_argument(
        "--stage",
        type=str,
        help="Stage name recorded on decisions (defaults to config)",
    )
    resolve.add_argument(
        "--max-workers",
        type=int,
        help="Number of topics resolved concurrently (defaults to config)",
    )
    resolve.add_argument(
        "--report",
        action="store_true",
        help="Print the full resolution report",
    )

    return parser.parse_args(list(argv))


def _build_config(args: argparse.Namespace) -> ResolutionConfig:
    config = get_resolution_config()
    overrides: dict[str, object] = {}
    if args.policy is not None:
        overrides["policy_path"] = args.policy
    if args.stage:
        overrides["stage_name"] = args.stage
    if args.max_workers is not None:
        if args.max_workers < 1:
            raise ValueError("--max-workers must be at least 1")
        overrides["max_workers"] = args.max_workers
    return replace(config, **overrides) if overrides else config


def _run_resolve(args: argparse.Namespace, config: ResolutionConfig) -> None:
    batch = load_batch(args.batch)
    output = resolve_batch(
        batch.inferences,
        batch.strategies,
        ledger=batch.ledger,
        config=config,
    )
    batch.ledger.mark_completed()

    summary = output.resolution_summary
    print(
        f"Resolved {output.total_decisions} topics: auto={summary.auto_resolved} "
        f"manual_review={summary.manual_review} policy_violations={summary.policy_violations} "
        f"flags={output.total_flags}"
    )
    if args.report:
        print(resolution_report(output))
    for warning in batch.ledger.warnings:
        log.warning("Ledger warning: %s", warning)


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        config = _build_config(parsed_args)
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    logging.getLogger().setLevel(config.log_level.upper())

    try:
        if parsed_args.command == "resolve":
            _run_resolve(parsed_args, config)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except Exception:
        log.exception("Fatal error during resolution")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
