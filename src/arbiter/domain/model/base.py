"""
Base building blocks:
identity generation, creation timestamps, confidence bounds.
"""

from __future__ import annotations

import itertools
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol, TypeAlias
from uuid import uuid4

Clock: TypeAlias = Callable[[], datetime]


class IdFactory(Protocol):
    """Produce a stable, unique string id for a new ledger entry of kind ``prefix``."""

    def __call__(self, prefix: str) -> str: ...


def uuid_ids(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex}"


class CounterIds:
    """Monotonic, deterministic id factory (one shared sequence across kinds)."""

    def __init__(self, start: int = 1) -> None:
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def __call__(self, prefix: str) -> str:
        with self._lock:
            value = next(self._counter)
        return f"{prefix}_{value:06d}"


def utc_now() -> datetime:
    return datetime.now(tz=UTC)


def check_confidence(value: float, *, what: str) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{what} confidence must be within [0, 1], got {value!r}")
