"""Resolution engine error definitions."""

from __future__ import annotations


class ResolutionError(RuntimeError):
    """Base class for errors raised by the resolution engine."""


class UnknownThresholdError(ResolutionError, KeyError):
    """Raised when a policy is asked for a threshold it does not define."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class MalformedBatchError(ResolutionError):
    """Raised when a batch of inferences cannot be grouped by topic."""
