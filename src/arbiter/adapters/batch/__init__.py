"""JSON batch file adapter."""

from __future__ import annotations

from .schema import BatchDocument
from .translator import (
    translate_assumption,
    translate_evidence,
    translate_inference,
    translate_strategy,
)

__all__ = [
    "BatchDocument",
    "translate_assumption",
    "translate_evidence",
    "translate_inference",
    "translate_strategy",
]
