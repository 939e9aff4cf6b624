"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class EvidenceType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    TABLE = "table"
    SYMBOL = "symbol"
    DIMENSION = "dimension"
    SCHEDULE = "schedule"


class AssumptionBasis(StrEnum):
    IRC_CODE = "irc_code"
    USER_OVERRIDE = "user_override"
    DOCUMENT_DERIVED = "document_derived"
    REGIONAL_DEFAULT = "regional_default"


class FlagType(StrEnum):
    """Out-of-band signal kinds; MISSING_INFO is raised by extractors, not the resolver."""

    LOW_CONFIDENCE = "LOW_CONFIDENCE"
    CONFLICT = "CONFLICT"
    POLICY_VIOLATION = "POLICY_VIOLATION"
    MISSING_INFO = "MISSING_INFO"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ResolutionMethod(StrEnum):
    """How a topic's decision was reached."""

    AUTO = "auto"
    MANUAL_REVIEW = "manual_review"
    POLICY_VIOLATION = "policy_violation"


class SourceType(StrEnum):
    """Producer source types ranked by the default policy."""

    SCHEDULE_TABLE = "schedule_table"
    EXPLICIT_NOTE = "explicit_note"
    PLAN_SYMBOL = "plan_symbol"
    VISION_LLM = "vision_llm"
    ASSUMED_DEFAULT = "assumed_default"
