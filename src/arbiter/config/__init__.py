"""Application configuration helpers."""

from __future__ import annotations

from .env import env_int, optional_env_var
from .errors import ConfigurationError, PolicyValidationError
from .logging import configure_logging
from .policy_file import PolicyDocument, load_policy_file, parse_policy
from .resolution import ResolutionConfig, get_resolution_config

__all__ = [
    "ConfigurationError",
    "PolicyDocument",
    "PolicyValidationError",
    "ResolutionConfig",
    "configure_logging",
    "env_int",
    "get_resolution_config",
    "load_policy_file",
    "optional_env_var",
    "parse_policy",
]
