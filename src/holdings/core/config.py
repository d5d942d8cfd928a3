"""
Holdings registry configuration.

Values are read from environment variables once, at import time. Contracts
and the world state take them as constructor defaults, so tests and embedding
code can override them per instance.
"""

from __future__ import annotations

import logging
import os

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    """Read an integer setting, rejecting malformed or out-of-range values."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{env_var} must be >= {minimum}, got {value}")
    return value


def _get_flag(env_var: str, default: bool = False) -> bool:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    if raw not in ("0", "1"):
        raise ConfigurationError(f"{env_var} must be '0' or '1', got {raw!r}")
    return raw == "1"


ENVIRONMENT = os.getenv("HOLDINGS_ENVIRONMENT", "development").strip() or "development"

LOG_LEVEL = os.getenv("HOLDINGS_LOG_LEVEL", "INFO").strip().upper() or "INFO"
if LOG_LEVEL not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
    raise ConfigurationError(f"HOLDINGS_LOG_LEVEL has unknown level {LOG_LEVEL!r}")

LOG_FILE = os.getenv("HOLDINGS_LOG_FILE", "").strip()

# Nested message calls (forwarded calls and their reentrant sub-calls)
MAX_CALL_DEPTH = _get_int("HOLDINGS_MAX_CALL_DEPTH", 64, minimum=1)

# Burned token ids stay retired unless this is enabled
ALLOW_REMINT = _get_flag("HOLDINGS_ALLOW_REMINT", False)

if ALLOW_REMINT:
    logger.warning(
        "Re-minting of burned token ids is enabled",
        extra={"event": "config.allow_remint", "environment": ENVIRONMENT},
    )
