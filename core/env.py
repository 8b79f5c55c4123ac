"""Environment variable helpers."""

from __future__ import annotations

import os
from typing import List, Optional

from core.logging import get_logger

logger = get_logger(__name__)

_TRUTHY = {"1", "true", "yes", "y", "on"}
_FALSY = {"0", "false", "no", "n", "off"}


def env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key, default)
    if value is None:
        logger.debug("Environment variable %s not set. Using default=%s.", key, default)
    return value


def env_int(key: str, default: int, *, minimum: Optional[int] = None) -> int:
    raw = os.getenv(key)
    if raw is None:
        return default
    try:
        value = int(raw)
        if minimum is not None and value < minimum:
            raise ValueError
        return value
    except ValueError:
        logger.warning("Invalid %s value '%s'. Falling back to %d.", key, raw, default)
        return default


def env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    logger.warning("Invalid boolean env %s='%s'. Using default=%s.", key, raw, default)
    return default


def env_list(key: str, default: Optional[List[str]] = None) -> List[str]:
    """Split a comma separated variable, dropping blanks."""

    raw = os.getenv(key)
    if raw is None:
        return list(default or [])
    return [part.strip() for part in raw.split(",") if part.strip()]


__all__ = ["env_bool", "env_int", "env_list", "env_str"]
