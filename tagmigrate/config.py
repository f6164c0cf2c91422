"""
Runtime settings read from the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional


MIN_SETTLE_SECONDS = 0.5
MAX_PAGE_SIZE = 1000


@dataclass
class Settings:
    """Tunables for discovery retries, verification and run state."""
    home: str = ".tagmigrate"
    provider: str = "azure"
    memory_fixture: Optional[str] = None
    page_size: int = MAX_PAGE_SIZE
    settle_seconds: float = MIN_SETTLE_SECONDS
    max_attempts: int = 5
    backoff_initial: float = 0.5
    backoff_max: float = 8.0
    log_level: str = "INFO"


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got '{raw}'")


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'")


def load_settings() -> Settings:
    """
    Build settings from TAGMIGRATE_* environment variables.

    The settle delay is clamped to MIN_SETTLE_SECONDS so verification always
    waits for the tag service to converge.

    Returns:
        Settings populated from the environment with defaults applied

    Raises:
        ValueError: If a numeric variable cannot be parsed
    """
    settle = _float_env("TAGMIGRATE_SETTLE_SECONDS", MIN_SETTLE_SECONDS)

    return Settings(
        home=os.getenv("TAGMIGRATE_HOME", ".tagmigrate"),
        provider=os.getenv("TAGMIGRATE_PROVIDER", "azure"),
        memory_fixture=os.getenv("TAGMIGRATE_MEMORY_FIXTURE") or None,
        page_size=_int_env("TAGMIGRATE_PAGE_SIZE", MAX_PAGE_SIZE),
        settle_seconds=max(settle, MIN_SETTLE_SECONDS),
        max_attempts=_int_env("TAGMIGRATE_MAX_ATTEMPTS", 5),
        backoff_initial=_float_env("TAGMIGRATE_BACKOFF_INITIAL", 0.5),
        backoff_max=_float_env("TAGMIGRATE_BACKOFF_MAX", 8.0),
        log_level=os.getenv("TAGMIGRATE_LOG_LEVEL", "INFO").upper(),
    )
