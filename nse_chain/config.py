"""
Configuration settings for the NSE option-chain poller.

Values come from the environment (optionally a ``.env`` file found in the
working directory or one of its parents) and fall back to the defaults below.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv


def _find_env_file(start: Optional[Path] = None) -> Optional[Path]:
    current_dir = start or Path.cwd()
    for parent in [current_dir] + list(current_dir.parents):
        env_file = parent / ".env"
        if env_file.exists():
            return env_file
    return None


@dataclass(slots=True)
class Settings:
    """Runtime knobs for retrieval, polling and ranking."""

    log_level: str = "INFO"

    # HTTP retrieval
    request_timeout: float = 30.0
    cooldown_seconds: float = 300.0  # after a 403
    backoff_seconds: float = 1.0  # after other non-200 statuses
    max_failures: int = 5
    max_auth_retries: int = 10

    # Polling / presentation
    poll_interval: float = 180.0
    strike_window: int = 16
    stats_file: str = "fo_daily_data.csv"

    # Composite rank weights
    oi_weight: float = 0.4
    volume_weight: float = 0.4
    change_oi_weight: float = 0.2


_ENV_KEYS = {
    "log_level": ("NSE_LOG_LEVEL", str),
    "request_timeout": ("NSE_REQUEST_TIMEOUT", float),
    "cooldown_seconds": ("NSE_COOLDOWN_SECONDS", float),
    "backoff_seconds": ("NSE_BACKOFF_SECONDS", float),
    "max_failures": ("NSE_MAX_FAILURES", int),
    "max_auth_retries": ("NSE_MAX_AUTH_RETRIES", int),
    "poll_interval": ("NSE_POLL_INTERVAL", float),
    "strike_window": ("NSE_STRIKE_WINDOW", int),
    "stats_file": ("NSE_STATS_FILE", str),
    "oi_weight": ("NSE_OI_WEIGHT", float),
    "volume_weight": ("NSE_VOLUME_WEIGHT", float),
    "change_oi_weight": ("NSE_CHANGE_OI_WEIGHT", float),
}


def load_settings(
    environ: Optional[Mapping[str, str]] = None,
    auto_load_env: bool = True,
) -> Settings:
    """
    Build :class:`Settings` from environment variables.

    Args:
        environ: Mapping to read from (defaults to ``os.environ``).
        auto_load_env: If True and ``environ`` is not given, load the nearest
            ``.env`` file first.

    Raises:
        ValueError: If a variable is set but cannot be converted.
    """
    if environ is None:
        if auto_load_env:
            env_file = _find_env_file()
            if env_file is not None:
                load_dotenv(env_file)
        environ = os.environ

    settings = Settings()
    for attr, (key, cast) in _ENV_KEYS.items():
        raw = environ.get(key)
        if raw is None or raw == "":
            continue
        try:
            setattr(settings, attr, cast(raw))
        except ValueError:
            raise ValueError(f"Invalid value for {key}: {raw!r}")
    return settings


__all__ = ["Settings", "load_settings"]
