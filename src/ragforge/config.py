"""Runtime settings resolved from the process environment."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass

LOGGER = logging.getLogger(__name__)

API_KEY_ENV_KEYS: tuple[str, str, str] = (
    "API_KEY",
    "GEMINI_API_KEY",
    "GOOGLE_API_KEY",
)

DEFAULT_MAX_UPLOAD_BYTES = 10 * 1024 * 1024
DEFAULT_MAX_SESSIONS = 100
DEFAULT_SESSION_IDLE_SECONDS = 3600.0


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


def _api_key_from_env() -> str | None:
    for key in API_KEY_ENV_KEYS:
        value = os.getenv(key)
        if value and value.strip():
            return value.strip()
    return None


@dataclass(frozen=True, slots=True)
class Settings:
    """Explicit configuration handed to the session layer at start-up."""

    api_key: str | None = None
    request_timeout_seconds: float = 60.0
    temperature: float = 0.3
    time_scale: float = 1.0
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    max_sessions: int = DEFAULT_MAX_SESSIONS
    session_idle_seconds: float = DEFAULT_SESSION_IDLE_SECONDS


def load_settings() -> Settings:
    """Build :class:`Settings` from environment variables."""

    time_scale = _float_from_env("PROCESSING_TIME_SCALE", 1.0)
    if time_scale < 0:
        LOGGER.warning("PROCESSING_TIME_SCALE must not be negative; using 1.0")
        time_scale = 1.0

    timeout = _float_from_env("LLM_REQUEST_TIMEOUT", 60.0)
    if timeout <= 0:
        LOGGER.warning("LLM_REQUEST_TIMEOUT must be positive; using 60.0")
        timeout = 60.0

    max_sessions = _int_from_env("MAX_SESSIONS", DEFAULT_MAX_SESSIONS)
    if max_sessions < 1:
        LOGGER.warning("MAX_SESSIONS must be at least 1; using %s", DEFAULT_MAX_SESSIONS)
        max_sessions = DEFAULT_MAX_SESSIONS

    idle_seconds = _float_from_env("SESSION_IDLE_SECONDS", DEFAULT_SESSION_IDLE_SECONDS)
    if idle_seconds <= 0:
        LOGGER.warning("SESSION_IDLE_SECONDS must be positive; using %s", DEFAULT_SESSION_IDLE_SECONDS)
        idle_seconds = DEFAULT_SESSION_IDLE_SECONDS

    return Settings(
        api_key=_api_key_from_env(),
        request_timeout_seconds=timeout,
        temperature=_float_from_env("LLM_TEMPERATURE", 0.3),
        time_scale=time_scale,
        max_upload_bytes=_int_from_env("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
        max_sessions=max_sessions,
        session_idle_seconds=idle_seconds,
    )


__all__ = [
    "API_KEY_ENV_KEYS",
    "DEFAULT_MAX_SESSIONS",
    "DEFAULT_MAX_UPLOAD_BYTES",
    "DEFAULT_SESSION_IDLE_SECONDS",
    "Settings",
    "load_settings",
]
