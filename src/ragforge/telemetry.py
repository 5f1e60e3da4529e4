"""Structured lifecycle events for sessions, processing and inference.

Every event is a dictionary logged through the standard ``logging`` module;
:class:`~ragforge.logging_config.MinimalJSONFormatter` turns it into one JSON
line. Events always carry ``step`` and ``module`` and may add ``req_id``,
``session_id``, ``duration_ms``, ``details`` and ``exc``.
"""

from __future__ import annotations

import logging
import os
import platform
import sys
import time
import traceback
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

LOGGER = logging.getLogger("ragforge.telemetry")

PREVIEW_CHARS = 120

# Settings worth echoing at start-up. Credentials are never listed here.
_STARTUP_ENV_KEYS: tuple[str, ...] = (
    "LLM_REQUEST_TIMEOUT",
    "LLM_TEMPERATURE",
    "PROCESSING_TIME_SCALE",
    "MAX_UPLOAD_BYTES",
    "MAX_SESSIONS",
    "SESSION_IDLE_SECONDS",
    "LOG_LEVEL",
    "LOG_DIR",
)


def _preview(text: str) -> str:
    return text[:PREVIEW_CHARS]


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    session_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Log one structured event; empty identifiers are left out."""

    target = logger or LOGGER
    optional = {
        "req_id": req_id or None,
        "session_id": session_id or None,
        "duration_ms": None if duration_ms is None else round(duration_ms, 3),
        "details": details,
    }
    event: dict[str, Any] = {"step": step, "module": target.name}
    event.update({key: value for key, value in optional.items() if value is not None})
    event.update(payload)

    exc_info: Any = None
    if isinstance(exc, BaseException):
        event["exc"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        exc_info = (type(exc), exc, exc.__traceback__)
    elif exc is not None:
        event["exc"] = str(exc)

    target.log(logging.getLevelName(level.upper()), event, exc_info=exc_info)


def emit_app_startup_event(*, has_api_key: bool) -> None:
    env = {key: value for key in _STARTUP_ENV_KEYS if (value := os.getenv(key)) is not None}
    log_event(
        LOGGER,
        "app.startup",
        details={
            "env": env,
            "has_api_key": has_api_key,
            "python": platform.python_version(),
            "platform": platform.platform(),
            "executable": sys.executable,
            "cwd": str(Path.cwd()),
        },
    )


def emit_session_transition(*, session_id: str, source: str, target: str, trigger: str) -> None:
    log_event(
        LOGGER,
        "session.transition",
        session_id=session_id,
        details={"from": source, "to": target, "trigger": trigger},
    )


def emit_stage_event(
    step: str,
    *,
    session_id: str | None,
    stage: str,
    index: int,
    duration_ms: float | None = None,
) -> None:
    log_event(
        LOGGER,
        step,
        session_id=session_id,
        duration_ms=duration_ms,
        details={"stage": stage, "index": index},
    )


def emit_inference_request(
    *,
    req_id: str,
    session_id: str | None,
    model: str,
    system_prompt: str,
    prompt_len: int,
    history_len: int,
    temperature: float,
    attachment_bytes: int,
) -> None:
    log_event(
        LOGGER,
        "inference.request",
        req_id=req_id,
        session_id=session_id,
        details={
            "model": model,
            "system_prompt_preview": _preview(system_prompt),
            "prompt_len": prompt_len,
            "history_len": history_len,
            "temperature": temperature,
            "attachment_bytes": attachment_bytes,
        },
    )


def emit_inference_result(
    *,
    req_id: str,
    session_id: str | None,
    duration_ms: float,
    model_used: str,
    answer_preview: str,
    status: str,
) -> None:
    log_event(
        LOGGER,
        "inference.result",
        level="warning" if status == "error" else "info",
        req_id=req_id,
        session_id=session_id,
        duration_ms=duration_ms,
        details={"model_used": model_used, "answer_preview": _preview(answer_preview), "status": status},
    )


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    session_id: str | None = None,
) -> None:
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        session_id=session_id,
        details={"module": module, "type": type(error).__name__},
        exc=error,
    )


@contextmanager
def traced_duration(step: str, *, session_id: str | None = None, **fields: Any) -> Iterator[None]:
    """Log ``<step>.complete`` or ``<step>.error`` with the elapsed time."""

    started = time.perf_counter()
    try:
        yield
    except Exception as error:
        log_event(
            LOGGER,
            f"{step}.error",
            level="warning",
            session_id=session_id,
            duration_ms=_elapsed_ms(started),
            details=fields,
            exc=str(error),
        )
        raise
    log_event(LOGGER, f"{step}.complete", session_id=session_id, duration_ms=_elapsed_ms(started), details=fields)


__all__ = [
    "emit_app_startup_event",
    "emit_exception",
    "emit_inference_request",
    "emit_inference_result",
    "emit_session_transition",
    "emit_stage_event",
    "log_event",
    "traced_duration",
]
