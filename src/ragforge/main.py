"""FastAPI application entrypoint (``uvicorn ragforge.main:app``)."""
from __future__ import annotations

import logging

from fastapi import Depends, FastAPI
from fastapi.responses import PlainTextResponse

from ragforge import __version__
from ragforge.api import sessions_router
from ragforge.logging_config import configure_logging
from ragforge.prompt_builder import select_execution_model
from ragforge.services.sessions import SessionRegistry, get_session_registry
from ragforge.session.configuration import HOSTED_ADVANCED_MODEL, PipelineConfig
from ragforge.telemetry import emit_app_startup_event

configure_logging()

LOGGER = logging.getLogger(__name__)

app = FastAPI(title="RAGForge API", version=__version__)
app.include_router(sessions_router)


@app.on_event("startup")
async def _emit_startup() -> None:
    registry = app.dependency_overrides.get(get_session_registry, get_session_registry)()
    emit_app_startup_event(has_api_key=registry.engine.has_credential())


@app.get("/", response_class=PlainTextResponse)
def read_root() -> str:
    """Healthcheck endpoint for the service."""
    return "ok"


@app.get("/healthz", response_class=PlainTextResponse)
def healthcheck() -> str:
    """Liveness probe used by container orchestrators."""
    return "ok"


@app.get("/healthz/backend")
def backend_status(registry: SessionRegistry = Depends(get_session_registry)) -> dict[str, object]:
    """Report whether a backend credential is configured.

    A missing key does not fail the probe: chat requests then answer with a
    configuration error instead of calling the backend.
    """

    return {
        "credential_configured": registry.engine.has_credential(),
        "default_model": select_execution_model(PipelineConfig()),
        "advanced_model": HOSTED_ADVANCED_MODEL,
        "active_sessions": len(registry),
    }
