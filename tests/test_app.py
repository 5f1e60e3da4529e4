from __future__ import annotations

from fastapi.testclient import TestClient

from ragforge.config import Settings
from ragforge.conversation import ConversationEngine
from ragforge.main import app
from ragforge.services.sessions import SessionRegistry, get_session_registry


def test_root_and_healthz() -> None:
    client = TestClient(app)

    assert client.get("/").text == "ok"
    assert client.get("/healthz").text == "ok"


def test_backend_status_reports_missing_credential() -> None:
    registry = SessionRegistry(Settings(api_key=None), engine=ConversationEngine(None))
    app.dependency_overrides[get_session_registry] = lambda: registry
    try:
        with TestClient(app) as client:
            registry.create()
            payload = client.get("/healthz/backend").json()
    finally:
        app.dependency_overrides.clear()

    assert payload == {
        "credential_configured": False,
        "default_model": "gemini-2.5-flash",
        "advanced_model": "gemini-3-pro-preview",
        "active_sessions": 1,
    }


def test_backend_status_with_credential(registry: SessionRegistry) -> None:
    app.dependency_overrides[get_session_registry] = lambda: registry
    try:
        with TestClient(app) as client:
            payload = client.get("/healthz/backend").json()
    finally:
        app.dependency_overrides.clear()

    assert payload["credential_configured"] is True
    assert payload["active_sessions"] == 0
