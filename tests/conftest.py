"""Shared fixtures: in-memory PDFs, a mock backend and a virtual clock."""
from __future__ import annotations

import os
import tempfile
from typing import Callable

import pytest

# Importing ragforge.main configures file logging; keep it out of the repo.
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="ragforge-logs-"))

from ragforge.config import Settings  # noqa: E402
from ragforge.conversation import ConversationEngine  # noqa: E402
from ragforge.providers import MockBackend  # noqa: E402
from ragforge.services.sessions import SessionRegistry  # noqa: E402
from ragforge.session.clock import ManualClock  # noqa: E402
from ragforge.session.models import Document  # noqa: E402
from ragforge.session.orchestrator import Session  # noqa: E402

PDF_HEADER = b"%PDF-1.4\n"


def make_pdf_bytes(size: int = 1024) -> bytes:
    return PDF_HEADER + b"0" * max(0, size - len(PDF_HEADER))


@pytest.fixture
def make_pdf() -> Callable[[int], bytes]:
    return make_pdf_bytes


@pytest.fixture
def pdf_document() -> Document:
    content = make_pdf_bytes(2048)
    return Document(name="datasheet.pdf", mime_type="application/pdf", size=len(content), content=content)


@pytest.fixture
def mock_backend() -> MockBackend:
    return MockBackend("3.3V typical.")


@pytest.fixture
def engine(mock_backend: MockBackend) -> ConversationEngine:
    return ConversationEngine("test-key", backend=mock_backend)


@pytest.fixture
def make_session(engine: ConversationEngine) -> Callable[..., Session]:
    def factory(**kwargs: object) -> Session:
        kwargs.setdefault("engine", engine)
        kwargs.setdefault("clock", ManualClock())
        return Session(**kwargs)  # type: ignore[arg-type]

    return factory


@pytest.fixture
def registry(mock_backend: MockBackend) -> SessionRegistry:
    settings = Settings(api_key="test-key")
    engine = ConversationEngine(settings.api_key, backend=mock_backend)
    return SessionRegistry(settings, engine=engine, clock_factory=ManualClock)
