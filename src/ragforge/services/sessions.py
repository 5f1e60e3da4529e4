"""In-memory registry of active sessions."""
from __future__ import annotations

import logging
import time
from collections import OrderedDict
from functools import lru_cache
from typing import Callable

from ragforge.config import Settings, load_settings
from ragforge.conversation import ConversationEngine
from ragforge.errors import SessionNotFoundError
from ragforge.session.clock import AsyncioClock, Clock
from ragforge.session.orchestrator import Session

LOGGER = logging.getLogger(__name__)


class SessionRegistry:
    """Create, look up and discard :class:`Session` objects.

    All sessions share one :class:`ConversationEngine` built from the
    registry's settings, so the API key is read once at start-up.

    Each session holds its PDF in memory, so the registry is bounded: on
    every ``create`` sessions idle for longer than
    ``settings.session_idle_seconds`` are dropped, then the least recently
    used ones until there is room for the new session. Evicted sessions are
    reset first, which cancels any processing run they own.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        engine: ConversationEngine | None = None,
        clock_factory: Callable[[], Clock] | None = None,
        now: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings or load_settings()
        self.engine = engine or ConversationEngine(
            self.settings.api_key,
            temperature=self.settings.temperature,
            timeout_seconds=self.settings.request_timeout_seconds,
        )
        self._clock_factory = clock_factory or AsyncioClock
        self._now = now
        # Least recently used first; values are (session, last touched).
        self._sessions: OrderedDict[str, tuple[Session, float]] = OrderedDict()

    def create(self) -> Session:
        self._evict_idle()
        while len(self._sessions) >= self.settings.max_sessions:
            oldest = next(iter(self._sessions))
            self._drop(oldest, reason="capacity")

        session = Session(
            engine=self.engine,
            clock=self._clock_factory(),
            time_scale=self.settings.time_scale,
        )
        self._sessions[session.id] = (session, self._now())
        LOGGER.info("Created session %s", session.id)
        return session

    def get(self, session_id: str) -> Session:
        try:
            session, _ = self._sessions[session_id]
        except KeyError:
            raise SessionNotFoundError(f"Unknown session {session_id}") from None
        self._sessions[session_id] = (session, self._now())
        self._sessions.move_to_end(session_id)
        return session

    def discard(self, session_id: str) -> None:
        if session_id not in self._sessions:
            raise SessionNotFoundError(f"Unknown session {session_id}")
        self._drop(session_id, reason="discarded")

    def _evict_idle(self) -> None:
        cutoff = self._now() - self.settings.session_idle_seconds
        expired = [key for key, (_, touched) in self._sessions.items() if touched < cutoff]
        for session_id in expired:
            self._drop(session_id, reason="idle")

    def _drop(self, session_id: str, *, reason: str) -> None:
        session, _ = self._sessions.pop(session_id)
        session.reset()
        LOGGER.info("Removed session %s (%s)", session_id, reason)

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions


@lru_cache(maxsize=1)
def get_session_registry() -> SessionRegistry:
    """FastAPI dependency returning the shared :class:`SessionRegistry`."""

    return SessionRegistry()
