"""Deterministic backend used by tests and offline development."""
from __future__ import annotations

from typing import List, Optional

from .base import GenerationBackend, GenerationRequest


class MockBackend(GenerationBackend):
    """Record every request and return a canned reply.

    ``reply`` may be ``None`` to simulate a response without text; setting
    ``error`` makes every call raise it instead.
    """

    def __init__(self, reply: Optional[str] = "MOCK_ANSWER", *, error: Exception | None = None) -> None:
        self.reply = reply
        self.error = error
        self.requests: List[GenerationRequest] = []

    @property
    def call_count(self) -> int:
        return len(self.requests)

    @property
    def last_request(self) -> GenerationRequest | None:
        return self.requests[-1] if self.requests else None

    async def generate(self, request: GenerationRequest) -> str | None:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.reply
