"""Backend interface for document-grounded text generation."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

__all__ = ["GenerationBackend", "GenerationRequest"]


@dataclass(frozen=True, slots=True)
class GenerationRequest:
    """Everything a backend needs for one single-turn call."""

    model: str
    system_instruction: str
    prompt: str
    attachment: bytes = field(repr=False)
    attachment_mime_type: str = "application/pdf"
    temperature: float = 0.3


class GenerationBackend(ABC):
    """Abstract interface for generation backends."""

    @abstractmethod
    async def generate(self, request: GenerationRequest) -> str | None:
        """Return the text of the first response, or ``None`` when empty."""
