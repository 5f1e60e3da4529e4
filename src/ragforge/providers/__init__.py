"""Generation backends: the Gemini client and a deterministic mock."""
from __future__ import annotations

from .base import GenerationBackend, GenerationRequest
from .mock import MockBackend

__all__ = ["GenerationBackend", "GenerationRequest", "MockBackend"]
