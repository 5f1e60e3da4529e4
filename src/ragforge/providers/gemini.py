"""Google Gemini backend built on the ``google-genai`` SDK."""
from __future__ import annotations

import logging
from typing import Any

from google import genai
from google.genai import types

from .base import GenerationBackend, GenerationRequest

LOGGER = logging.getLogger(__name__)


class GeminiBackend(GenerationBackend):
    """Send one ``generate_content`` call per request through the async client."""

    def __init__(
        self,
        api_key: str,
        *,
        timeout_seconds: float | None = None,
        client: Any | None = None,
    ) -> None:
        if client is None:
            http_options = None
            if timeout_seconds:
                # The SDK expects the timeout in milliseconds.
                http_options = types.HttpOptions(timeout=int(timeout_seconds * 1000))
            client = genai.Client(api_key=api_key, http_options=http_options)
        self._client = client

    @staticmethod
    def build_contents(request: GenerationRequest) -> types.Content:
        return types.Content(
            role="user",
            parts=[
                types.Part.from_bytes(data=request.attachment, mime_type=request.attachment_mime_type),
                types.Part.from_text(text=request.prompt),
            ],
        )

    async def generate(self, request: GenerationRequest) -> str | None:
        response = await self._client.aio.models.generate_content(
            model=request.model,
            contents=self.build_contents(request),
            config=types.GenerateContentConfig(
                system_instruction=request.system_instruction,
                temperature=request.temperature,
            ),
        )
        text = response.text
        LOGGER.debug("Gemini %s returned %s characters", request.model, len(text or ""))
        return text
