"""Conversation engine: one backend call per user question.

The backend keeps no conversational state. Every call re-sends the PDF and
the whole transcript flattened into a single user turn, with the pipeline
configuration folded into the system instruction.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

from ragforge.prompt_builder import (
    build_system_instruction,
    build_user_prompt,
    select_execution_model,
)
from ragforge.providers.base import GenerationBackend, GenerationRequest
from ragforge.session.configuration import PipelineConfig
from ragforge.session.models import Document, Message
from ragforge.telemetry import emit_exception, emit_inference_request, emit_inference_result

LOGGER = logging.getLogger(__name__)

MISSING_CREDENTIAL_MESSAGE = "Error: No API key configured. Set API_KEY in the environment."
EMPTY_RESPONSE_MESSAGE = "I processed the document but generated no text response."
ERROR_PREFIX = "Error querying document: "

BackendFactory = Callable[[str, float], GenerationBackend]


class ReplyStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    ERROR = "error"
    MISSING_CREDENTIAL = "missing_credential"


@dataclass(frozen=True, slots=True)
class EngineReply:
    """Text to show the user plus how it was obtained."""

    text: str
    status: ReplyStatus
    model: str | None = None

    @property
    def ok(self) -> bool:
        return self.status in {ReplyStatus.OK, ReplyStatus.EMPTY}


def _default_backend_factory(api_key: str, timeout_seconds: float) -> GenerationBackend:
    from ragforge.providers.gemini import GeminiBackend

    return GeminiBackend(api_key, timeout_seconds=timeout_seconds)


class ConversationEngine:
    """Compile configuration and history into a request and run it once."""

    def __init__(
        self,
        api_key: str | None,
        *,
        backend: GenerationBackend | None = None,
        backend_factory: BackendFactory | None = None,
        temperature: float = 0.3,
        timeout_seconds: float = 60.0,
    ) -> None:
        self.api_key = api_key.strip() if api_key else None
        self._backend = backend
        self._backend_factory = backend_factory or _default_backend_factory
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    def has_credential(self) -> bool:
        return bool(self.api_key)

    def build_request(
        self,
        document: Document,
        history: Sequence[Message],
        question: str,
        config: PipelineConfig,
    ) -> GenerationRequest:
        return GenerationRequest(
            model=select_execution_model(config),
            system_instruction=build_system_instruction(document.name, config),
            prompt=build_user_prompt(history, question),
            attachment=document.content,
            attachment_mime_type=document.mime_type,
            temperature=self.temperature,
        )

    async def answer(
        self,
        document: Document,
        history: Sequence[Message],
        question: str,
        config: PipelineConfig,
        *,
        session_id: str | None = None,
    ) -> EngineReply:
        """Return backend text, the empty fallback, or an error reply.

        Never raises for backend or request-construction failures and never
        makes more than one backend call.
        """

        if not self.has_credential():
            LOGGER.warning("No API key configured; skipping backend call")
            return EngineReply(MISSING_CREDENTIAL_MESSAGE, ReplyStatus.MISSING_CREDENTIAL)

        req_id = uuid.uuid4().hex
        model: Optional[str] = None
        started = time.perf_counter()
        try:
            request = self.build_request(document, history, question, config)
            model = request.model
            backend = self._resolve_backend()
            emit_inference_request(
                req_id=req_id,
                session_id=session_id,
                model=request.model,
                system_prompt=request.system_instruction,
                prompt_len=len(request.prompt),
                history_len=len(history),
                temperature=request.temperature,
                attachment_bytes=len(request.attachment),
            )
            text = await asyncio.wait_for(backend.generate(request), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as error:
            detail = f"request timed out after {self.timeout_seconds:g}s"
            return self._failure(req_id, session_id, model, started, error, detail)
        except Exception as error:
            return self._failure(req_id, session_id, model, started, error, str(error) or "Unknown error")

        if text:
            reply = EngineReply(text, ReplyStatus.OK, model)
        else:
            reply = EngineReply(EMPTY_RESPONSE_MESSAGE, ReplyStatus.EMPTY, model)
        emit_inference_result(
            req_id=req_id,
            session_id=session_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            model_used=model or "unknown",
            answer_preview=reply.text,
            status=reply.status.value,
        )
        return reply

    def _resolve_backend(self) -> GenerationBackend:
        if self._backend is None:
            assert self.api_key is not None
            self._backend = self._backend_factory(self.api_key, self.timeout_seconds)
        return self._backend

    def _failure(
        self,
        req_id: str,
        session_id: str | None,
        model: str | None,
        started: float,
        error: BaseException,
        detail: str,
    ) -> EngineReply:
        LOGGER.error("Backend call failed: %s", detail)
        emit_exception(module=__name__, error=error, req_id=req_id, session_id=session_id)
        reply = EngineReply(f"{ERROR_PREFIX}{detail}", ReplyStatus.ERROR, model)
        emit_inference_result(
            req_id=req_id,
            session_id=session_id,
            duration_ms=(time.perf_counter() - started) * 1000.0,
            model_used=model or "unknown",
            answer_preview=reply.text,
            status=reply.status.value,
        )
        return reply


__all__ = [
    "ConversationEngine",
    "EMPTY_RESPONSE_MESSAGE",
    "ERROR_PREFIX",
    "EngineReply",
    "MISSING_CREDENTIAL_MESSAGE",
    "ReplyStatus",
]
