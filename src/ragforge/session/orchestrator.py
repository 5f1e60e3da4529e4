"""Session lifecycle: upload, configure, simulated processing, chat."""
from __future__ import annotations

import logging
import random
import uuid
from enum import Enum
from typing import Any

from ragforge.conversation import MISSING_CREDENTIAL_MESSAGE, ConversationEngine
from ragforge.errors import InvalidTransitionError, QueryInFlightError
from ragforge.logging_config import AUDIT_LOGGER_NAME
from ragforge.session.clock import AsyncioClock, Clock
from ragforge.session.configuration import ModelProvider, PipelineConfig
from ragforge.session.export import build_export_bundle, export_filename, render_export
from ragforge.session.models import Document, Message, Role, Transcript
from ragforge.session.sequencer import (
    SAMPLE_INTERVAL_SECONDS,
    SETTLE_DELAY_SECONDS,
    ProcessingSequencer,
    build_stages,
)
from ragforge.telemetry import emit_exception, emit_session_transition

LOGGER = logging.getLogger(__name__)
AUDIT_LOGGER = logging.getLogger(AUDIT_LOGGER_NAME)

UNEXPECTED_FAILURE_MESSAGE = "Sorry, I encountered an error processing that request."


class SessionStep(str, Enum):
    UPLOAD = "UPLOAD"
    CONFIGURE = "CONFIGURE"
    PROCESS = "PROCESS"
    CHAT = "CHAT"


def seed_message_text(document: Document, config: PipelineConfig) -> str:
    return (
        f'Database ready. I\'ve ingested "{document.name}" using the '
        f"{config.parser.short_name} strategy with {config.chunk_size}-token chunks. "
        f"\n\nI am simulating: {config.model}"
    )


class Session:
    """Own the document, configuration and transcript of one user session.

    The configuration can only be edited in ``CONFIGURE`` and questions can
    only be asked in ``CHAT``. ``reset`` works from every state: it clears
    the document and transcript and restores the default configuration.
    Each reset bumps an epoch counter so that a processing run or backend
    reply started before the reset is discarded when it finishes.
    """

    def __init__(
        self,
        session_id: str | None = None,
        *,
        engine: ConversationEngine,
        clock: Clock | None = None,
        time_scale: float = 1.0,
        sample_interval: float | None = SAMPLE_INTERVAL_SECONDS,
        rng: random.Random | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self._engine = engine
        self._clock = clock or AsyncioClock()
        self._time_scale = time_scale
        self._sample_interval = sample_interval
        self._rng = rng

        self.step = SessionStep.UPLOAD
        self.document: Document | None = None
        self.config = PipelineConfig()
        self.transcript = Transcript()
        self.sequencer: ProcessingSequencer | None = None
        self._epoch = 0
        self._pending = False

    @property
    def query_pending(self) -> bool:
        return self._pending

    # Upload -> Configure ---------------------------------------------------------
    def accept_file(self, document: Document) -> None:
        self._require(SessionStep.UPLOAD, "accept a file")
        self.document = document
        AUDIT_LOGGER.info(
            {
                "event": "upload",
                "session_id": self.id,
                "file_name": document.name,
                "size_bytes": document.size,
            }
        )
        self._transition(SessionStep.CONFIGURE, "file_accepted")

    # Configure -------------------------------------------------------------------
    def update_config(self, **changes: Any) -> PipelineConfig:
        self._require(SessionStep.CONFIGURE, "change the configuration")
        self.config = self.config.update(**changes)
        return self.config

    def select_provider(self, provider: ModelProvider | str) -> PipelineConfig:
        self._require(SessionStep.CONFIGURE, "change the configuration")
        self.config = self.config.with_provider(provider)
        return self.config

    # Configure -> Process -> Chat ------------------------------------------------
    def start_processing(self) -> ProcessingSequencer:
        """Freeze the configuration and schedule the simulated ingestion.

        Must be called from a running event loop.
        """

        self._require(SessionStep.CONFIGURE, "start processing")
        if self.document is None:
            raise InvalidTransitionError("start processing without a document", self.step)

        epoch = self._epoch
        self.sequencer = ProcessingSequencer(
            build_stages(self.config, time_scale=self._time_scale),
            clock=self._clock,
            settle_delay=SETTLE_DELAY_SECONDS * self._time_scale,
            sample_interval=self._sample_interval,
            on_complete=lambda: self._complete_processing(epoch),
            session_id=self.id,
            rng=self._rng,
        )
        AUDIT_LOGGER.info({"event": "process", "session_id": self.id, "config": self.config.to_dict()})
        self._transition(SessionStep.PROCESS, "start_requested")
        self.sequencer.start()
        return self.sequencer

    async def run_processing(self) -> bool:
        """Start processing if needed and wait for it to end.

        Returns ``False`` when a reset cancelled the run. Once the session is
        in chat this returns ``True`` straight away.
        """

        if self.step is SessionStep.CHAT and self.sequencer is not None:
            return True
        if self.step is SessionStep.CONFIGURE:
            self.start_processing()
        self._require(SessionStep.PROCESS, "wait for processing")
        assert self.sequencer is not None
        return await self.sequencer.run()

    def _complete_processing(self, epoch: int) -> None:
        if epoch != self._epoch or self.step is not SessionStep.PROCESS:
            LOGGER.info("Ignoring stale processing completion for session %s", self.id)
            return
        assert self.document is not None
        self.transcript.append(Role.ASSISTANT, seed_message_text(self.document, self.config))
        self._transition(SessionStep.CHAT, "processing_complete")

    # Chat ------------------------------------------------------------------------
    async def ask(self, text: str) -> Message | None:
        """Send ``text`` to the engine and append the exchange.

        Returns the appended assistant message, or ``None`` when the session
        was reset while the backend call was in flight.
        """

        self._require(SessionStep.CHAT, "send a message")
        if not text or not text.strip():
            raise ValueError("Message text must not be empty")
        if self._pending:
            raise QueryInFlightError("A previous question is still being answered")
        assert self.document is not None

        if not self._engine.has_credential():
            return self.transcript.append(Role.ASSISTANT, MISSING_CREDENTIAL_MESSAGE)

        history = self.transcript.snapshot()
        self.transcript.append(Role.USER, text)
        document, config, epoch = self.document, self.config, self._epoch
        self._pending = True
        try:
            reply_text = (
                await self._engine.answer(document, history, text, config, session_id=self.id)
            ).text
        except Exception as error:
            LOGGER.exception("Conversation engine failed for session %s", self.id)
            emit_exception(module=__name__, error=error, session_id=self.id)
            reply_text = UNEXPECTED_FAILURE_MESSAGE
        finally:
            if epoch == self._epoch:
                self._pending = False

        if epoch != self._epoch:
            LOGGER.info("Dropping reply for session %s that finished after a reset", self.id)
            return None

        AUDIT_LOGGER.info({"event": "query", "session_id": self.id, "question": text})
        return self.transcript.append(Role.ASSISTANT, reply_text)

    def export(self) -> tuple[str, str]:
        """Return ``(filename, json_text)`` for the diagnostic bundle."""

        self._require(SessionStep.CHAT, "export the session")
        assert self.document is not None
        bundle = build_export_bundle(self.document, self.config, self.transcript.snapshot())
        return export_filename(self.document, self.config), render_export(bundle)

    # Any -> Upload ---------------------------------------------------------------
    def reset(self) -> None:
        if self.sequencer is not None:
            self.sequencer.cancel()
        self._epoch += 1
        self._pending = False
        self.sequencer = None
        self.document = None
        self.config = PipelineConfig()
        self.transcript = Transcript()
        self._transition(SessionStep.UPLOAD, "reset")

    # Helpers ---------------------------------------------------------------------
    def snapshot(self) -> dict[str, Any]:
        document = None
        if self.document is not None:
            document = {
                "name": self.document.name,
                "mime_type": self.document.mime_type,
                "size": self.document.size,
            }
        return {
            "session_id": self.id,
            "step": self.step.value,
            "document": document,
            "config": self.config.to_dict(),
            "message_count": len(self.transcript),
            "query_pending": self._pending,
        }

    def _require(self, step: SessionStep, action: str) -> None:
        if self.step is not step:
            raise InvalidTransitionError(action, self.step)

    def _transition(self, target: SessionStep, trigger: str) -> None:
        source = self.step
        self.step = target
        emit_session_transition(
            session_id=self.id,
            source=source.value,
            target=target.value,
            trigger=trigger,
        )


__all__ = ["Session", "SessionStep", "UNEXPECTED_FAILURE_MESSAGE", "seed_message_text"]
