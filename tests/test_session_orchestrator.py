from __future__ import annotations

import asyncio
import json
from typing import Callable

import pytest

from ragforge.conversation import MISSING_CREDENTIAL_MESSAGE, ConversationEngine
from ragforge.errors import InvalidTransitionError, QueryInFlightError
from ragforge.providers import GenerationBackend, GenerationRequest, MockBackend
from ragforge.session.clock import ManualClock
from ragforge.session.configuration import (
    OPEN_CATALOG_DEFAULT_MODEL,
    ModelProvider,
    ParserType,
    PipelineConfig,
)
from ragforge.session.models import Document, Role
from ragforge.session.orchestrator import (
    UNEXPECTED_FAILURE_MESSAGE,
    Session,
    SessionStep,
    seed_message_text,
)
from ragforge.session.sequencer import SequencerState

SessionFactory = Callable[..., Session]


class BlockingBackend(GenerationBackend):
    """Hold every call until ``release`` is set."""

    def __init__(self, reply: str = "late reply") -> None:
        self.reply = reply
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls = 0

    async def generate(self, request: GenerationRequest) -> str | None:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return self.reply


class ExplodingEngine(ConversationEngine):
    async def answer(self, *args: object, **kwargs: object):  # type: ignore[override]
        raise RuntimeError("engine bug")


def _pdf(name: str, size: int) -> Document:
    content = b"%PDF-1.4\n" + b"0" * (size - 9)
    return Document(name=name, mime_type="application/pdf", size=size, content=content)


async def _to_chat(session: Session, document: Document) -> None:
    session.accept_file(document)
    assert await session.run_processing() is True


def test_upload_configure_process_chat_scenario(
    make_session: SessionFactory,
    engine: ConversationEngine,
    mock_backend: MockBackend,
) -> None:
    async def runner() -> None:
        session = make_session()
        document = _pdf("spec.pdf", 2 * 1024 * 1024)

        session.accept_file(document)
        assert session.step is SessionStep.CONFIGURE
        assert session.document is not None and session.document.name == "spec.pdf"

        session.update_config(chunk_size=256, overlap=32, parser=ParserType.DOCLING)
        sequencer = session.start_processing()
        assert session.step is SessionStep.PROCESS
        assert [stage.key.value for stage in sequencer.stages] == ["parse", "chunk", "embed", "index"]

        assert await session.run_processing() is True
        assert session.step is SessionStep.CHAT
        assert len(session.transcript) == 1
        seed = session.transcript[0]
        assert seed.role is Role.ASSISTANT
        assert '"spec.pdf"' in seed.text
        assert "256-token chunks" in seed.text

        reply = await session.ask("What is the operating voltage?")
        assert reply is not None and reply.text == "3.3V typical."
        assert [message.role for message in session.transcript] == [
            Role.ASSISTANT,
            Role.USER,
            Role.ASSISTANT,
        ]
        assert session.transcript[1].text == "What is the operating voltage?"
        assert mock_backend.call_count == 1

        engine.api_key = None
        reply = await session.ask("And the current draw?")
        assert reply is not None and reply.text == MISSING_CREDENTIAL_MESSAGE
        assert len(session.transcript) == 4
        assert session.transcript[-1].role is Role.ASSISTANT
        assert mock_backend.call_count == 1

    asyncio.run(runner())


def test_seed_message_names_document_strategy_and_model() -> None:
    config = PipelineConfig(parser=ParserType.UNSTRUCTURED, chunk_size=1024).with_provider(
        ModelProvider.OPEN_CATALOG
    )
    text = seed_message_text(_pdf("manual.pdf", 64), config)

    assert text.startswith('Database ready. I\'ve ingested "manual.pdf" using the Unstructured strategy')
    assert "1024-token chunks" in text
    assert text.endswith(f"I am simulating: {OPEN_CATALOG_DEFAULT_MODEL}")


def test_history_excludes_the_question_being_asked(
    make_session: SessionFactory,
    pdf_document: Document,
    mock_backend: MockBackend,
) -> None:
    async def runner() -> None:
        session = make_session()
        await _to_chat(session, pdf_document)

        await session.ask("first question")
        await session.ask("second question")

        prompt = mock_backend.requests[-1].prompt
        assert prompt.count("second question") == 1
        assert prompt.endswith("User: second question")
        assert "user: first question" in prompt
        assert "assistant: 3.3V typical." in prompt

    asyncio.run(runner())


def test_transcript_entries_are_never_rewritten(
    make_session: SessionFactory,
    pdf_document: Document,
) -> None:
    async def runner() -> None:
        session = make_session()
        await _to_chat(session, pdf_document)
        before = [(message.id, message.text) for message in session.transcript]

        await session.ask("one")
        await session.ask("two")

        after = [(message.id, message.text) for message in session.transcript]
        assert after[: len(before)] == before
        assert len({message_id for message_id, _ in after}) == len(after)

    asyncio.run(runner())


def test_configuration_is_only_editable_in_configure(
    make_session: SessionFactory,
    pdf_document: Document,
) -> None:
    async def runner() -> None:
        session = make_session()
        with pytest.raises(InvalidTransitionError):
            session.update_config(chunk_size=256)

        await _to_chat(session, pdf_document)
        with pytest.raises(InvalidTransitionError):
            session.update_config(chunk_size=256)
        with pytest.raises(InvalidTransitionError):
            session.select_provider(ModelProvider.OPEN_CATALOG)

    asyncio.run(runner())


def test_select_provider_resets_model(make_session: SessionFactory, pdf_document: Document) -> None:
    session = make_session()
    session.accept_file(pdf_document)

    config = session.select_provider("hf")

    assert config.model_provider is ModelProvider.OPEN_CATALOG
    assert config.model == OPEN_CATALOG_DEFAULT_MODEL


def test_invalid_transitions_are_rejected(
    make_session: SessionFactory,
    pdf_document: Document,
) -> None:
    async def runner() -> None:
        session = make_session()

        with pytest.raises(InvalidTransitionError):
            session.start_processing()
        with pytest.raises(InvalidTransitionError):
            await session.ask("too early")
        with pytest.raises(InvalidTransitionError):
            session.export()

        session.accept_file(pdf_document)
        with pytest.raises(InvalidTransitionError):
            session.accept_file(pdf_document)

        session.start_processing()
        with pytest.raises(InvalidTransitionError):
            session.start_processing()

    asyncio.run(runner())


def test_empty_question_is_rejected(make_session: SessionFactory, pdf_document: Document) -> None:
    async def runner() -> None:
        session = make_session()
        await _to_chat(session, pdf_document)

        with pytest.raises(ValueError):
            await session.ask("   ")
        assert len(session.transcript) == 1

    asyncio.run(runner())


@pytest.mark.parametrize("target", list(SessionStep))
def test_reset_from_every_step_clears_session(
    target: SessionStep,
    make_session: SessionFactory,
    pdf_document: Document,
) -> None:
    async def runner() -> None:
        session = make_session()
        if target is not SessionStep.UPLOAD:
            session.accept_file(pdf_document)
            session.update_config(chunk_size=256, overlap=32)
        if target is SessionStep.PROCESS:
            session.start_processing()
        if target is SessionStep.CHAT:
            await session.run_processing()
            await session.ask("question")
        assert session.step is target

        session.reset()

        assert session.step is SessionStep.UPLOAD
        assert session.document is None
        assert len(session.transcript) == 0
        assert session.config == PipelineConfig()
        assert session.sequencer is None
        assert session.query_pending is False

    asyncio.run(runner())


def test_reset_during_processing_cancels_the_run(
    make_session: SessionFactory,
    pdf_document: Document,
) -> None:
    async def runner() -> None:
        session = make_session()
        session.accept_file(pdf_document)
        sequencer = session.start_processing()
        await asyncio.sleep(0)

        session.reset()

        assert await sequencer.run() is False
        assert sequencer.state is SequencerState.CANCELLED
        assert session.step is SessionStep.UPLOAD
        assert len(session.transcript) == 0

    asyncio.run(runner())


def test_stale_completion_is_ignored_after_reset(
    make_session: SessionFactory,
    pdf_document: Document,
) -> None:
    async def runner() -> None:
        session = make_session()
        session.accept_file(pdf_document)
        session.start_processing()
        session.reset()
        session.accept_file(pdf_document)

        # The callback bound to the previous epoch must not move the session.
        session._complete_processing(0)

        assert session.step is SessionStep.CONFIGURE
        assert len(session.transcript) == 0

    asyncio.run(runner())


def test_reply_arriving_after_reset_is_dropped(pdf_document: Document) -> None:
    async def runner() -> None:
        backend = BlockingBackend()
        session = Session(engine=ConversationEngine("key", backend=backend), clock=ManualClock())
        await _to_chat(session, pdf_document)

        pending = asyncio.create_task(session.ask("slow question"))
        await backend.started.wait()
        assert session.query_pending is True
        with pytest.raises(QueryInFlightError):
            await session.ask("second question")

        session.reset()
        backend.release.set()

        assert await pending is None
        assert session.step is SessionStep.UPLOAD
        assert len(session.transcript) == 0
        assert session.query_pending is False
        assert backend.calls == 1

    asyncio.run(runner())


def test_backend_errors_become_assistant_messages(pdf_document: Document) -> None:
    async def runner() -> None:
        backend = MockBackend(error=RuntimeError("quota exceeded"))
        session = Session(engine=ConversationEngine("key", backend=backend), clock=ManualClock())
        await _to_chat(session, pdf_document)

        reply = await session.ask("question")

        assert reply is not None
        assert reply.text == "Error querying document: quota exceeded"
        assert session.step is SessionStep.CHAT
        assert session.query_pending is False

    asyncio.run(runner())


def test_unexpected_engine_failure_uses_generic_message(pdf_document: Document) -> None:
    async def runner() -> None:
        session = Session(engine=ExplodingEngine("key"), clock=ManualClock())
        await _to_chat(session, pdf_document)

        reply = await session.ask("question")

        assert reply is not None and reply.text == UNEXPECTED_FAILURE_MESSAGE
        assert session.query_pending is False
        assert len(session.transcript) == 3

    asyncio.run(runner())


def test_export_bundle_contains_transcript(
    make_session: SessionFactory,
    pdf_document: Document,
) -> None:
    async def runner() -> None:
        session = make_session()
        await _to_chat(session, pdf_document)
        await session.ask("question")

        filename, body = session.export()

        assert filename == "datasheet_gemini-2.5-flash.export.json"
        bundle = json.loads(body)
        assert bundle["meta"]["filename"] == "datasheet.pdf"
        assert [entry["role"] for entry in bundle["chat_history"]] == ["assistant", "user", "assistant"]

    asyncio.run(runner())


def test_snapshot_reports_step_and_document(
    make_session: SessionFactory,
    pdf_document: Document,
) -> None:
    session = make_session(session_id="abc")
    session.accept_file(pdf_document)

    snapshot = session.snapshot()

    assert snapshot["session_id"] == "abc"
    assert snapshot["step"] == "CONFIGURE"
    assert snapshot["document"] == {"name": "datasheet.pdf", "mime_type": "application/pdf", "size": 2048}
    assert snapshot["message_count"] == 0


def test_run_processing_joins_started_run_and_returns_once_in_chat(
    make_session: SessionFactory,
    pdf_document: Document,
) -> None:
    async def runner() -> None:
        session = make_session()
        session.accept_file(pdf_document)
        sequencer = session.start_processing()

        assert await session.run_processing() is True
        assert session.sequencer is sequencer
        assert session.step is SessionStep.CHAT
        assert await session.run_processing() is True
        assert len(session.transcript) == 1

    asyncio.run(runner())
