"""API router exposing the session lifecycle."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile
from pydantic import BaseModel, Field

from ragforge.errors import (
    ConfigurationError,
    InvalidTransitionError,
    QueryInFlightError,
    SessionNotFoundError,
    UploadValidationError,
)
from ragforge.services.sessions import SessionRegistry, get_session_registry
from ragforge.session.configuration import catalog
from ragforge.session.orchestrator import Session, SessionStep
from ragforge.session.uploads import read_upload
from ragforge.telemetry import traced_duration

router = APIRouter(prefix="/sessions", tags=["sessions"])


class DocumentInfo(BaseModel):
    name: str
    mime_type: str
    size: int


class ConfigPayload(BaseModel):
    chunk_size: int
    overlap: int
    retrieval_k: int
    parser: str
    model_provider: str
    model: str
    generate_export: bool


class SessionState(BaseModel):
    """Snapshot of a session returned by most endpoints."""

    session_id: str
    step: str
    document: Optional[DocumentInfo] = None
    config: ConfigPayload
    message_count: int
    query_pending: bool


class ConfigUpdate(BaseModel):
    """Partial configuration update; omitted fields keep their value."""

    chunk_size: Optional[int] = Field(None, description="Simulated tokens per chunk.")
    overlap: Optional[int] = Field(None, description="Simulated token overlap between chunks.")
    retrieval_k: Optional[int] = Field(None, description="Simulated top-K retrieval depth.")
    parser: Optional[str] = None
    model_provider: Optional[str] = Field(
        None, description="Switching provider resets the model to that provider's default."
    )
    model: Optional[str] = None
    generate_export: Optional[bool] = None


class StageInfo(BaseModel):
    key: str
    name: str
    duration: float


class VectorNodeInfo(BaseModel):
    id: str
    x: float
    y: float
    active: bool


class ProcessingState(BaseModel):
    session_id: str
    step: str
    state: str
    stages: list[StageInfo]
    current_index: Optional[int]
    completed_stages: int
    log: list[str]
    recent_log: list[str]
    nodes: list[VectorNodeInfo]


class MessageRequest(BaseModel):
    text: str = Field(..., min_length=1, description="Question about the uploaded document.")


class MessageInfo(BaseModel):
    id: str
    role: str
    text: str
    timestamp: float


class MessageResponse(BaseModel):
    session_id: str
    reply: Optional[MessageInfo]
    messages: list[MessageInfo]


class TranscriptResponse(BaseModel):
    session_id: str
    messages: list[MessageInfo]


def _state(session: Session) -> SessionState:
    return SessionState(**session.snapshot())


def _messages(session: Session) -> list[MessageInfo]:
    return [MessageInfo(**message.to_dict()) for message in session.transcript]


def _get_session(session_id: str, registry: SessionRegistry) -> Session:
    try:
        return registry.get(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.post("", response_model=SessionState, status_code=201)
async def create_session(registry: SessionRegistry = Depends(get_session_registry)) -> SessionState:
    """Open a new session in the upload step."""

    return _state(registry.create())


@router.get("/catalog")
def get_catalog() -> dict[str, Any]:
    """Options accepted by the configuration endpoint."""

    return catalog()


@router.get("/{session_id}", response_model=SessionState)
def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    return _state(_get_session(session_id, registry))


@router.delete("/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    try:
        registry.discard(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return Response(status_code=204)


@router.post("/{session_id}/upload", response_model=SessionState)
async def upload_document(
    session_id: str,
    file: UploadFile = File(...),
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    """Validate a PDF and move the session to the configure step."""

    session = _get_session(session_id, registry)
    if session.step is not SessionStep.UPLOAD:
        raise HTTPException(status_code=409, detail=f"Session is in step {session.step.value}")

    try:
        with traced_duration("upload.read", session_id=session.id, file_name=file.filename):
            document = await read_upload(file, max_bytes=registry.settings.max_upload_bytes)
    except UploadValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    try:
        session.accept_file(document)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _state(session)


@router.get("/{session_id}/config", response_model=ConfigPayload)
def get_config(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> ConfigPayload:
    return ConfigPayload(**_get_session(session_id, registry).config.to_dict())


@router.patch("/{session_id}/config", response_model=ConfigPayload)
def update_config(
    session_id: str,
    update: ConfigUpdate,
    registry: SessionRegistry = Depends(get_session_registry),
) -> ConfigPayload:
    """Edit the simulated pipeline; only allowed in the configure step."""

    session = _get_session(session_id, registry)
    changes = {key: value for key, value in update.model_dump().items() if value is not None}
    try:
        config = session.update_config(**changes)
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return ConfigPayload(**config.to_dict())


def _processing_state(session: Session) -> ProcessingState:
    if session.sequencer is None:
        raise HTTPException(status_code=409, detail="Processing has not been started")
    return ProcessingState(
        session_id=session.id,
        step=session.step.value,
        **session.sequencer.snapshot(),
    )


@router.post("/{session_id}/process", response_model=ProcessingState)
async def start_processing(
    session_id: str,
    wait: bool = False,
    registry: SessionRegistry = Depends(get_session_registry),
) -> ProcessingState:
    """Freeze the configuration and run the simulated ingestion.

    With ``wait=true`` the request returns once the session reached chat,
    joining a run that an earlier call already started.
    """

    session = _get_session(session_id, registry)
    try:
        if wait:
            await session.run_processing()
        else:
            session.start_processing()
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return _processing_state(session)


@router.get("/{session_id}/processing", response_model=ProcessingState)
def get_processing(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> ProcessingState:
    return _processing_state(_get_session(session_id, registry))


@router.get("/{session_id}/messages", response_model=TranscriptResponse)
def list_messages(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> TranscriptResponse:
    session = _get_session(session_id, registry)
    return TranscriptResponse(session_id=session.id, messages=_messages(session))


@router.post("/{session_id}/messages", response_model=MessageResponse)
async def send_message(
    session_id: str,
    request: MessageRequest,
    registry: SessionRegistry = Depends(get_session_registry),
) -> MessageResponse:
    """Ask a question about the document and return the assistant reply."""

    session = _get_session(session_id, registry)
    if not request.text.strip():
        raise HTTPException(status_code=422, detail="Message must not be empty")

    try:
        reply = await session.ask(request.text)
    except (InvalidTransitionError, QueryInFlightError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return MessageResponse(
        session_id=session.id,
        reply=MessageInfo(**reply.to_dict()) if reply is not None else None,
        messages=_messages(session),
    )


@router.get("/{session_id}/export")
def export_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> Response:
    """Download the diagnostic bundle when the export toggle is on."""

    session = _get_session(session_id, registry)
    if not session.config.generate_export:
        raise HTTPException(status_code=404, detail="Export is disabled for this session")
    try:
        filename, body = session.export()
    except InvalidTransitionError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return Response(
        content=body,
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/{session_id}/reset", response_model=SessionState)
async def reset_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> SessionState:
    """Return to the upload step and discard the document and transcript."""

    session = _get_session(session_id, registry)
    session.reset()
    return _state(session)
