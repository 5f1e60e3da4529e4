"""Diagnostic export bundle for a chat session.

The bundle is plain JSON. It carries the session metadata and transcript and
a placeholder where a vector payload would live; nothing reads it back.
"""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Final, Sequence

from ragforge.session.configuration import PipelineConfig
from ragforge.session.models import Document, Message
from ragforge.session.uploads import sanitize_filename

EXPORT_KIND: Final[str] = "ragforge.diagnostic-export"
EXPORT_SUFFIX: Final[str] = ".export.json"
VECTOR_PAYLOAD_PLACEHOLDER: Final[str] = (
    "No vector payload: ingestion is simulated and no 768-dim vectors were generated."
)


def build_export_bundle(
    document: Document,
    config: PipelineConfig,
    transcript: Sequence[Message],
    *,
    generated_at: datetime | None = None,
) -> dict[str, Any]:
    timestamp = (generated_at or datetime.now(timezone.utc)).isoformat().replace("+00:00", "Z")
    return {
        "kind": EXPORT_KIND,
        "meta": {
            "filename": document.name,
            "parsed_by": config.parser.value,
            "chunk_size": config.chunk_size,
            "overlap": config.overlap,
            "embedding_model": config.model,
            "timestamp": timestamp,
        },
        "vector_store_mock": VECTOR_PAYLOAD_PLACEHOLDER,
        "chat_history": [message.to_dict() for message in transcript],
    }


def render_export(bundle: dict[str, Any]) -> str:
    return json.dumps(bundle, indent=2, ensure_ascii=False)


def export_filename(document: Document, config: PipelineConfig) -> str:
    stem = sanitize_filename(document.stem, fallback="document")
    model = sanitize_filename(config.model.replace("/", "-"), fallback="model")
    return f"{stem}_{model}{EXPORT_SUFFIX}"


__all__ = [
    "EXPORT_KIND",
    "EXPORT_SUFFIX",
    "VECTOR_PAYLOAD_PLACEHOLDER",
    "build_export_bundle",
    "export_filename",
    "render_export",
]
