"""Validation of uploaded files before they enter a session."""
from __future__ import annotations

import re
from pathlib import Path
from typing import Final

from fastapi import UploadFile

from ragforge.config import DEFAULT_MAX_UPLOAD_BYTES
from ragforge.errors import UploadValidationError
from ragforge.session.models import Document

PDF_MIME_TYPE: Final[str] = "application/pdf"
INVALID_TYPE_MESSAGE: Final[str] = "Please upload a PDF file."

_FILENAME_SAFE_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_filename(filename: str, *, fallback: str = "upload") -> str:
    """Return a filesystem-safe name, keeping the extension when possible."""
    sanitized = Path(filename or "").name
    sanitized = _FILENAME_SAFE_CHARS_RE.sub("_", sanitized)
    return sanitized.strip("._") or fallback


def too_large_message(max_bytes: int) -> str:
    return f"File is too large (Max {max_bytes // (1024 * 1024)}MB)."


def validate_upload(
    filename: str | None,
    content_type: str | None,
    data: bytes,
    *,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> Document:
    """Build a :class:`Document` or raise :class:`UploadValidationError`."""

    if content_type != PDF_MIME_TYPE:
        raise UploadValidationError(INVALID_TYPE_MESSAGE)
    if len(data) > max_bytes:
        raise UploadValidationError(too_large_message(max_bytes))

    name = Path(filename or "").name or "document.pdf"
    return Document(name=name, mime_type=PDF_MIME_TYPE, size=len(data), content=data)


async def read_upload(upload: UploadFile, *, max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES) -> Document:
    """Read an incoming multipart file and validate it."""
    # One extra byte is enough to tell an oversized file apart.
    data = await upload.read(max_bytes + 1)
    return validate_upload(upload.filename, upload.content_type, data, max_bytes=max_bytes)


__all__ = [
    "INVALID_TYPE_MESSAGE",
    "PDF_MIME_TYPE",
    "read_upload",
    "sanitize_filename",
    "too_large_message",
    "validate_upload",
]
