# /genterm/uploads.py
"""
Upload surface for the terminal client.
Validates candidate files and keeps the ordered, in-memory sequence of uploads.
"""
from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from .observability import get_logger

logger = get_logger(__name__)

SUPPORTED_SUFFIXES = (".txt", ".pdf", ".png", ".jpg", ".jpeg")
SUPPORTED_MIME_TYPES = ("application/pdf", "text/plain")


def is_supported_upload(name: str, mime_type: str) -> bool:
    """Accepts images by type, PDFs and plain text by type, or any file with a known suffix."""
    mime = str(mime_type or "")
    return (
        "image/" in mime
        or mime in SUPPORTED_MIME_TYPES
        or str(name).endswith(SUPPORTED_SUFFIXES)
    )


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


@dataclass(frozen=True)
class UploadedFile:
    name: str
    size: int
    mime_type: str
    data: bytes = field(repr=False)
    uploaded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds"))

    @classmethod
    def from_bytes(cls, name: str, data: bytes, mime_type: str | None = None) -> "UploadedFile":
        if mime_type is None:
            mime_type = mimetypes.guess_type(name)[0] or ""
        return cls(name=name, size=len(data), mime_type=mime_type, data=bytes(data))

    @classmethod
    def from_path(cls, path: str | Path) -> "UploadedFile":
        source = Path(path)
        return cls.from_bytes(source.name, source.read_bytes())

    @property
    def suffix(self) -> str:
        return Path(self.name).suffix.lower()


def resolve_upload_path(raw_input: str) -> tuple[Path | None, str | None]:
    """Normalizes and validates a user-provided upload path."""
    cleaned = str(raw_input or "").strip().strip('"').strip("'")
    if not cleaned:
        return None, "Error: Empty path provided."
    try:
        resolved = Path(cleaned).expanduser().resolve(strict=True)
    except FileNotFoundError:
        return None, f"Error: File not found at '{cleaned}'"
    except OSError as exc:
        return None, f"Error: Invalid path '{cleaned}' ({exc})"
    if not resolved.is_file():
        return None, f"Error: Path is not a regular file: '{resolved}'"
    return resolved, None


class FileStore:
    """Append-only, ordered sequence of uploaded files for one terminal session."""

    def __init__(self):
        self._files: list[UploadedFile] = []

    def __len__(self) -> int:
        return len(self._files)

    def __iter__(self):
        return iter(list(self._files))

    def add_batch(self, candidates: Iterable[UploadedFile]) -> list[UploadedFile]:
        """Stores the supported files of a batch, in order, and returns them."""
        accepted = []
        for candidate in candidates:
            if not is_supported_upload(candidate.name, candidate.mime_type):
                logger.debug("upload_rejected", file_name=candidate.name, mime_type=candidate.mime_type)
                continue
            accepted.append(candidate)
        self._files.extend(accepted)
        if accepted:
            logger.info(
                "files_uploaded",
                count=len(accepted),
                names=[f.name for f in accepted],
                bytes=sum(f.size for f in accepted),
            )
        return accepted

    def snapshot(self) -> tuple[UploadedFile, ...]:
        return tuple(self._files)
