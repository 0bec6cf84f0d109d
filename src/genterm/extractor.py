"""
Per-file content extraction.

Every uploaded file is turned into text, a placeholder, or nothing at all.
Extraction is total: a file that cannot be read becomes an error placeholder
instead of an exception, so one bad upload never sinks a whole query.
"""
from __future__ import annotations

import asyncio
import re
from contextlib import closing
from dataclasses import dataclass
from typing import Iterable

import fitz

from .errors import ExtractionError
from .observability import get_logger
from .uploads import UploadedFile

logger = get_logger(__name__)

IMAGE_NAME_RE = re.compile(r"\.(jpg|jpeg|png)$", re.IGNORECASE)


@dataclass(frozen=True)
class ExtractionResult:
    source: UploadedFile
    content: str | None
    failed: bool = False

    @property
    def file_name(self) -> str:
        return self.source.name


def is_pdf(file: UploadedFile) -> bool:
    return file.mime_type == "application/pdf" or file.name.endswith(".pdf")


def is_text(file: UploadedFile) -> bool:
    return file.mime_type == "text/plain" or file.name.endswith(".txt")


def is_image(file: UploadedFile) -> bool:
    return "image/" in file.mime_type or bool(IMAGE_NAME_RE.search(file.name))


def image_placeholder(name: str) -> str:
    return f"[Image: {name}]"


def error_placeholder(name: str) -> str:
    return f"[Error extracting content from {name}]"


def _page_text(page) -> str:
    # One entry per word, in reading order; mirrors "text items joined by a space".
    return " ".join(word[4] for word in page.get_text("words"))


def extract_pdf_text(data: bytes) -> str:
    """Concatenates per-page text, pages separated by a blank line."""
    text = ""
    with closing(fitz.open(stream=data, filetype="pdf")) as pdf_doc:
        for page in pdf_doc:
            text += _page_text(page) + "\n\n"
    return text.strip()


def extract_plain_text(data: bytes) -> str:
    return data.decode("utf-8")


async def _extract_content(file: UploadedFile) -> str | None:
    if is_pdf(file):
        return await asyncio.to_thread(extract_pdf_text, file.data)
    if is_text(file):
        return extract_plain_text(file.data)
    if is_image(file):
        return image_placeholder(file.name)
    logger.warning("unsupported_file_type", file_name=file.name, mime_type=file.mime_type)
    return None


async def extract(file: UploadedFile) -> ExtractionResult:
    """Extracts one file. Never raises for a failure inside the file itself."""
    try:
        content = await _extract_content(file)
    except Exception as exc:
        err = ExtractionError(file.name)
        logger.error(
            "file_extraction_failed",
            file_name=file.name,
            mime_type=file.mime_type,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return ExtractionResult(source=file, content=error_placeholder(err.file_name), failed=True)
    return ExtractionResult(source=file, content=content)


async def extract_all(files: Iterable[UploadedFile]) -> list[ExtractionResult]:
    """
    Extracts every file concurrently and waits for all of them.
    Results come back in the order the files were given, regardless of completion order.
    """
    return list(await asyncio.gather(*(extract(f) for f in files)))
