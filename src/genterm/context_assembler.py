"""Merges per-file extraction results into one attributed context string."""
from __future__ import annotations

from typing import Iterable

from .extractor import ExtractionResult

CONTEXT_BLOCK_SEPARATOR = "\n\n"


def format_block(file_name: str, content: str) -> str:
    return f"[File: {file_name}]\n{content}"


def assemble(results: Iterable[ExtractionResult]) -> str:
    """Joins every result that produced content, keeping upload order. Empty string if none did."""
    blocks = [
        format_block(result.file_name, result.content)
        for result in results
        if result.content is not None
    ]
    return CONTEXT_BLOCK_SEPARATOR.join(blocks)


def context_list(assembled: str) -> list[str]:
    """Context field for the chat request: always a list, empty when there is no context."""
    return [assembled] if assembled else []
