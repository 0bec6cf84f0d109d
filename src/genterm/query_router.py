"""
Chooses the AI Gateway request shape for a query.

Routing is a keyword heuristic, not a relevance model: a query mentioning
"image" while at least one image is uploaded goes out with the most recently
uploaded image attached. There is no way to target an earlier image.
"""
from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Any, Sequence, Union

from .errors import ConversionError
from .extractor import is_image
from .uploads import UploadedFile

IMAGE_QUERY_KEYWORD = "image"
IMAGE_DATA_URL_PREFIX = "data:image/jpeg;base64,"


@dataclass(frozen=True)
class TextQuery:
    query: str


@dataclass(frozen=True)
class ImageQuery:
    query: str
    image: UploadedFile


RouteDecision = Union[TextQuery, ImageQuery]


def image_candidates(files: Sequence[UploadedFile]) -> list[UploadedFile]:
    return [f for f in files if is_image(f)]


def route(query: str, files: Sequence[UploadedFile]) -> RouteDecision:
    candidates = image_candidates(files)
    if candidates and IMAGE_QUERY_KEYWORD in query.lower():
        return ImageQuery(query=query, image=candidates[-1])
    return TextQuery(query=query)


def _encode_image(file: UploadedFile) -> str:
    if "image/" not in file.mime_type:
        raise ConversionError(f"Invalid image file: {file.name}")
    if not file.data:
        raise ConversionError(f"Image file is empty: {file.name}")
    return base64.b64encode(file.data).decode("ascii")


async def image_to_base64(file: UploadedFile) -> str:
    """Base64 payload for an image upload; raises ConversionError for anything else."""
    return await asyncio.to_thread(_encode_image, file)


def build_message_content(query: str, image_payload: str) -> list[dict[str, Any]]:
    return [
        {"type": "text", "text": query},
        {
            "type": "image_url",
            "image_url": {"url": f"{IMAGE_DATA_URL_PREFIX}{image_payload}"},
        },
    ]
