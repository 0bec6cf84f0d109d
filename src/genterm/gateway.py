"""
HTTP client for the GenTerm backend.
Implements both the Session Gateway and the AI Gateway on top of aiohttp.
"""
from __future__ import annotations

import asyncio
from typing import Any, Protocol

import aiohttp

from .config import API_URL, HTTP_TIMEOUT_S
from .errors import QueryError, SessionError
from .observability import get_logger

logger = get_logger(__name__)


class SessionGateway(Protocol):
    async def create_session(self) -> str:
        ...


class ChatGateway(Protocol):
    async def send_query(self, session_id: str, query: str, context: list[str]) -> str:
        ...

    async def send_image_query(
        self,
        session_id: str,
        query: str,
        context: list[str],
        message_content: list[dict[str, Any]],
    ) -> str:
        ...


def _error_detail(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        if detail:
            return str(detail)
    text = str(body or "").strip()
    return text[:300] if text else fallback


class BackendClient:
    """Talks to `/api/session` and `/api/chat`. One aiohttp session per client."""

    def __init__(self, base_url: str = API_URL, *, timeout_s: float = HTTP_TIMEOUT_S):
        self.base_url = str(base_url).rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=float(timeout_s))
        self._http: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "BackendClient":
        return self

    async def __aexit__(self, *_exc):
        await self.close()

    def _session(self) -> aiohttp.ClientSession:
        if self._http is None or self._http.closed:
            self._http = aiohttp.ClientSession(timeout=self._timeout)
        return self._http

    async def close(self):
        if self._http is not None and not self._http.closed:
            await self._http.close()
        self._http = None

    async def _post(self, path: str, payload: dict[str, Any]) -> tuple[int, Any]:
        url = f"{self.base_url}{path}"
        async with self._session().post(url, json=payload) as resp:
            try:
                body = await resp.json(content_type=None)
            except ValueError:
                body = await resp.text()
            return resp.status, body

    # --- Session Gateway ---

    async def create_session(self) -> str:
        try:
            status, body = await self._post("/api/session", {"action": "create"})
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("session_create_failed", url=self.base_url, error=str(exc))
            raise SessionError(f"Failed to create session: {exc}") from exc
        if status != 200 or not isinstance(body, dict) or not body.get("id"):
            logger.error("session_create_failed", url=self.base_url, status=status)
            raise SessionError(f"Failed to create session: {_error_detail(body, f'HTTP {status}')}")
        logger.info("session_created", session_id=body["id"])
        return str(body["id"])

    async def get_session(self, session_id: str) -> dict[str, Any]:
        try:
            status, body = await self._post("/api/session", {"action": "get", "id": session_id})
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise SessionError(f"Failed to get session: {exc}") from exc
        if status != 200 or not isinstance(body, dict):
            raise SessionError(f"Failed to get session: {_error_detail(body, f'HTTP {status}')}")
        return body

    # --- AI Gateway ---

    async def _chat(self, payload: dict[str, Any], failure_message: str) -> str:
        try:
            status, body = await self._post("/api/chat", payload)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            logger.error("chat_request_failed", error=str(exc), error_type=type(exc).__name__)
            raise QueryError(f"{failure_message} ({str(exc) or type(exc).__name__})") from exc
        if status != 200 or not isinstance(body, dict) or "response" not in body:
            detail = _error_detail(body, f"HTTP {status}")
            logger.error("chat_request_failed", status=status, detail=detail)
            raise QueryError(f"{failure_message}: {detail}", status=status)
        return str(body["response"])

    async def send_query(self, session_id: str, query: str, context: list[str]) -> str:
        payload = {"sessionId": session_id, "query": query, "context": list(context)}
        return await self._chat(payload, "Failed to get AI response")

    async def send_image_query(
        self,
        session_id: str,
        query: str,
        context: list[str],
        message_content: list[dict[str, Any]],
    ) -> str:
        payload = {
            "sessionId": session_id,
            "query": query,
            "context": list(context),
            "messageContent": message_content,
        }
        return await self._chat(payload, "Failed to get AI response for image")
