"""
In-memory conversation sessions for the backend service.
Sessions live for the lifetime of the server process only.
"""
from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from .observability import get_logger

logger = get_logger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class SessionMessage:
    role: str
    content: str
    timestamp: str = field(default_factory=_utcnow_iso)


@dataclass
class ChatSession:
    id: str
    messages: list[SessionMessage] = field(default_factory=list)
    created_at: str = field(default_factory=_utcnow_iso)
    updated_at: str = field(default_factory=_utcnow_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SessionManager:
    """Thread-safe session registry keyed by UUID4 session ids."""

    def __init__(self):
        self._sessions: dict[str, ChatSession] = {}
        self._lock = threading.RLock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def new_session(self) -> ChatSession:
        session = ChatSession(id=str(uuid.uuid4()))
        with self._lock:
            self._sessions[session.id] = session
        logger.info("session_started", session_id=session.id)
        return copy.deepcopy(session)

    def get_session(self, session_id: str | None) -> ChatSession | None:
        """Returns a copy of the session, or None when the id is unknown."""
        if not session_id:
            return None
        with self._lock:
            session = self._sessions.get(session_id)
            return copy.deepcopy(session) if session is not None else None

    def add_message(self, session_id: str, role: str, content: str) -> SessionMessage | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            message = SessionMessage(role=role, content=str(content))
            session.messages.append(message)
            session.updated_at = message.timestamp
            return message

    def get_messages(self, session_id: str) -> list[SessionMessage] | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            return list(session.messages)
