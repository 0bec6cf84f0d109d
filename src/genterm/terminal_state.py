"""
Session-bound terminal state: the interaction log, the command recall buffer
and the Uninitialized/Idle/Processing mode.

All of it lives on one object so the interpreter can be driven and inspected
without any rendering surface attached.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable


class LineKind(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    ERROR = "error"


class TerminalMode(str, Enum):
    UNINITIALIZED = "uninitialized"
    IDLE = "idle"
    PROCESSING = "processing"


IDLE_PROMPT = "genterm> "
PROCESSING_PROMPT = "processing... "


@dataclass(frozen=True)
class TerminalLine:
    text: str
    kind: LineKind = LineKind.SYSTEM


class CommandHistory:
    """Submitted commands plus a recall cursor; -1 means the user is typing live."""

    NOT_RECALLING = -1

    def __init__(self):
        self._entries: list[str] = []
        self.index = self.NOT_RECALLING

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def record(self, command: str):
        self._entries.append(command)
        self.index = self.NOT_RECALLING

    def _entry_at(self, index: int) -> str:
        return self._entries[len(self._entries) - 1 - index]

    def recall_older(self) -> str | None:
        """Moves one step back in time. Returns None when there is nowhere to go."""
        if not self._entries or self.index >= len(self._entries) - 1:
            return None
        self.index += 1
        return self._entry_at(self.index)

    def recall_newer(self) -> str | None:
        """Moves one step forward; the step past the newest entry yields the empty live line."""
        if not self._entries or self.index <= self.NOT_RECALLING:
            return None
        self.index -= 1
        if self.index == self.NOT_RECALLING:
            return ""
        return self._entry_at(self.index)


Listener = Callable[["TerminalState", "TerminalLine | None"], None]


class TerminalState:
    """
    Owns everything the interpreter reads and writes.
    `listener` is called with each appended line, and with None after a clear or a mode change.
    """

    def __init__(self, listener: Listener | None = None):
        self.lines: list[TerminalLine] = []
        self.history = CommandHistory()
        self.mode = TerminalMode.UNINITIALIZED
        self.session_id: str | None = None
        self.listener = listener

    def _notify(self, line: TerminalLine | None):
        if self.listener is not None:
            self.listener(self, line)

    # --- log ---

    def append(self, text: str, kind: LineKind = LineKind.SYSTEM) -> TerminalLine:
        line = TerminalLine(text=str(text), kind=kind)
        self.lines.append(line)
        self._notify(line)
        return line

    def system(self, text: str) -> TerminalLine:
        return self.append(text, LineKind.SYSTEM)

    def error(self, text: str) -> TerminalLine:
        return self.append(text, LineKind.ERROR)

    def clear(self):
        self.lines = []
        self._notify(None)

    # --- mode ---

    @property
    def is_processing(self) -> bool:
        return self.mode is TerminalMode.PROCESSING

    @property
    def prompt_label(self) -> str:
        return PROCESSING_PROMPT if self.is_processing else IDLE_PROMPT

    def attach_session(self, session_id: str):
        if not session_id:
            raise ValueError("session id must be a non-empty string")
        self.session_id = session_id
        if self.mode is TerminalMode.UNINITIALIZED:
            self.mode = TerminalMode.IDLE
            self._notify(None)

    def begin_processing(self):
        if self.mode is not TerminalMode.IDLE:
            raise RuntimeError(f"cannot start a query while {self.mode.value}")
        self.mode = TerminalMode.PROCESSING
        self._notify(None)

    def finish_processing(self):
        if self.mode is TerminalMode.PROCESSING:
            self.mode = TerminalMode.IDLE
            self._notify(None)
