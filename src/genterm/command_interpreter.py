"""
Command interpreter and query orchestration.

Raw terminal input is either a built-in command (clear/help/files), handled
locally, or a question. Questions run the full pipeline: extract every
uploaded file, assemble the context, pick a route, call the AI Gateway and
append the answer to the terminal log.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from .config import QUERY_TIMEOUT_S
from .context_assembler import assemble, context_list
from .errors import GenTermError, QueryError, SessionError
from .extractor import extract_all
from .gateway import ChatGateway, SessionGateway
from .observability import get_logger
from .query_router import ImageQuery, build_message_content, image_to_base64, route
from .terminal_state import LineKind, TerminalMode, TerminalState
from .uploads import FileStore, UploadedFile, format_file_size

logger = get_logger(__name__)

WELCOME_LINES = (
    "Welcome to GenTerm - Terminal-based RAG Q&A",
    "----------------------------------------",
    "Type a file path and press Ctrl-O to upload it.",
    "Type your question and press Enter to ask.",
    'Type "clear" to clear the terminal.',
    'Type "files" to see uploaded files.',
    'Type "help" to display this list of commands.',
)
HELP_LINES = (
    "Available Commands:",
    "clear - Clear the terminal",
    "files - List uploaded files",
    'Type "help" to display this list of commands.',
    "",
    "Any other input will be treated as a question for the AI.",
)
NO_SESSION_MESSAGE = "No active session. Restart genterm to retry."
SESSION_FAILED_MESSAGE = "Failed to create session. Restart genterm to retry."
CANCELLED_MESSAGE = "Query cancelled."


class ActionKind(str, Enum):
    NOOP = "noop"
    CLEAR = "clear"
    HELP = "help"
    FILES = "files"
    QUERY = "query"


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    text: str = ""


BUILTIN_COMMANDS = {
    "clear": ActionKind.CLEAR,
    "help": ActionKind.HELP,
    "files": ActionKind.FILES,
}


def interpret(raw_input: str) -> Action:
    """Pure dispatch: trims input and maps it to an action. Matching is exact and case-sensitive."""
    command = str(raw_input or "").strip()
    if not command:
        return Action(ActionKind.NOOP)
    kind = BUILTIN_COMMANDS.get(command)
    if kind is not None:
        return Action(kind, command)
    return Action(ActionKind.QUERY, command)


class CommandInterpreter:
    """
    Drives one terminal session.
    Holds the terminal state and the uploaded files; talks to the backend only through the gateways.
    """

    def __init__(
        self,
        *,
        session_gateway: SessionGateway,
        chat_gateway: ChatGateway,
        state: TerminalState | None = None,
        files: FileStore | None = None,
        query_timeout_s: float | None = QUERY_TIMEOUT_S,
    ):
        self.session_gateway = session_gateway
        self.chat_gateway = chat_gateway
        self.state = state if state is not None else TerminalState()
        self.files = files if files is not None else FileStore()
        self.query_timeout_s = query_timeout_s

    # --- startup ---

    def show_welcome(self):
        for line in WELCOME_LINES:
            self.state.system(line)

    async def connect(self) -> bool:
        """Creates the backend session. On failure the terminal stays usable but cannot query."""
        try:
            session_id = await self.session_gateway.create_session()
        except SessionError as exc:
            logger.error("session_unavailable", error=str(exc))
            self.state.error(SESSION_FAILED_MESSAGE)
            return False
        self.state.attach_session(session_id)
        self.state.system(f"Session connected: {session_id}")
        return True

    # --- uploads ---

    def upload(self, candidates: Iterable[UploadedFile]) -> list[UploadedFile]:
        accepted = self.files.add_batch(candidates)
        if accepted:
            self.state.system(f"Uploaded {len(accepted)} file(s):")
            for f in accepted:
                self.state.system(f" - {f.name} ({format_file_size(f.size)})")
        return accepted

    # --- input handling ---

    def accept(self, raw_input: str) -> Action:
        """
        Synchronous half of a submission: gate, echo, history and dispatch.
        A query that passes the gate leaves the state in PROCESSING; run it with `execute`.
        """
        if self.state.is_processing:
            logger.debug("input_rejected_while_processing")
            return Action(ActionKind.NOOP)

        action = interpret(raw_input)
        if action.kind is ActionKind.NOOP:
            return action

        self.state.append(action.text, LineKind.USER)
        self.state.history.record(action.text)

        if action.kind is ActionKind.CLEAR:
            self.state.clear()
        elif action.kind is ActionKind.HELP:
            self.show_help()
        elif action.kind is ActionKind.FILES:
            self.list_files()
        elif action.kind is ActionKind.QUERY:
            if self.state.mode is TerminalMode.UNINITIALIZED or not self.state.session_id:
                self.state.error(NO_SESSION_MESSAGE)
                return Action(ActionKind.NOOP)
            self.state.begin_processing()
        return action

    async def execute(self, action: Action):
        if action.kind is ActionKind.QUERY:
            await self.process_query(action.text)

    async def submit(self, raw_input: str) -> Action:
        action = self.accept(raw_input)
        await self.execute(action)
        return action

    # --- built-ins ---

    def show_help(self):
        for line in HELP_LINES:
            self.state.system(line)

    def list_files(self):
        files = self.files.snapshot()
        if not files:
            self.state.system("No files uploaded.")
            return
        self.state.system("Uploaded Files:")
        for index, f in enumerate(files, start=1):
            self.state.system(f"{index}. {f.name} ({format_file_size(f.size)})")

    # --- queries ---

    async def process_query(self, query: str):
        """Runs one query to completion. Always returns the state to IDLE."""
        if not self.state.is_processing:
            self.state.begin_processing()
        files = self.files.snapshot()
        started = time.perf_counter()
        try:
            if self.query_timeout_s:
                try:
                    response = await asyncio.wait_for(self._answer(query, files), timeout=self.query_timeout_s)
                except asyncio.TimeoutError as exc:
                    raise QueryError(f"Query timed out after {self.query_timeout_s:g}s") from exc
            else:
                response = await self._answer(query, files)
        except asyncio.CancelledError:
            logger.info("query_cancelled", session_id=self.state.session_id)
            self.state.error(CANCELLED_MESSAGE)
            raise
        except GenTermError as exc:
            logger.error(
                "query_failed",
                session_id=self.state.session_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            self.state.error(f"Error: {exc}")
        except Exception as exc:
            logger.error("query_failed_unexpected", session_id=self.state.session_id, exc_info=True)
            self.state.error(f"Error: {str(exc) or 'Failed to process query'}")
        else:
            self.state.system("AI Response:")
            self.state.system("------------")
            self.state.append(response, LineKind.ASSISTANT)
            logger.info(
                "query_completed",
                session_id=self.state.session_id,
                files=len(files),
                latency_ms=round((time.perf_counter() - started) * 1000.0, 2),
            )
        finally:
            self.state.finish_processing()

    async def _answer(self, query: str, files: tuple[UploadedFile, ...]) -> str:
        session_id = self.state.session_id
        if not session_id:
            raise SessionError(NO_SESSION_MESSAGE)

        self.state.system(f"Processing query... {len(files)} files in context.")
        results = await extract_all(files)
        context = context_list(assemble(results))

        decision = route(query, files)
        if isinstance(decision, ImageQuery):
            self.state.system(f"Processing image: {decision.image.name}...")
            payload = await image_to_base64(decision.image)
            self.state.system("Analyzing image...")
            return await self.chat_gateway.send_image_query(
                session_id,
                query,
                context,
                build_message_content(query, payload),
            )

        self.state.system("Thinking...")
        return await self.chat_gateway.send_query(session_id, query, context)
