# /genterm/app.py
"""
Main application file for the GenTerm terminal.
Renders the terminal log with Rich, reads input with prompt_toolkit and hands
every submitted line to the command interpreter.
"""
import argparse
import asyncio
import shlex
import sys
from contextlib import suppress

from prompt_toolkit import PromptSession
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.patch_stdout import patch_stdout
from rich.markup import escape
from rich.panel import Panel

# Local module imports
from .command_interpreter import ActionKind, CommandInterpreter
from .config import API_URL, PROMPT_REFRESH_INTERVAL_S, QUERY_TIMEOUT_S, console
from .gateway import BackendClient
from .observability import get_logger
from .terminal_state import IDLE_PROMPT, LineKind, TerminalLine, TerminalState
from .uploads import UploadedFile, resolve_upload_path

logger = get_logger(__name__)

LINE_STYLES = {
    LineKind.SYSTEM: "cyan",
    LineKind.USER: "white",
    LineKind.ASSISTANT: "bright_green",
    LineKind.ERROR: "bold red",
}


# --- UI & Formatting Functions ---

def display_welcome_banner():
    """Displays the application's welcome banner."""
    console.print(Panel(
        "[bold magenta]GenTerm[/bold magenta]",
        subtitle="[cyan]Terminal-based RAG Q&A Assistant[/cyan]",
        expand=False
    ))


def render_line(line: TerminalLine):
    style = LINE_STYLES.get(line.kind, "cyan")
    text = escape(line.text)
    if line.kind is LineKind.USER:
        console.print(f"[bold green]{escape(IDLE_PROMPT)}[/bold green][{style}]{text}[/{style}]")
    else:
        console.print(f"[{style}]{text}[/{style}]", soft_wrap=True)


class TerminalRenderer:
    """State listener that draws new lines and wipes the screen after `clear`."""

    def __init__(self):
        self._rendered = 0
        self.prompt_session: PromptSession | None = None

    def __call__(self, state: TerminalState, line: TerminalLine | None):
        if line is not None:
            render_line(line)
            self._rendered += 1
        elif not state.lines and self._rendered:
            console.clear()
            self._rendered = 0
        if self.prompt_session is not None and self.prompt_session.app.is_running:
            self.prompt_session.app.invalidate()


def upload_paths(interpreter: CommandInterpreter, raw_paths: list[str]):
    """Reads every path into memory and hands the batch to the interpreter."""
    candidates = []
    for raw in raw_paths:
        path, error_message = resolve_upload_path(raw)
        if path is None:
            interpreter.state.error(error_message)
            continue
        try:
            candidates.append(UploadedFile.from_path(path))
        except OSError as exc:
            logger.error("upload_read_failed", path=str(path), error=str(exc))
            interpreter.state.error(f"Error: Could not read '{path}' ({exc})")
    if candidates:
        interpreter.upload(candidates)


def _split_paths(text: str) -> list[str]:
    try:
        return shlex.split(text)
    except ValueError:
        return [text]


def build_key_bindings(interpreter: CommandInterpreter) -> KeyBindings:
    state = interpreter.state
    bindings = KeyBindings()

    def _show(buffer, text: str | None):
        if text is not None:
            buffer.text = text
            buffer.cursor_position = len(text)

    @bindings.add("up")
    def _(event):
        if not state.is_processing:
            _show(event.current_buffer, state.history.recall_older())

    @bindings.add("down")
    def _(event):
        if not state.is_processing:
            _show(event.current_buffer, state.history.recall_newer())

    @bindings.add("c-o")
    def _(event):
        buffer = event.current_buffer
        raw = buffer.text.strip()
        buffer.reset()
        if raw:
            upload_paths(interpreter, _split_paths(raw))

    return bindings


# --- Main Application Flow ---

async def run_terminal(interpreter: CommandInterpreter, initial_paths: list[str] | None = None):
    """Interactive loop. Input stays live while a query runs; submissions are refused until it ends."""
    renderer = TerminalRenderer()
    interpreter.state.listener = renderer

    interpreter.show_welcome()
    if initial_paths:
        upload_paths(interpreter, initial_paths)
    await interpreter.connect()

    prompt_session = PromptSession(
        key_bindings=build_key_bindings(interpreter),
        refresh_interval=PROMPT_REFRESH_INTERVAL_S,
    )
    renderer.prompt_session = prompt_session
    inflight: asyncio.Task | None = None

    try:
        with patch_stdout(raw=True):
            while True:
                try:
                    raw = await prompt_session.prompt_async(lambda: interpreter.state.prompt_label)
                except KeyboardInterrupt:
                    if inflight is not None and not inflight.done():
                        inflight.cancel()
                        continue
                    break
                except EOFError:
                    break

                action = interpreter.accept(raw)
                if action.kind is ActionKind.QUERY:
                    inflight = asyncio.create_task(interpreter.execute(action))
    finally:
        if inflight is not None and not inflight.done():
            inflight.cancel()
            with suppress(asyncio.CancelledError):
                await inflight


async def _amain(args: argparse.Namespace):
    async with BackendClient(args.api_url) as client:
        interpreter = CommandInterpreter(
            session_gateway=client,
            chat_gateway=client,
            query_timeout_s=args.timeout,
        )
        await run_terminal(interpreter, args.files)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="genterm", description="Terminal-based RAG Q&A assistant")
    parser.add_argument("files", nargs="*", help="Files to upload at startup (.txt, .pdf, .png, .jpg, .jpeg)")
    parser.add_argument("--api-url", default=API_URL, help="GenTerm backend base URL")
    parser.add_argument(
        "--timeout",
        type=float,
        default=QUERY_TIMEOUT_S,
        help="Seconds before an unanswered query is abandoned",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None):
    """Main application entry point."""
    args = parse_args(argv)
    display_welcome_banner()
    try:
        asyncio.run(_amain(args))
    except KeyboardInterrupt:
        pass
    console.print("\n[bold magenta]Goodbye![/bold magenta]")
    sys.exit(0)


if __name__ == "__main__":
    main()
