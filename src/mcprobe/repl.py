"""Interactive RCON console using prompt_toolkit."""

from __future__ import annotations

import logging
import queue
import sys
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.patch_stdout import patch_stdout

if TYPE_CHECKING:
    from prompt_toolkit.key_binding.key_processor import KeyPressEvent

    from mcprobe.rcon import RconSession

from mcprobe.config import HISTORY_FILE, ensure_config_dir
from mcprobe.errors import McProbeError
from mcprobe.formatting import format_response

log = logging.getLogger(__name__)

_POLL_INTERVAL = 0.2
_EXIT_COMMANDS = ("exit", "quit")


def _create_key_bindings() -> KeyBindings:
    """Ctrl+C and Ctrl+D abandon a non-empty line and exit on an empty one."""
    kb = KeyBindings()

    @kb.add("c-c")
    @kb.add("c-d")
    def _(event: KeyPressEvent) -> None:
        buffer = event.app.current_buffer
        if buffer.text:
            buffer.reset()
        elif event.key_sequence[0].key == "c-c":
            event.app.exit(exception=KeyboardInterrupt)
        else:
            event.app.exit(exception=EOFError)

    return kb


def _print_messages(
    session: RconSession, stop: threading.Event, *, color: bool
) -> None:
    """Print responses from the session queue until ``stop`` is set."""
    while not stop.is_set():
        try:
            message = session.messages.get(timeout=_POLL_INTERVAL)
        except queue.Empty:
            continue
        if message:
            print(format_response(message, color=color))


def run_console(
    session: RconSession,
    *,
    color: bool = True,
    history_path: Path = HISTORY_FILE,
) -> None:
    """Run the interactive console loop.

    Responses are printed by a separate thread as they arrive, above the
    prompt, since RCON does not pair them with commands.

    Args:
        session: An already-dialed and logged-in session.
        color: If True, convert formatting codes to ANSI. If False, strip them.
        history_path: File used for command history.
    """
    if history_path == HISTORY_FILE:
        ensure_config_dir()

    prompt: PromptSession[str] = PromptSession(
        history=FileHistory(str(history_path)),
        key_bindings=_create_key_bindings(),
    )
    stop = threading.Event()
    printer = threading.Thread(
        target=_print_messages,
        args=(session, stop),
        kwargs={"color": color},
        name="rcon-printer",
        daemon=True,
    )

    with patch_stdout():
        printer.start()
        try:
            _prompt_loop(prompt, session)
        finally:
            stop.set()
            printer.join(_POLL_INTERVAL * 2)


def _prompt_loop(prompt: PromptSession[str], session: RconSession) -> None:
    while True:
        try:
            text = prompt.prompt(HTML("<ansigreen>rcon</ansigreen>> ")).strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye.")
            return

        if not text:
            continue

        if text in _EXIT_COMMANDS:
            print("Goodbye.")
            return

        try:
            session.run(text)
        except (McProbeError, OSError) as e:
            print(f"Connection lost: {e}", file=sys.stderr)
            return

        if session.reader_error is not None:
            print(f"Reader stopped: {session.reader_error}", file=sys.stderr)
            return
