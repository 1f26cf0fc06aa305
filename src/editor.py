"""Per-keystroke line editing.

The editor reads one character at a time from an (ideally raw-mode) input
stream, echoes what it accepts, and hands tab presses to the completion
engine. It is a two-state machine: ``NORMAL`` and ``AWAITING_SECOND_TAB``
(after a tab that rang the bell over an ambiguous prefix).
"""
from __future__ import annotations

import logging
from enum import Enum, auto
from typing import IO, List, Optional

from completion import (
    Autocomplete,
    Bell,
    CompletionAction,
    CompletionEngine,
    CompletionState,
    ExtendTo,
    ListCandidates,
)

logger = logging.getLogger(__name__)

PROMPT = "$ "

TAB = "\t"
NEWLINE = "\n"
BACKSPACE_KEYS = ("\x7f", "\x08")
CTRL_D = "\x04"
BELL = "\a"
# What a decoder with errors="replace" yields for undecodable input
REPLACEMENT = "\ufffd"


class EditorState(Enum):
    NORMAL = auto()
    AWAITING_SECOND_TAB = auto()


class LineEditor:
    def __init__(
        self,
        completer: CompletionEngine,
        stdin: IO[str],
        stdout: IO[str],
        prompt: str = PROMPT,
    ) -> None:
        self.completer = completer
        self.stdin = stdin
        self.stdout = stdout
        self.prompt = prompt
        self.buffer: List[str] = []
        self.completion = CompletionState()
        self.state = EditorState.NORMAL

    @property
    def text(self) -> str:
        return ''.join(self.buffer)

    def _write(self, s: str) -> None:
        self.stdout.write(s)
        self.stdout.flush()

    def read_line(self) -> Optional[str]:
        """Prompt, then edit until newline; return the stripped line.

        Returns None at end of input (EOF, or Ctrl-D on an empty line).
        """
        self.buffer = []
        self.end_tab_sequence()
        self._write(self.prompt)

        while True:
            try:
                ch = self.stdin.read(1)
            except UnicodeDecodeError as e:
                logger.debug(f"Undecodable input skipped: {e}")
                self._write(BELL)
                continue
            if ch == "":
                self._write(NEWLINE)
                return self.text.strip() if self.buffer else None
            if ch == REPLACEMENT:
                self._write(BELL)
                continue
            if ch == NEWLINE:
                self.end_tab_sequence()
                self._write(NEWLINE)
                return self.text.strip()
            if ch == TAB:
                self.on_tab()
                continue
            # Every other key breaks a tab sequence
            self.end_tab_sequence()
            if ch in BACKSPACE_KEYS:
                self.on_backspace()
            elif ch == CTRL_D:
                if not self.buffer:
                    self._write(NEWLINE)
                    return None
            else:
                self.on_char(ch)

    # --- transitions ---

    def on_char(self, ch: str) -> None:
        self.buffer.append(ch)
        self._write(ch)

    def on_backspace(self) -> None:
        if self.buffer:
            self.buffer.pop()
            self._write("\b \b")

    def end_tab_sequence(self) -> None:
        self.state = EditorState.NORMAL
        self.completion.reset()

    def on_tab(self) -> None:
        if self.state is EditorState.NORMAL:
            # A first tab never lists, whatever is left in the completion state
            self.completion.reset()
        action = self.completer.complete(self.text.strip(), self.completion)
        logger.debug(f"Tab in state {self.state.name}: {action!r}")
        if isinstance(action, Bell) and self.completion.pending:
            self.state = EditorState.AWAITING_SECOND_TAB
        else:
            self.state = EditorState.NORMAL
        self.apply(action)

    def apply(self, action: CompletionAction) -> None:
        if isinstance(action, Autocomplete):
            self._replace(action.text)
        elif isinstance(action, ExtendTo):
            self._replace(action.prefix)
        elif isinstance(action, ListCandidates):
            self._write(NEWLINE + action.render() + NEWLINE + self.prompt + self.text)
        elif isinstance(action, Bell):
            self._write(BELL)

    def _replace(self, text: str) -> None:
        self.buffer = list(text)
        self._write("\r" + self.prompt + text)
