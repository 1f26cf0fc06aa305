"""Tokenization and redirection utilities for rawsh.

This module turns a raw input line into argv-ordered tokens and then pulls
the redirection operators (``>``, ``>>``, ``2>`` ...) out of that token list,
leaving the command itself plus a description of where its output should go.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

# Operator -> (stream, append)
REDIRECT_OPERATORS = {
    ">": ("stdout", False),
    "1>": ("stdout", False),
    ">>": ("stdout", True),
    "1>>": ("stdout", True),
    "2>": ("stderr", False),
    "2>>": ("stderr", True),
}


class Token(str):
    """A parsed word. ``quoted`` is set when any character came from quotes or an escape."""

    quoted: bool

    def __new__(cls, value: str, quoted: bool = False) -> "Token":
        tok = super().__new__(cls, value)
        tok.quoted = quoted
        return tok

    def __repr__(self) -> str:
        return f"Token({str(self)!r}, quoted={self.quoted!r})"


@dataclass
class RedirectTarget:
    path: str
    append: bool = False


@dataclass
class RedirectionSpec:
    stdout: Optional[RedirectTarget] = None
    stderr: Optional[RedirectTarget] = None

    @property
    def is_empty(self) -> bool:
        return self.stdout is None and self.stderr is None


# --- Tokenization ---

def tokenize(line: str) -> List[Token]:
    """Split ``line`` into tokens honoring single/double quotes and backslashes.

    - Only a space outside quotes separates tokens; empty tokens are dropped.
    - Inside single quotes everything is literal.
    - Inside double quotes ``\\"`` and ``\\\\`` collapse to one character,
      ``\\'`` and any other ``\\x`` keep both characters.
    - Outside quotes a backslash makes the next character literal.
    - Unterminated quotes simply run to the end of the line.
    """
    tokens: List[Token] = []
    buf: List[str] = []
    buf_quoted = False
    in_single = False
    in_double = False
    i = 0
    n = len(line)

    def flush_buf() -> None:
        nonlocal buf_quoted
        if buf:
            tokens.append(Token(''.join(buf), buf_quoted))
            buf.clear()
        buf_quoted = False

    while i < n:
        ch = line[i]
        if ch == '\\' and i + 1 < n:
            nxt = line[i + 1]
            buf_quoted = True
            if in_single:
                # Literal; the next character is handled on its own
                buf.append('\\')
                i += 1
                continue
            if in_double:
                if nxt in ('"', '\\'):
                    buf.append(nxt)
                else:
                    buf.append('\\')
                    buf.append(nxt)
            else:
                buf.append(nxt)
            i += 2
            continue
        if ch == "'" and not in_double:
            in_single = not in_single
            buf_quoted = True
            i += 1
            continue
        if ch == '"' and not in_single:
            in_double = not in_double
            buf_quoted = True
            i += 1
            continue
        if ch == ' ' and not in_single and not in_double:
            flush_buf()
            i += 1
            continue
        buf.append(ch)
        i += 1

    flush_buf()
    return tokens


# --- Redirection ---

def is_redirect_operator(tok: str) -> bool:
    return tok in REDIRECT_OPERATORS and not getattr(tok, "quoted", False)


def extract_redirections(tokens: List[str]) -> Tuple[List[str], RedirectionSpec]:
    """Separate redirection operators and their targets from the command tokens.

    An operator without a following token is kept as an ordinary argument.
    A later operator for the same stream replaces an earlier one.
    """
    command: List[str] = []
    spec = RedirectionSpec()
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if is_redirect_operator(tok) and i + 1 < len(tokens):
            stream, append = REDIRECT_OPERATORS[str(tok)]
            target = RedirectTarget(str(tokens[i + 1]), append)
            if stream == "stdout":
                spec.stdout = target
            else:
                spec.stderr = target
            i += 2
            continue
        command.append(tok)
        i += 1
    return command, spec


def split_line(line: str) -> Tuple[List[str], RedirectionSpec]:
    return extract_redirections(tokenize(line))
