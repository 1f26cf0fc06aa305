"""Tab-completion for command names.

``CompletionEngine.complete`` looks at the word typed so far and decides what
the terminal should do: fill in a unique match, extend to the longest common
prefix, ring the bell, or (on a second consecutive tab) list every candidate.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Union

from command import SearchPath

logger = logging.getLogger(__name__)


@dataclass
class Autocomplete:
    """Replace the buffer with ``text`` (the single match plus a trailing space)."""
    text: str


@dataclass
class ExtendTo:
    """Replace the buffer with the longer common ``prefix`` (no trailing space)."""
    prefix: str


@dataclass
class Bell:
    pass


@dataclass
class ListCandidates:
    """Print every candidate, then redraw the prompt with the unchanged buffer."""
    candidates: List[str]

    def render(self) -> str:
        return "  ".join(self.candidates)


CompletionAction = Union[Autocomplete, ExtendTo, Bell, ListCandidates]


@dataclass
class CompletionState:
    last_key_was_tab: bool = False
    pending: Set[str] = field(default_factory=set)
    prefix: str = ""

    def reset(self) -> None:
        self.last_key_was_tab = False
        self.pending = set()
        self.prefix = ""


def longest_common_prefix(strings: List[str]) -> str:
    if not strings:
        return ""
    prefix = strings[0]
    for s in strings:
        while not s.startswith(prefix):
            prefix = prefix[:-1]
            if not prefix:
                return ""
    return prefix


class CompletionEngine:
    def __init__(self, builtins: Iterable[str], search_path: Optional[SearchPath] = None) -> None:
        self.builtins = tuple(builtins)
        self.search_path = search_path or SearchPath()

    def candidates(self, prefix: str) -> List[str]:
        """Names strictly longer than ``prefix`` that start with it, builtins first, no duplicates."""
        found: List[str] = []
        seen: Set[str] = set()
        names = list(self.builtins)
        names.extend(self.search_path.executables())
        for name in names:
            if name.startswith(prefix) and name != prefix and name not in seen:
                seen.add(name)
                found.append(name)
        return found

    def complete(self, prefix: str, state: CompletionState) -> CompletionAction:
        if state.last_key_was_tab and state.pending and state.prefix == prefix:
            listing = ListCandidates(sorted(state.pending))
            state.reset()
            return listing

        matches = self.candidates(prefix)
        logger.debug(f"Completion for {prefix!r}: {matches!r}")

        if len(matches) == 1:
            state.reset()
            return Autocomplete(matches[0] + " ")

        if len(matches) > 1:
            common = longest_common_prefix(matches)
            if len(common) > len(prefix):
                state.reset()
                return ExtendTo(common)
            state.last_key_was_tab = True
            state.pending = set(matches)
            state.prefix = prefix
            return Bell()

        state.reset()
        return Bell()
