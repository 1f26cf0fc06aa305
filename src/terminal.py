"""Raw (cbreak) terminal mode for per-keystroke input."""
from __future__ import annotations

import logging
from typing import IO, Any, List, Optional

try:
    import termios
except ImportError:  # pragma: no cover - non-POSIX platforms
    termios = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)


class RawTerminal:
    """Context manager that switches a TTY to unechoed, unbuffered input.

    Line buffering (ICANON) and echo are turned off, signal keys keep working
    so Ctrl-C still interrupts. The original attributes are restored on exit,
    whatever way the block is left. When the stream is not a TTY nothing is
    changed.
    """

    def __init__(self, stream: IO[Any]) -> None:
        self._stream = stream
        self._fd = -1
        self._saved: Optional[List[Any]] = None

    @property
    def active(self) -> bool:
        return self._saved is not None

    def __enter__(self) -> "RawTerminal":
        if termios is None:
            return self
        try:
            if not self._stream.isatty():
                return self
            self._fd = self._stream.fileno()
        except (AttributeError, ValueError, OSError):
            return self
        self._saved = termios.tcgetattr(self._fd)
        new = termios.tcgetattr(self._fd)
        new[3] = new[3] & ~(termios.ICANON | termios.ECHO)
        new[3] = new[3] | termios.ISIG
        new[6][termios.VMIN] = 1
        new[6][termios.VTIME] = 0
        termios.tcsetattr(self._fd, termios.TCSADRAIN, new)
        logger.debug(f"Raw mode enabled on fd {self._fd}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        if self._saved is None:
            return
        try:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)
            logger.debug(f"Terminal mode restored on fd {self._fd}")
        except termios.error as e:
            logger.warning(f"Could not restore terminal mode: {e}")
        finally:
            self._saved = None
