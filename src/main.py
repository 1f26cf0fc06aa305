#!/usr/bin/env python3

# Entry of rawsh

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import IO, Optional

from completion import CompletionEngine
from command import ExternalProcessRunner
from editor import PROMPT, LineEditor
from ops import BUILTIN_NAMES, CommandDispatcher, ExitRequested, ShellSession
from terminal import RawTerminal

logger = logging.getLogger("rawsh")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in TRUTHY


def configure_logging(log_file: Optional[str], level: str = "WARNING") -> None:
    """Send log records to ``log_file``; never to the terminal, which belongs to the session."""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    if not log_file:
        root.addHandler(logging.NullHandler())
        return
    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.WARNING
    parent = os.path.dirname(os.path.abspath(log_file))
    os.makedirs(parent, exist_ok=True)
    handler = logging.FileHandler(log_file)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(numeric)


def repl(
    double_run: bool = False,
    stdin: Optional[IO[str]] = None,
    stdout: Optional[IO[str]] = None,
    session: Optional[ShellSession] = None,
) -> int:
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout
    session = session or ShellSession()
    # Bytes that are not valid UTF-8 reach the editor as U+FFFD instead of raising
    reconfigure = getattr(stdin, "reconfigure", None)
    if reconfigure is not None:
        reconfigure(errors="replace")

    runner = ExternalProcessRunner(session.search_path, double_run=double_run)
    dispatcher = CommandDispatcher(session, runner)
    editor = LineEditor(CompletionEngine(BUILTIN_NAMES, session.search_path), stdin, stdout, prompt=PROMPT)

    last_status = 0
    with RawTerminal(stdin) as term:
        logger.info(f"Session started in {session.cwd} (raw mode: {term.active})")
        while True:
            try:
                line = editor.read_line()
            except KeyboardInterrupt:
                # Ctrl-C at prompt -> drop the buffer and prompt again
                stdout.write("\n")
                stdout.flush()
                continue

            if line is None:
                break
            if not line:
                continue

            try:
                last_status = dispatcher.execute_line(line)
            except ExitRequested as e:
                last_status = e.code
                break
            except KeyboardInterrupt:
                stdout.write("\n")
                stdout.flush()
                last_status = 130
            except Exception as e:
                logger.exception(f"Unhandled error while running {line!r}")
                sys.stderr.write(f"rawsh: error: {e}\n")
                sys.stderr.flush()
                last_status = 1

    logger.info(f"Session ended with status {last_status}")
    return last_status


def parse_args(args=None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="rawsh - a small interactive shell with tab completion",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  RAWSH_LOG_FILE     default for --log-file
  RAWSH_LOG_LEVEL    default for --log-level
  RAWSH_DOUBLE_RUN   set to 1 to enable --double-run
"""
    )

    parser.add_argument(
        "--log-file",
        metavar="PATH",
        default=os.environ.get("RAWSH_LOG_FILE"),
        help="Write diagnostic logs to PATH (disabled by default)"
    )
    parser.add_argument(
        "--log-level",
        metavar="LEVEL",
        default=os.environ.get("RAWSH_LOG_LEVEL", "WARNING"),
        help="Logging level name, e.g. DEBUG or INFO (default: WARNING)"
    )
    parser.add_argument(
        "--double-run",
        action="store_true",
        default=env_flag("RAWSH_DOUBLE_RUN"),
        help="Run commands with both stdout and stderr redirected twice, once per stream (legacy behaviour)"
    )

    return parser.parse_args(args)


def main() -> None:
    args = parse_args()
    configure_logging(args.log_file, args.log_level)
    sys.exit(repl(double_run=args.double_run))


if __name__ == "__main__":
    main()
