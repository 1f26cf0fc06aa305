from __future__ import annotations

import logging
import os
import sys
from typing import IO, Callable, Dict, List, Mapping, Optional

from command import ExternalProcessRunner, SearchPath, prepare_target
from groups import RedirectTarget, RedirectionSpec, split_line

logger = logging.getLogger(__name__)

# Names reported by `type` as builtins and offered by completion.
BUILTIN_NAMES = ("echo", "exit", "type", "pwd", "cd")


class ExitRequested(Exception):
    """Raised by `exit 0` to end the read loop."""

    def __init__(self, code: int = 0) -> None:
        super().__init__(code)
        self.code = code


class ShellSession:
    """Holds session-wide shell context: working directory, environment and output streams."""

    def __init__(
        self,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        stdout: Optional[IO[str]] = None,
        stderr: Optional[IO[str]] = None,
    ) -> None:
        self.cwd: str = os.path.abspath(cwd or os.getcwd())
        # Defaults to the live process environment so PATH is re-read on every lookup
        self.env: Mapping[str, str] = env if env is not None else os.environ
        self._stdout = stdout
        self._stderr = stderr

    @property
    def stdout(self) -> IO[str]:
        return self._stdout if self._stdout is not None else sys.stdout

    @property
    def stderr(self) -> IO[str]:
        return self._stderr if self._stderr is not None else sys.stderr

    @property
    def search_path(self) -> SearchPath:
        return SearchPath(self.env)

    def get_env(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.env.get(name, default)

    def resolve(self, path: str) -> str:
        if path.startswith("/"):
            return path
        return os.path.join(self.cwd, path)


# --- Output helpers ---

def write_target(session: ShellSession, target: RedirectTarget, data: bytes) -> str:
    """Write ``data`` to a redirection target, creating parent directories first."""
    path = prepare_target(session.resolve(target.path))
    with open(path, "ab" if target.append else "wb") as f:
        f.write(data)
    return path


def _write_bytes(stream: IO[str], data: bytes) -> None:
    buffer = getattr(stream, "buffer", None)
    stream.flush()
    if buffer is not None:
        buffer.write(data)
        buffer.flush()
    else:
        stream.write(data.decode("utf-8", errors="replace"))
        stream.flush()


def emit(session: ShellSession, target: Optional[RedirectTarget], text: str) -> None:
    if target is not None:
        write_target(session, target, text.encode("utf-8"))
        return
    session.stdout.write(text)
    session.stdout.flush()


# --- Builtins ---
# Each handler: (args, redirection, session) -> exit status

def builtin_echo(args: List[str], redirection: RedirectionSpec, session: ShellSession) -> int:
    emit(session, redirection.stdout, " ".join(args) + "\n")
    if redirection.stderr is not None:
        # echo never writes errors; the target is left empty even for 2>>
        write_target(session, RedirectTarget(redirection.stderr.path), b"")
    return 0


def builtin_pwd(args: List[str], redirection: RedirectionSpec, session: ShellSession) -> int:
    emit(session, redirection.stdout, os.path.realpath(session.cwd) + "\n")
    return 0


def builtin_cd(args: List[str], redirection: RedirectionSpec, session: ShellSession) -> int:
    arg = args[0] if args else "~"
    if arg == "~" or arg.startswith("~/"):
        home = session.get_env("HOME")
        if not home:
            emit(session, redirection.stdout, "cd: HOME not set\n")
            return 1
        target = home if arg == "~" else os.path.join(home, arg[2:])
    else:
        target = session.resolve(arg)

    # ".." is resolved by the filesystem, so the stored cwd is the directory isdir saw
    target = os.path.realpath(target)
    if os.path.isdir(target):
        session.cwd = target
        logger.debug(f"cwd -> {session.cwd}")
        return 0
    emit(session, redirection.stdout, f"cd: {arg}: No such file or directory\n")
    return 1


def builtin_type(args: List[str], redirection: RedirectionSpec, session: ShellSession) -> int:
    if len(args) != 1:
        session.stderr.write("type: usage: type name\n")
        session.stderr.flush()
        return 2
    name = args[0]
    if name in BUILTIN_NAMES:
        emit(session, redirection.stdout, f"{name} is a shell builtin\n")
        return 0
    path = session.search_path.find(name)
    if path is not None:
        emit(session, redirection.stdout, f"{name} is {path}\n")
        return 0
    emit(session, redirection.stdout, f"{name}: not found\n")
    return 1


def builtin_cat(args: List[str], redirection: RedirectionSpec, session: ShellSession) -> int:
    output = bytearray()
    errors: List[str] = []
    failed = False

    for arg in args:
        path = session.resolve(arg)
        message: Optional[str] = None
        if not os.path.isfile(path):
            message = f"cat: {arg}: No such file or directory"
        else:
            try:
                with open(path, "rb") as f:
                    output.extend(f.read())
            except OSError as e:
                message = f"cat: {arg}: {e.strerror or e}"
        if message is None:
            continue
        failed = True
        if redirection.stderr is not None:
            errors.append(message + "\n")
        else:
            session.stderr.write(message + "\n")
            session.stderr.flush()

    if redirection.stdout is not None:
        write_target(session, redirection.stdout, bytes(output))
    elif output:
        _write_bytes(session.stdout, bytes(output))

    if redirection.stderr is not None and errors:
        write_target(session, redirection.stderr, "".join(errors).encode("utf-8"))

    return 1 if failed else 0


Handler = Callable[[List[str], RedirectionSpec, ShellSession], int]

BUILTIN_HANDLERS: Dict[str, Handler] = {
    "echo": builtin_echo,
    "pwd": builtin_pwd,
    "cd": builtin_cd,
    "type": builtin_type,
    "cat": builtin_cat,
}


def is_exit_request(tokens: List[str]) -> bool:
    return len(tokens) == 2 and tokens[0] == "exit" and tokens[1] == "0"


class CommandDispatcher:
    """Routes one parsed command line to a builtin handler or an external program.

    ``exit 0`` is checked first and raises ``ExitRequested``; other forms of
    ``exit`` are not builtins and go through external resolution like any
    unknown name.
    """

    def __init__(self, session: ShellSession, runner: Optional[ExternalProcessRunner] = None) -> None:
        self.session = session
        self.runner = runner or ExternalProcessRunner(session.search_path)
        self.handlers: Dict[str, Handler] = dict(BUILTIN_HANDLERS)

    def execute_line(self, line: str) -> int:
        tokens, redirection = split_line(line)
        if not tokens:
            return 0
        return self.dispatch(tokens, redirection)

    def dispatch(self, tokens: List[str], redirection: Optional[RedirectionSpec] = None) -> int:
        redirection = redirection or RedirectionSpec()
        argv = [str(t) for t in tokens]
        if is_exit_request(argv):
            raise ExitRequested(0)

        name, args = argv[0], argv[1:]
        handler = self.handlers.get(name)
        try:
            if handler is not None:
                logger.debug(f"builtin {name} args={args!r}")
                return handler(args, redirection, self.session)
            return self.run_external(argv, redirection)
        except OSError as e:
            logger.error(f"{name} failed: {e}", exc_info=True)
            self.session.stderr.write(f"rawsh: {e}\n")
            self.session.stderr.flush()
            return 1

    def run_external(self, argv: List[str], redirection: RedirectionSpec) -> int:
        name = argv[0]
        executable = self.runner.find_executable(name, self.session.cwd)
        if executable is None:
            logger.debug(f"{name}: not on PATH")
            emit(self.session, None, f"{name}: command not found\n")
            return 127
        return self.runner.run(executable, argv, self.session.cwd, redirection, env=self.session.env)


def execute_line(line: str, session: ShellSession, runner: Optional[ExternalProcessRunner] = None) -> int:
    return CommandDispatcher(session, runner).execute_line(line)
