# module for command execution

from __future__ import annotations

import logging
import os
import subprocess
import sys
from typing import IO, Dict, Iterator, List, Mapping, Optional, Tuple

from groups import RedirectTarget, RedirectionSpec

logger = logging.getLogger(__name__)


def is_executable_file(path: str) -> bool:
    return os.path.isfile(path) and os.access(path, os.X_OK)


def prepare_target(path: str) -> str:
    """Create the parent directory of a redirection target and return the path."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    return path


class SearchPath:
    """Directories from ``PATH``, consulted left to right.

    The environment is read again on every lookup so changes to ``PATH`` are
    picked up without restarting the shell.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self.env = env

    def directories(self) -> List[str]:
        env = self.env if self.env is not None else os.environ
        raw = (env.get("PATH") or "").strip()
        return [d for d in raw.split(":") if d]

    def find(self, name: str) -> Optional[str]:
        """Absolute path of the first executable named ``name``, or None."""
        for directory in self.directories():
            candidate = os.path.join(directory, name)
            if is_executable_file(candidate):
                return os.path.abspath(candidate)
        return None

    def executables(self) -> Iterator[str]:
        """Yield the name of every executable file, first directory first (may repeat)."""
        for directory in self.directories():
            try:
                entries = os.listdir(directory)
            except OSError as e:
                logger.debug(f"Skipping unreadable PATH entry {directory}: {e}")
                continue
            for entry in entries:
                if is_executable_file(os.path.join(directory, entry)):
                    yield entry


class ExternalProcessRunner:
    """Run an external program with the requested stream redirections.

    Lifecycle:
    - ``find_executable`` resolves a command name (PATH, or cwd when the name
      contains a slash).
    - ``run`` spawns it and blocks until it exits, returning the exit status.

    Notes:
    - Appending to an existing file pipes the stream back to the shell and
      appends the captured bytes once the child has exited, so appended output
      is not visible incrementally.
    - With ``double_run`` the legacy behaviour for ``cmd >out 2>err`` is kept:
      the command runs once per captured stream.
    """

    def __init__(self, search_path: Optional[SearchPath] = None, double_run: bool = False) -> None:
        self.search_path = search_path or SearchPath()
        self.double_run = double_run

    def find_executable(self, name: str, cwd: str) -> Optional[str]:
        if "/" in name:
            path = name if os.path.isabs(name) else os.path.join(cwd, name)
            return os.path.abspath(path) if is_executable_file(path) else None
        return self.search_path.find(name)

    def run(
        self,
        executable: str,
        argv: List[str],
        cwd: str,
        redirection: Optional[RedirectionSpec] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> int:
        redirection = redirection or RedirectionSpec()
        child_env: Optional[Dict[str, str]] = dict(env) if env is not None else None

        # Our own buffered output must land before the child's
        sys.stdout.flush()
        sys.stderr.flush()

        if self.double_run and redirection.stdout is not None and redirection.stderr is not None:
            logger.debug(f"Double run of {argv[0]} for separate stdout/stderr capture")
            first = RedirectionSpec(stdout=redirection.stdout)
            self._spawn(executable, argv, cwd, first, child_env, discard_stderr=True)
            second = RedirectionSpec(stderr=redirection.stderr)
            return self._spawn(executable, argv, cwd, second, child_env, discard_stdout=True)

        return self._spawn(executable, argv, cwd, redirection, child_env)

    # ------------------------------------------------------------------
    def _open_stream(self, target: Optional[RedirectTarget], cwd: str, closers: List[IO[bytes]]) -> Tuple[object, Optional[str]]:
        """Return (stdio argument for Popen, path to append captured bytes to)."""
        if target is None:
            return None, None
        path = target.path if os.path.isabs(target.path) else os.path.join(cwd, target.path)
        prepare_target(path)
        if target.append and os.path.exists(path):
            return subprocess.PIPE, path
        f = open(path, "wb")
        closers.append(f)
        return f, None

    def _spawn(
        self,
        executable: str,
        argv: List[str],
        cwd: str,
        redirection: RedirectionSpec,
        env: Optional[Dict[str, str]],
        *,
        discard_stdout: bool = False,
        discard_stderr: bool = False,
    ) -> int:
        closers: List[IO[bytes]] = []
        try:
            stdout, stdout_append = self._open_stream(redirection.stdout, cwd, closers)
            stderr, stderr_append = self._open_stream(redirection.stderr, cwd, closers)
            if discard_stdout and stdout is None:
                stdout = subprocess.DEVNULL
            if discard_stderr and stderr is None:
                stderr = subprocess.DEVNULL

            logger.debug(f"Spawning {executable} argv={argv!r} cwd={cwd}")
            try:
                proc = subprocess.Popen(argv, executable=executable, cwd=cwd, stdout=stdout, stderr=stderr, env=env)
            except FileNotFoundError as e:
                sys.stderr.write(f"rawsh: {argv[0]}: {e.strerror}\n")
                sys.stderr.flush()
                return 127
            except OSError as e:
                sys.stderr.write(f"rawsh: {argv[0]}: {e.strerror or e}\n")
                sys.stderr.flush()
                return 126

            try:
                if stdout_append or stderr_append:
                    out, err = proc.communicate()
                else:
                    proc.wait()
                    out = err = None
            except KeyboardInterrupt:
                # The child got the same SIGINT; let it finish dying
                proc.wait()
                logger.debug(f"{argv[0]} interrupted")
                return 130

            if stdout_append and out:
                with open(stdout_append, "ab") as f:
                    f.write(out)
            if stderr_append and err:
                with open(stderr_append, "ab") as f:
                    f.write(err)

            logger.debug(f"{argv[0]} exited with {proc.returncode}")
            return proc.returncode
        finally:
            for h in closers:
                try:
                    h.close()
                except OSError:
                    pass
