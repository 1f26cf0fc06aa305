import os
import stat
import sys
from pathlib import Path
import pytest

# Ensure we can import modules from src/
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def make_executable(directory: Path, name: str, body: str = "#!/bin/sh\nexit 0\n") -> Path:
    path = directory / name
    path.write_text(body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture()
def bin_dir(tmp_path):
    d = tmp_path / "bin"
    d.mkdir()
    return d


@pytest.fixture()
def sandbox(tmp_path, monkeypatch, bin_dir):
    # Work in an isolated temp directory
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    # Prune environment to a minimal safe set; our bin dir is searched first
    safe_env = {
        "PATH": f"{bin_dir}:/usr/bin:/bin",
        "HOME": str(tmp_path),
        "LANG": os.environ.get("LANG", "C"),
        "LC_ALL": os.environ.get("LC_ALL", "C"),
        "TERM": os.environ.get("TERM", "dumb"),
    }
    monkeypatch.setenv("PATH", safe_env["PATH"])
    monkeypatch.setenv("HOME", safe_env["HOME"])
    return work, safe_env


@pytest.fixture()
def session(sandbox):
    from ops import ShellSession
    work, safe_env = sandbox
    return ShellSession(cwd=str(work), env=safe_env)
