from __future__ import annotations

import importlib.util
import shutil
import subprocess
import sys
from pathlib import Path
from types import ModuleType
from typing import Any

import pytest


REPO_ROOT = Path(__file__).resolve().parents[1]


def load_script_module(module_name: str, relative_path: str) -> ModuleType:
    module_path = REPO_ROOT / relative_path
    scripts_dir = str(module_path.parent)
    if scripts_dir not in sys.path:
        sys.path.insert(0, scripts_dir)

    spec = importlib.util.spec_from_file_location(module_name, module_path)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"unable to load module from {module_path}")

    module = importlib.util.module_from_spec(spec)
    # dataclasses resolves string annotations through sys.modules.
    sys.modules[module_name] = module
    spec.loader.exec_module(module)
    return module


@pytest.fixture(scope="session")
def repo_root() -> Path:
    return REPO_ROOT


class GitRunRecorder:
    """Stands in for subprocess.run; fails the first command whose args contain `fail_on`."""

    def __init__(self, *, fail_on: str | None = None, returncode: int = 128):
        self.fail_on = fail_on
        self.returncode = returncode
        self.calls: list[dict[str, Any]] = []

    def __call__(self, cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
        self.calls.append({"cmd": list(cmd), "kwargs": kwargs})
        if self.fail_on is not None and self.fail_on in cmd:
            raise subprocess.CalledProcessError(self.returncode, cmd)
        return subprocess.CompletedProcess(cmd, 0)

    @property
    def commands(self) -> list[list[str]]:
        return [call["cmd"] for call in self.calls]


@pytest.fixture
def git_run_factory():
    return GitRunRecorder


@pytest.fixture(scope="session")
def tag_major():
    return load_script_module("landfall_tag_major", "scripts/tag_major.py")


def git(repo: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), *args],
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path: Path, monkeypatch) -> Path:
    """Working clone with one commit and an empty bare `origin`."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")

    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("GIT_CONFIG_GLOBAL", raising=False)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("LC_ALL", "C")
    for role in ("AUTHOR", "COMMITTER"):
        monkeypatch.setenv(f"GIT_{role}_NAME", "Release Bot")
        monkeypatch.setenv(f"GIT_{role}_EMAIL", "release-bot@example.com")

    origin = tmp_path / "origin.git"
    work = tmp_path / "work"
    subprocess.run(["git", "init", "--quiet", "--bare", str(origin)], check=True)
    subprocess.run(["git", "init", "--quiet", str(work)], check=True)
    git(work, "remote", "add", "origin", str(origin))
    git(work, "commit", "--quiet", "--allow-empty", "-m", "initial")
    return work
