"""
Shared test fixtures and configuration.
"""

import os
import subprocess
from pathlib import Path

import pytest

from build_ledger.adapters.mock import MockGit, MockRemote
from build_ledger.core.models.settings import LedgerSettings

_CI_VARS = (
    "GITHUB_ACTIONS",
    "GITHUB_OUTPUT",
    "GITHUB_ENV",
    "BUILD_LEDGER_LOG_LEVEL",
    "BUILD_LEDGER_LOG_FILE",
    "BUILD_LEDGER_LOG_FILE_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_ci_env(monkeypatch):
    """Keep the runner's own Actions environment out of the tests."""
    for name in list(os.environ):
        if name.startswith("INPUT_") or name in _CI_VARS:
            monkeypatch.delenv(name, raising=False)
    yield
    os.environ.pop("BUILD_NUMBER", None)


# ═══════════════════════════════════════════════════════════════════════
#  Git helpers
# ═══════════════════════════════════════════════════════════════════════


def git(path: Path, *args: str) -> str:
    """Run git in ``path`` and return stdout (raises on failure)."""
    r = subprocess.run(
        ["git", "-C", str(path), *args],
        capture_output=True, text=True, check=True,
    )
    return r.stdout


def init_remote(tmp_path: Path) -> Path:
    """Create a bare remote with one commit on ``main``."""
    remote = tmp_path / "remote.git"
    subprocess.run(
        ["git", "init", "--bare", "-b", "main", str(remote)],
        capture_output=True, check=True,
    )

    seed = tmp_path / "seed"
    subprocess.run(["git", "clone", str(remote), str(seed)], capture_output=True, check=True)
    git(seed, "config", "user.name", "Test User")
    git(seed, "config", "user.email", "test@test.com")
    git(seed, "symbolic-ref", "HEAD", "refs/heads/main")
    (seed / "README.md").write_text("# Test\n")
    git(seed, "add", ".")
    git(seed, "commit", "-m", "initial")
    git(seed, "push", "origin", "main")
    return remote


def clone(remote: Path, dest: Path) -> Path:
    """Clone ``remote`` the way a CI checkout step would."""
    subprocess.run(["git", "clone", str(remote), str(dest)], capture_output=True, check=True)
    return dest


def remote_ledger(remote: Path, branch: str = "build-numbers") -> str | None:
    """Read build_numbers.json at the remote branch tip (None if absent)."""
    r = subprocess.run(
        ["git", "-C", str(remote), "show", f"{branch}:build_numbers.json"],
        capture_output=True, text=True,
    )
    return r.stdout if r.returncode == 0 else None


def commit_messages(remote: Path, branch: str = "build-numbers") -> list[str]:
    """Commit subjects on a remote branch, newest first."""
    return git(remote, "log", "--format=%s", branch).splitlines()


# ═══════════════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════════════


@pytest.fixture
def remote_repo(tmp_path: Path) -> Path:
    """A bare remote repository with a ``main`` branch."""
    return init_remote(tmp_path)


@pytest.fixture
def work_repo(tmp_path: Path, remote_repo: Path) -> Path:
    """A CI-style clone of ``remote_repo``."""
    return clone(remote_repo, tmp_path / "work")


@pytest.fixture
def mock_remote() -> MockRemote:
    return MockRemote()


@pytest.fixture
def mock_git(tmp_path: Path, mock_remote: MockRemote) -> MockGit:
    """In-memory git working copy rooted in a temp directory."""
    work = tmp_path / "mock-work"
    work.mkdir()
    return MockGit(work, mock_remote)


@pytest.fixture
def settings() -> LedgerSettings:
    return LedgerSettings(identifier="app", lock_timeout=2.0)
