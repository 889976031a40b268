"""
Show use case — read build numbers without taking the lock or writing.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from build_ledger.adapters.base import GitClient
from build_ledger.adapters.vcs.git import DEFAULT_TIMEOUT, GitRepository
from build_ledger.core.errors import BuildLedgerError
from build_ledger.core.models.ledger import Ledger
from build_ledger.core.persistence.ledger_file import load_ledger
from build_ledger.core.services.ledger.updater import read_remote_ledger


@dataclass
class ShowResult:
    """Ledger contents as read from the working tree or the remote."""

    source: str = ""
    ledger: Ledger | None = None
    error: str | None = None

    def value(self, identifier: str) -> int:
        return self.ledger.get(identifier) if self.ledger else 0

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        if self.error:
            return {"error": self.error}
        return {
            "source": self.source,
            "build_numbers": self.ledger.model_dump() if self.ledger else {},
        }


def show_ledger(
    *,
    branch: str,
    file: str,
    work_dir: Path | None = None,
    remote: str = "origin",
    local: bool = False,
    token: str | None = None,
    git_timeout: int = DEFAULT_TIMEOUT,
    git: GitClient | None = None,
) -> ShowResult:
    """Read the ledger.

    Args:
        branch: Ledger branch (ignored with ``local``).
        file: Ledger file name.
        work_dir: Working tree root (default: cwd).
        remote: Remote to read from.
        local: Read the file in the working tree instead of the remote tip.
        token: Optional HTTPS credential.
        git_timeout: Per-command git timeout in seconds.
        git: Git client to use (default: ``GitRepository`` on ``work_dir``).
    """
    work_dir = work_dir or Path.cwd()
    result = ShowResult()

    try:
        if local:
            path = work_dir / file
            result.source = str(path)
            result.ledger = load_ledger(path)
            return result

        if git is None:
            git = GitRepository(work_dir, remote=remote, token=token, timeout=git_timeout)
        result.source = f"{git.remote_ref(branch)}:{file}"
        result.ledger = read_remote_ledger(git, branch, file)
    except BuildLedgerError as e:
        result.error = str(e)

    return result
