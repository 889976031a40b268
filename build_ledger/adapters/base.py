"""
Git client base — the contract between the ledger updater and git.

The updater only talks to git through this interface, never directly
to the git CLI. Production code uses ``GitRepository`` (subprocess);
tests inject ``MockGit`` (in-memory remote).

Unlike fire-and-forget tooling, every operation here raises
``GitCommandError`` on failure. The updater decides which failures
are expected (a missing branch) and which abort the run.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from pathlib import Path


class GitClient(ABC):
    """Abstract git working copy with one remote.

    To create a new client:
        1. Subclass GitClient
        2. Implement every abstract operation
        3. Pass it to ``update_build_number`` (or ``run_update``)
    """

    remote: str = "origin"

    @property
    @abstractmethod
    def work_dir(self) -> Path:
        """Root of the working tree the ledger file lives in."""

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return True

    @abstractmethod
    def configure_identity(self, name: str, email: str) -> None:
        """Set the commit author/committer for this working copy."""

    @abstractmethod
    def fetch_branch(self, branch: str) -> bool:
        """Fetch ``branch`` from the remote.

        Returns False if the remote has no such branch.
        """

    @abstractmethod
    def checkout(self, branch: str) -> None:
        """Switch to an existing local branch, or track the remote one."""

    @abstractmethod
    def create_orphan_branch(self, branch: str, message: str) -> None:
        """Create ``branch`` with no parent, an empty tree and one empty commit."""

    @abstractmethod
    def sync(self, branch: str) -> bool:
        """Make the working copy match the remote branch tip.

        Discards local commits the remote does not have. Returns False if
        the remote has no such branch (nothing to sync).
        """

    @abstractmethod
    def add(self, path: str) -> None:
        """Stage one path, relative to the working tree root."""

    @abstractmethod
    def commit(self, message: str, *, trailers: Mapping[str, str] | None = None) -> str:
        """Commit the staged changes and return the new commit SHA.

        ``trailers`` are appended as ``Key: value`` lines after the message.
        """

    @abstractmethod
    def push(self, branch: str, *, set_upstream: bool = False) -> None:
        """Push ``branch`` to the remote.

        Raises ``GitCommandError`` when the remote already has the local
        tip: the remote moved without this client pushing, so the push
        must be treated as rejected.
        """

    @abstractmethod
    def show_file(self, ref: str, path: str) -> str | None:
        """Return the content of ``path`` at ``ref``, or None if absent."""

    def remote_ref(self, branch: str) -> str:
        """Name of the remote-tracking ref for ``branch``."""
        return f"{self.remote}/{branch}"

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} work_dir={str(self.work_dir)!r}>"
