"""
Mock git — in-memory test double for ``GitClient``.

Simulates a working copy and its remote without a git binary. Files
still live in a real directory (``work_dir``) so the ledger file and its
lock behave exactly as in production. Failures and concurrent remote
writers can be injected per operation.
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from build_ledger.adapters.base import GitClient
from build_ledger.core.errors import GitCommandError


@dataclass(frozen=True)
class MockCommit:
    """One commit: a full snapshot of the tracked files."""

    sha: str
    message: str
    files: dict[str, str] = field(default_factory=dict)


def _make_sha(parent: str, message: str, files: dict[str, str]) -> str:
    digest = hashlib.sha1()
    digest.update(parent.encode())
    digest.update(message.encode())
    for name in sorted(files):
        digest.update(name.encode())
        digest.update(files[name].encode())
    return digest.hexdigest()


class MockRemote:
    """Shared remote: branch name → list of commits (oldest first)."""

    def __init__(self) -> None:
        self.branches: dict[str, list[MockCommit]] = {}

    def tip(self, branch: str) -> MockCommit | None:
        commits = self.branches.get(branch)
        return commits[-1] if commits else None

    def read(self, branch: str, path: str) -> str | None:
        tip = self.tip(branch)
        return tip.files.get(path) if tip else None

    def seed(self, branch: str, files: dict[str, str], message: str = "seed") -> MockCommit:
        """Append a commit to ``branch`` as if another writer had pushed it."""
        commits = self.branches.setdefault(branch, [])
        parent = commits[-1].sha if commits else ""
        snapshot = dict(commits[-1].files) if commits else {}
        snapshot.update(files)
        commit = MockCommit(_make_sha(parent, message, snapshot), message, snapshot)
        commits.append(commit)
        return commit


class MockGit(GitClient):
    """In-memory git working copy bound to a ``MockRemote``.

    Configure failures with ``set_failure(op, stderr)``; register a
    ``before_push`` hook to simulate another machine pushing first.
    ``call_log`` records every operation as ``(op, args)``.
    """

    def __init__(self, work_dir: Path, remote: MockRemote | None = None):
        self._work_dir = work_dir
        self.origin = remote or MockRemote()
        self.branches: dict[str, list[MockCommit]] = {}
        self.tracking: dict[str, list[MockCommit]] = {}
        self.current: str | None = None
        self.identity: tuple[str, str] | None = None
        self.staged: dict[str, str] = {}
        self.upstreams: set[str] = set()
        self.trailers: list[dict[str, str]] = []
        self.before_push: Callable[[MockGit, str], None] | None = None
        self._failures: dict[str, list[str]] = {}
        self._call_log: list[tuple[str, tuple]] = []

    @property
    def work_dir(self) -> Path:
        return self._work_dir

    @property
    def call_log(self) -> list[tuple[str, tuple]]:
        """All operations this mock has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def calls(self, op: str) -> list[tuple]:
        """Arguments of every call to ``op``."""
        return [args for name, args in self._call_log if name == op]

    def set_failure(self, op: str, stderr: str = "mock failure", *, times: int = 1) -> None:
        """Make the next ``times`` calls to ``op`` fail with ``stderr``."""
        self._failures.setdefault(op, []).extend([stderr] * times)

    def reset(self) -> None:
        """Forget recorded calls and pending failures."""
        self._call_log.clear()
        self._failures.clear()
        self.trailers.clear()

    # ── Operations ──────────────────────────────────────────────

    def configure_identity(self, name: str, email: str) -> None:
        self._record("configure_identity", name, email)
        self.identity = (name, email)

    def fetch_branch(self, branch: str) -> bool:
        self._record("fetch_branch", branch)
        if branch not in self.origin.branches:
            return False
        self.tracking[branch] = list(self.origin.branches[branch])
        return True

    def checkout(self, branch: str) -> None:
        self._record("checkout", branch)
        if branch not in self.branches:
            if branch not in self.tracking:
                raise GitCommandError(
                    ["checkout", branch], 1,
                    f"error: pathspec '{branch}' did not match any file(s) known to git",
                )
            self.branches[branch] = list(self.tracking[branch])
            self.upstreams.add(branch)
        self._switch(branch)

    def create_orphan_branch(self, branch: str, message: str) -> None:
        self._record("create_orphan_branch", branch, message)
        self._clear_tracked()
        self.current = branch
        self.branches[branch] = [MockCommit(_make_sha("", message, {}), message, {})]
        self.staged.clear()

    def sync(self, branch: str) -> bool:
        self._record("sync", branch)
        if branch not in self.origin.branches:
            return False
        self._clear_tracked()
        self.tracking[branch] = list(self.origin.branches[branch])
        self.branches[branch] = list(self.tracking[branch])
        self._switch(branch)
        return True

    def add(self, path: str) -> None:
        self._record("add", path)
        self.staged[path] = (self._work_dir / path).read_text(encoding="utf-8")

    def commit(self, message: str, *, trailers: Mapping[str, str] | None = None) -> str:
        self._record("commit", message)
        self.trailers.append(dict(trailers or {}))
        commits = self.branches[self.current]
        parent = commits[-1] if commits else None
        files = dict(parent.files) if parent else {}
        files.update(self.staged)
        body = message + "".join(f"\n{k}: {v}" for k, v in (trailers or {}).items())
        commit = MockCommit(_make_sha(parent.sha if parent else "", body, files), message, files)
        commits.append(commit)
        self.staged.clear()
        return commit.sha

    def push(self, branch: str, *, set_upstream: bool = False) -> None:
        self._record("push", branch, set_upstream)
        if self.before_push is not None:
            self.before_push(self, branch)
        local = self.branches[branch]
        remote = self.origin.branches.get(branch, [])
        if remote and remote[-1].sha == local[-1].sha:
            raise GitCommandError(
                ["push", self.remote, branch], 1,
                f" ! [rejected]        {branch} -> {branch} (remote already has this commit)",
            )
        if [c.sha for c in local[: len(remote)]] != [c.sha for c in remote]:
            raise GitCommandError(
                ["push", self.remote, branch], 1,
                f" ! [rejected]        {branch} -> {branch} (fetch first)\n"
                "error: failed to push some refs",
            )
        self.origin.branches[branch] = list(local)
        if set_upstream:
            self.upstreams.add(branch)

    def show_file(self, ref: str, path: str) -> str | None:
        self._record("show_file", ref, path)
        prefix = f"{self.remote}/"
        if ref.startswith(prefix):
            commits = self.tracking.get(ref[len(prefix):])
        else:
            commits = self.branches.get(ref)
        if not commits:
            return None
        return commits[-1].files.get(path)

    # ── Helpers ─────────────────────────────────────────────────

    def head(self) -> MockCommit | None:
        if self.current is None or not self.branches.get(self.current):
            return None
        return self.branches[self.current][-1]

    def _record(self, op: str, *args: object) -> None:
        self._call_log.append((op, args))
        pending = self._failures.get(op)
        if pending:
            raise GitCommandError([op, *map(str, args)], 1, pending.pop(0))

    def _clear_tracked(self) -> None:
        head = self.head()
        if head is None:
            return
        for name in head.files:
            (self._work_dir / name).unlink(missing_ok=True)

    def _switch(self, branch: str) -> None:
        self._clear_tracked()
        self.current = branch
        self.staged.clear()
        for name, content in self.branches[branch][-1].files.items():
            target = self._work_dir / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
