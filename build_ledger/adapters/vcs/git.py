"""
Git adapter — working-copy operations for the ledger branch.

Drives the git CLI through ``subprocess`` — never raw API calls. Every
command runs with a timeout and with ``GIT_TERMINAL_PROMPT=0`` so a
credential prompt can never hang a CI job.
"""

from __future__ import annotations

import base64
import logging
import os
import shutil
import subprocess
from collections.abc import Mapping
from pathlib import Path
from urllib.parse import urlsplit

from build_ledger.adapters.base import GitClient
from build_ledger.core.errors import GitCommandError

logger = logging.getLogger(__name__)

DEFAULT_REMOTE = "origin"
DEFAULT_TIMEOUT = 60

_MISSING_REF_MARKERS = (
    "couldn't find remote ref",
    "no such ref",
    "invalid refspec",
)

_UP_TO_DATE_MARKER = "everything up-to-date"


def git_env(token: str | None = None, remote_url: str = "") -> dict[str, str]:
    """Build the environment for git subprocesses.

    With a token and an HTTPS remote, injects an ``http.<origin>/.extraheader``
    basic-auth header through ``GIT_CONFIG_*`` variables so the credential
    never touches ``.git/config``. The empty first value resets any header
    an earlier checkout step persisted.
    """
    env = dict(os.environ)
    env["GIT_TERMINAL_PROMPT"] = "0"

    if not token:
        return env

    parts = urlsplit(remote_url)
    if parts.scheme not in ("http", "https") or not parts.hostname:
        logger.debug("Token ignored for non-HTTP remote %r", remote_url)
        return env

    host = parts.hostname if parts.port is None else f"{parts.hostname}:{parts.port}"
    key = f"http.{parts.scheme}://{host}/.extraheader"
    basic = base64.b64encode(f"x-access-token:{token}".encode()).decode()

    count = int(env.get("GIT_CONFIG_COUNT", "0") or 0)
    env[f"GIT_CONFIG_KEY_{count}"] = key
    env[f"GIT_CONFIG_VALUE_{count}"] = ""
    env[f"GIT_CONFIG_KEY_{count + 1}"] = key
    env[f"GIT_CONFIG_VALUE_{count + 1}"] = f"AUTHORIZATION: basic {basic}"
    env["GIT_CONFIG_COUNT"] = str(count + 2)
    return env


class GitRepository(GitClient):
    """A git working copy on disk.

    Args:
        path: Working tree root (the CI job's checkout).
        remote: Remote to fetch from and push to.
        token: Optional HTTPS credential.
        timeout: Per-command timeout in seconds.
    """

    def __init__(
        self,
        path: Path,
        *,
        remote: str = DEFAULT_REMOTE,
        token: str | None = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self._path = path
        self.remote = remote
        self.timeout = timeout
        self._env = git_env()
        if token:
            self._env = git_env(token, self.remote_url())

    @property
    def work_dir(self) -> Path:
        return self._path

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    # ── Operations ──────────────────────────────────────────────

    def configure_identity(self, name: str, email: str) -> None:
        self._git("config", "user.name", name)
        self._git("config", "user.email", email)

    def remote_url(self) -> str:
        """URL of the configured remote (empty string if none)."""
        r = self._git("remote", "get-url", self.remote, check=False)
        return r.stdout.strip() if r.returncode == 0 else ""

    def current_branch(self) -> str:
        """Checked-out branch name (works on an unborn branch too)."""
        r = self._git("symbolic-ref", "--quiet", "--short", "HEAD", check=False)
        return r.stdout.strip() if r.returncode == 0 else ""

    def fetch_branch(self, branch: str) -> bool:
        try:
            self._git(
                "fetch", self.remote,
                f"+refs/heads/{branch}:refs/remotes/{self.remote}/{branch}",
            )
        except GitCommandError as e:
            if any(m in e.stderr.lower() for m in _MISSING_REF_MARKERS):
                logger.debug("Remote has no branch '%s'", branch)
                return False
            raise
        return True

    def checkout(self, branch: str) -> None:
        if self._ref_exists(f"refs/heads/{branch}"):
            self._git("checkout", branch)
            return
        # Local branch missing: track the remote one if it was fetched
        self._git(
            "checkout", "--track", "-b", branch,
            f"refs/remotes/{self.remote}/{branch}",
        )

    def create_orphan_branch(self, branch: str, message: str) -> None:
        logger.info("Creating orphan branch '%s'", branch)
        self._git("checkout", "--orphan", branch)
        self._git("rm", "-r", "-f", "-q", "--ignore-unmatch", ".")
        self._git("commit", "--allow-empty", "-m", message)

    def sync(self, branch: str) -> bool:
        if not self.fetch_branch(branch):
            return False
        self._git("reset", "--hard", f"refs/remotes/{self.remote}/{branch}")
        return True

    def add(self, path: str) -> None:
        self._git("add", "--", path)

    def commit(self, message: str, *, trailers: Mapping[str, str] | None = None) -> str:
        args = ["commit", "-m", message]
        if trailers:
            args += ["-m", "\n".join(f"{key}: {value}" for key, value in trailers.items())]
        self._git(*args)
        return self.head_sha() or ""

    def push(self, branch: str, *, set_upstream: bool = False) -> None:
        args = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        args += [self.remote, f"refs/heads/{branch}:refs/heads/{branch}"]
        r = self._git(*args)
        # Nothing was sent: an identical commit already reached the remote
        if _UP_TO_DATE_MARKER in r.stderr.lower():
            raise GitCommandError(
                args, 1,
                f" ! [rejected]        {branch} -> {branch} (remote already has this commit)",
            )

    def show_file(self, ref: str, path: str) -> str | None:
        r = self._git("show", f"{ref}:{path}", check=False)
        if r.returncode != 0:
            return None
        return r.stdout

    def head_sha(self) -> str | None:
        """Current HEAD SHA, or None if the branch has no commits."""
        r = self._git("rev-parse", "--verify", "--quiet", "HEAD", check=False)
        if r.returncode != 0:
            return None
        return r.stdout.strip()

    # ── Helpers ─────────────────────────────────────────────────

    def _ref_exists(self, ref: str) -> bool:
        r = self._git("rev-parse", "--verify", "--quiet", ref, check=False)
        return r.returncode == 0

    def _git(self, *args: str, check: bool = True) -> subprocess.CompletedProcess[str]:
        """Run a git command in the working tree.

        Raises:
            GitCommandError: On a non-zero exit (when ``check``) or timeout.
        """
        logger.debug("git: %s", " ".join(args))
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=self._path,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                env=self._env,
            )
        except subprocess.TimeoutExpired:
            raise GitCommandError(list(args), -1, f"timed out after {self.timeout}s") from None
        except OSError as e:
            raise GitCommandError(list(args), -1, str(e)) from e

        if check and result.returncode != 0:
            raise GitCommandError(list(args), result.returncode, result.stderr)
        return result
