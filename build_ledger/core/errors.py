"""
Error taxonomy for the build ledger.

Every failure the updater can surface derives from ``BuildLedgerError``
so the top-level handler can report it to the CI host with its original
message.  ``GitCommandError`` is the raw failure of one git invocation;
the updater translates it into the step-specific errors below.
"""

from __future__ import annotations


class BuildLedgerError(Exception):
    """Base class for all build ledger failures."""


class ConfigurationError(BuildLedgerError):
    """Raised when a required input is missing or an input is invalid."""


class BranchResolutionError(BuildLedgerError):
    """Raised when the ledger branch can neither be checked out nor created."""


class LockAcquisitionError(BuildLedgerError):
    """Raised when the ledger lock cannot be obtained."""


class LedgerIOError(BuildLedgerError):
    """Raised when the ledger file cannot be read, parsed or written."""


class RemoteSyncError(BuildLedgerError):
    """Raised when a pull or push against the remote fails.

    ``retryable`` is set for non-fast-forward push rejections: another
    writer got there first, and re-syncing then re-applying is safe.
    """

    def __init__(self, message: str, *, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


class CIHostError(BuildLedgerError):
    """Raised when a result cannot be handed to the CI host (output or env file)."""


class GitCommandError(BuildLedgerError):
    """A single git command exited non-zero (or timed out)."""

    def __init__(self, args: list[str], returncode: int, stderr: str):
        self.git_args = list(args)
        self.returncode = returncode
        self.stderr = stderr.strip()
        detail = self.stderr or f"exit code {returncode}"
        super().__init__(f"git {' '.join(self.git_args[:2])} failed: {detail}")

    @property
    def non_fast_forward(self) -> bool:
        """Whether git rejected a push because the remote moved ahead."""
        lower = self.stderr.lower()
        return any(s in lower for s in (
            "non-fast-forward",
            "fetch first",
            "[rejected]",
            "stale info",
        ))
