"""Adapters — git client bindings.

Public re-exports for convenient access.
"""

from build_ledger.adapters.base import GitClient
from build_ledger.adapters.mock import MockGit, MockRemote
from build_ledger.adapters.vcs.git import GitRepository

__all__ = [
    "GitClient",
    "GitRepository",
    "MockGit",
    "MockRemote",
]
