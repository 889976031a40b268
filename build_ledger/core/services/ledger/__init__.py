"""
Build-number ledger kept on a dedicated git branch.

Public API::

    from build_ledger.core.services.ledger import update_build_number

    result = update_build_number(settings, GitRepository(Path.cwd()))
    result.build_number

Storage:
    - ``build_numbers.json`` at the root of the ``build-numbers`` orphan
      branch, one ``identifier: number`` entry per tracked identifier.
    - One commit per increment:
      ``Update build number for <identifier> to <number>``.
"""

from build_ledger.core.services.ledger.updater import (
    UpdateContext,
    acquire_lock,
    read_remote_ledger,
    resolve_branch,
    update_build_number,
)

__all__ = [
    "UpdateContext",
    "acquire_lock",
    "read_remote_ledger",
    "resolve_branch",
    "update_build_number",
]
