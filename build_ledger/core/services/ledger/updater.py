"""
Ledger updater — assigns the next build number for an identifier.

One update cycle, in order:

    checkout → lock → pull → read → mutate → write → commit → push → unlock

The lock serialises runs on one machine; the push is the arbiter between
machines. A push rejected because the remote moved ahead is retried: the
working copy is reset to the remote tip, the ledger re-read and the
increment re-applied, with backoff, up to ``max_attempts`` times.

State for one invocation travels in an explicit ``UpdateContext`` and git
is injected, so the whole cycle runs against ``MockGit`` in tests.
"""

from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from build_ledger.adapters.base import GitClient
from build_ledger.core.errors import (
    BranchResolutionError,
    GitCommandError,
    LedgerIOError,
    RemoteSyncError,
)
from build_ledger.core.models.ledger import Ledger, UpdateResult
from build_ledger.core.models.settings import LedgerSettings
from build_ledger.core.persistence.ledger_file import (
    ensure_ledger_file,
    load_ledger,
    parse_ledger,
    save_ledger,
)
from build_ledger.core.persistence.lock import LedgerLock
from build_ledger.core.reliability.retry import RetryPolicy

logger = logging.getLogger(__name__)

INIT_COMMIT_MESSAGE = "Initialize branch"
COMMIT_MESSAGE = "Update build number for {identifier} to {build_number}"
RUN_TRAILER = "Build-Ledger-Run"


@dataclass
class UpdateContext:
    """Per-invocation state threaded through every step."""

    settings: LedgerSettings
    git: GitClient
    ledger_path: Path
    lock: LedgerLock | None = None
    ledger: Ledger | None = None
    created_branch: bool = False
    attempts: int = 0

    @property
    def identifier(self) -> str:
        return self.settings.identifier

    @property
    def branch(self) -> str:
        return self.settings.branch


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════


def update_build_number(
    settings: LedgerSettings,
    git: GitClient,
    *,
    retry: RetryPolicy | None = None,
) -> UpdateResult:
    """Run one full update cycle and return the resulting build number.

    Raises:
        BuildLedgerError: Any step's failure, with the lock released.
    """
    ctx = UpdateContext(
        settings=settings,
        git=git,
        ledger_path=git.work_dir / settings.file,
    )
    retry = retry or RetryPolicy(max_attempts=settings.max_attempts)

    logger.info("Using branch: %s", ctx.branch)
    logger.info("Using identifier: %s", ctx.identifier)
    logger.info("Increment flag: %s", settings.should_increment)

    resolve_branch(ctx)
    try:
        acquire_lock(ctx)
        return _update_with_retry(ctx, retry)
    finally:
        if ctx.lock is not None:
            ctx.lock.release()


def read_remote_ledger(git: GitClient, branch: str, file: str) -> Ledger:
    """Read the ledger at the remote branch tip without touching the working tree.

    Returns an empty ledger if the branch or the file does not exist yet.
    """
    try:
        if not git.fetch_branch(branch):
            logger.info("Remote has no branch '%s'", branch)
            return Ledger()
    except GitCommandError as e:
        raise RemoteSyncError(f"Cannot fetch branch '{branch}': {e}") from e

    ref = git.remote_ref(branch)
    content = git.show_file(ref, file)
    if content is None:
        return Ledger()
    return parse_ledger(content, source=f"{ref}:{file}")


def run_tag(env: Mapping[str, str] | None = None) -> str:
    """Unique tag for one ledger commit.

    Two runners committing the same number on the same parent within one
    second would otherwise create the same commit, and the second push
    would succeed as a no-op instead of being rejected. Matrix jobs share
    a run id, so a random nonce is always part of the tag.
    """
    env = os.environ if env is None else env
    nonce = uuid.uuid4().hex[:12]
    run_id = env.get("GITHUB_RUN_ID")
    if run_id:
        return f"{run_id}.{env.get('GITHUB_RUN_ATTEMPT') or '1'}.{nonce}"
    return nonce


# ═══════════════════════════════════════════════════════════════════════
#  Steps
# ═══════════════════════════════════════════════════════════════════════


def resolve_branch(ctx: UpdateContext) -> None:
    """Check out the ledger branch, creating it as an orphan if missing."""
    git, branch = ctx.git, ctx.branch

    try:
        git.configure_identity(ctx.settings.author_name, ctx.settings.author_email)
    except GitCommandError as e:
        raise BranchResolutionError(f"Cannot configure commit identity: {e}") from e

    try:
        git.fetch_branch(branch)
    except GitCommandError as e:
        raise RemoteSyncError(f"Cannot fetch branch '{branch}': {e}") from e

    try:
        git.checkout(branch)
        logger.debug("Checked out existing branch '%s'", branch)
        return
    except GitCommandError as e:
        # Expected when the ledger has never been initialised
        logger.info("Branch '%s' not found, initializing (%s)", branch, e.stderr or e)

    try:
        git.create_orphan_branch(branch, INIT_COMMIT_MESSAGE)
    except GitCommandError as e:
        raise BranchResolutionError(f"Cannot create branch '{branch}': {e}") from e

    try:
        git.push(branch, set_upstream=True)
    except GitCommandError as e:
        if not e.non_fast_forward:
            raise BranchResolutionError(f"Cannot push new branch '{branch}': {e}") from e
        # Another run created the branch first; adopt theirs
        logger.info("Branch '%s' was created concurrently, adopting remote", branch)
        _sync(ctx)
        return

    ctx.created_branch = True


def acquire_lock(ctx: UpdateContext) -> None:
    """Make sure the ledger file exists, then lock it."""
    if ensure_ledger_file(ctx.ledger_path):
        logger.debug("Created empty ledger file %s", ctx.ledger_path)
    lock = LedgerLock(ctx.ledger_path, timeout=ctx.settings.lock_timeout)
    lock.acquire()
    ctx.lock = lock


def _update_with_retry(ctx: UpdateContext, retry: RetryPolicy) -> UpdateResult:
    attempt = 0
    while True:
        attempt += 1
        ctx.attempts = attempt
        try:
            return _apply_once(ctx)
        except RemoteSyncError as e:
            if not e.retryable or retry.exhausted(attempt):
                raise
            logger.warning(
                "Push rejected for '%s' (attempt %d/%d), re-syncing: %s",
                ctx.branch, attempt, retry.max_attempts, e,
            )
            retry.wait(attempt)


def _apply_once(ctx: UpdateContext) -> UpdateResult:
    _sync(ctx)
    ensure_ledger_file(ctx.ledger_path)

    ledger = load_ledger(ctx.ledger_path)
    ctx.ledger = ledger
    identifier = ctx.identifier

    if ledger.ensure(identifier):
        logger.info("No build number found for %s, initializing", identifier)
    else:
        logger.info("Current build number: %d", ledger.get(identifier))

    result = UpdateResult(
        identifier=identifier,
        branch=ctx.branch,
        build_number=ledger.get(identifier),
        attempts=ctx.attempts,
        created_branch=ctx.created_branch,
    )

    # A first sighting (0) always increments, even on a read-only request
    if not (ctx.settings.should_increment or ledger.get(identifier) == 0):
        logger.info("Build number retrieval only, no increment performed.")
        return result

    result.build_number = ledger.increment(identifier)
    logger.info("New build number: %d", result.build_number)
    save_ledger(ledger, ctx.ledger_path)

    result.commit_sha = _commit_and_push(ctx, result.build_number)
    result.incremented = True
    result.committed = True
    return result


def _sync(ctx: UpdateContext) -> None:
    try:
        synced = ctx.git.sync(ctx.branch)
    except GitCommandError as e:
        raise RemoteSyncError(f"Cannot pull branch '{ctx.branch}': {e}") from e
    if not synced:
        logger.warning("Remote has no branch '%s' yet, using local state", ctx.branch)


def _commit_and_push(ctx: UpdateContext, build_number: int) -> str:
    git = ctx.git
    message = COMMIT_MESSAGE.format(identifier=ctx.identifier, build_number=build_number)

    try:
        git.add(ctx.settings.file)
        sha = git.commit(message, trailers={RUN_TRAILER: run_tag()})
    except GitCommandError as e:
        raise LedgerIOError(f"Cannot commit ledger: {e}") from e

    try:
        git.push(ctx.branch, set_upstream=ctx.created_branch)
    except GitCommandError as e:
        logger.error(
            "Commit %s (%s) exists locally but was not pushed to %s",
            sha[:12], message, git.remote_ref(ctx.branch),
        )
        raise RemoteSyncError(
            f"Cannot push branch '{ctx.branch}': {e}",
            retryable=e.non_fast_forward,
        ) from e

    logger.info("Pushed %s to %s", message, git.remote_ref(ctx.branch))
    return sha
