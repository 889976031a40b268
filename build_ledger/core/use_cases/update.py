"""
Update use case — the top-level handler for one CI invocation.

Resolves configuration, runs the updater, publishes the build number to
the CI host, and turns every failure into a reported, failed run with
the original error message.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from build_ledger.adapters.base import GitClient
from build_ledger.adapters.vcs.git import GitRepository
from build_ledger.core.config.loader import resolve_settings
from build_ledger.core.errors import BuildLedgerError
from build_ledger.core.models.ledger import UpdateResult
from build_ledger.core.reliability.retry import RetryPolicy
from build_ledger.core.services.ci_host import ActionsHost
from build_ledger.core.services.ledger.updater import update_build_number

logger = logging.getLogger(__name__)


@dataclass
class UpdateOutcome:
    """Result of ``run_update``: either a result or an error message."""

    result: UpdateResult | None = None
    error: str | None = None
    error_type: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        if self.error:
            return {"ok": False, "error": self.error, "error_type": self.error_type}
        assert self.result is not None
        return {"ok": True, **self.result.model_dump(mode="json")}


def run_update(
    overrides: Mapping[str, Any] | None = None,
    *,
    env: MutableMapping[str, str] | None = None,
    config_path: Path | None = None,
    work_dir: Path | None = None,
    git: GitClient | None = None,
    host: ActionsHost | None = None,
    retry: RetryPolicy | None = None,
) -> UpdateOutcome:
    """Resolve inputs, update the ledger and publish the build number.

    Args:
        overrides: Explicit inputs (CLI options).
        env: Environment for Actions inputs and outputs (default: ``os.environ``).
        config_path: Explicit ``build-ledger.yml``.
        work_dir: Working tree root (default: cwd).
        git: Git client to use (default: ``GitRepository`` on ``work_dir``).
        host: CI host bridge (default: ``ActionsHost`` on ``env``).
        retry: Push retry policy (default: from settings).

    Returns:
        UpdateOutcome; never raises. A failure to publish the result
        (output or env file) is reported like any other failure.
    """
    host = host or ActionsHost(env)
    work_dir = work_dir or Path.cwd()

    try:
        settings = resolve_settings(
            overrides, env=env, config_path=config_path, start_dir=work_dir,
        )
        token = settings.token_value()
        if token:
            host.add_mask(token)
        if git is None:
            git = GitRepository(
                work_dir,
                remote=settings.remote,
                token=token,
                timeout=settings.git_timeout,
            )
        result = update_build_number(settings, git, retry=retry)
        host.publish_build_number(result.build_number)
    except BuildLedgerError as e:
        logger.error("Build number update failed (%s): %s", type(e).__name__, e)
        return _failed(host, e)
    except Exception as e:
        logger.exception("Unexpected failure while updating build number")
        return _failed(host, e)

    return UpdateOutcome(result=result)


def _failed(host: ActionsHost, error: Exception) -> UpdateOutcome:
    message = f"Action failed with error: {error}"
    host.set_failed(message)
    return UpdateOutcome(error=message, error_type=type(error).__name__)
