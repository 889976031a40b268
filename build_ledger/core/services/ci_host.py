"""
CI host bridge — GitHub Actions workflow commands and environment files.

Outputs go to ``$GITHUB_OUTPUT``, exported variables to ``$GITHUB_ENV``
(and the current process environment). Outside Actions, outputs are
echoed as ``name=value`` lines so the CLI stays scriptable.
"""

from __future__ import annotations

import logging
import os
import sys
import uuid
from collections.abc import MutableMapping
from pathlib import Path
from typing import TextIO

from build_ledger.core.errors import CIHostError

logger = logging.getLogger(__name__)

OUTPUT_NAME = "build-number"
ENV_NAME = "BUILD_NUMBER"


def running_in_actions(env: MutableMapping[str, str] | None = None) -> bool:
    env = os.environ if env is None else env
    return env.get("GITHUB_ACTIONS") == "true"


class ActionsHost:
    """Publishes results to the CI host.

    Args:
        env: Environment mapping to read file paths from and export into
            (default: ``os.environ``).
        stream: Where workflow commands and fallback outputs are written.
        echo_outputs: Echo outputs to ``stream`` when not running on Actions.
    """

    def __init__(
        self,
        env: MutableMapping[str, str] | None = None,
        stream: TextIO | None = None,
        *,
        echo_outputs: bool = True,
    ):
        self.env = os.environ if env is None else env
        self.stream = stream or sys.stdout
        self.echo_outputs = echo_outputs

    def set_output(self, name: str, value: object) -> None:
        """Expose a step output."""
        path = self.env.get("GITHUB_OUTPUT")
        if path:
            _append_file_command(Path(path), name, str(value))
        elif self.echo_outputs:
            self._write(f"{name}={value}")
        logger.debug("Output %s=%s", name, value)

    def export_variable(self, name: str, value: object) -> None:
        """Export an env var to later steps of the job and to this process."""
        text = str(value)
        self.env[name] = text
        path = self.env.get("GITHUB_ENV")
        if path:
            _append_file_command(Path(path), name, text)
        logger.debug("Exported %s=%s", name, text)

    def add_mask(self, secret: str) -> None:
        """Ask the runner to redact ``secret`` from all later log output."""
        if secret and running_in_actions(self.env):
            self._write(f"::add-mask::{_escape_data(secret)}")

    def set_failed(self, message: str) -> None:
        """Report a failed run. The caller sets the non-zero exit status."""
        if running_in_actions(self.env):
            self._write(f"::error::{_escape_data(message)}")

    def publish_build_number(self, build_number: int) -> None:
        self.set_output(OUTPUT_NAME, build_number)
        self.export_variable(ENV_NAME, build_number)

    def _write(self, line: str) -> None:
        self.stream.write(line + "\n")
        self.stream.flush()


def _append_file_command(path: Path, name: str, value: str) -> None:
    """Append ``name=value`` (heredoc form for multi-line values).

    Raises:
        CIHostError: If the file command target cannot be written.
    """
    if "\n" in value:
        delimiter = f"ghadelimiter_{uuid.uuid4()}"
        entry = f"{name}<<{delimiter}\n{value}\n{delimiter}\n"
    else:
        entry = f"{name}={value}\n"
    try:
        with path.open("a", encoding="utf-8") as f:
            f.write(entry)
    except OSError as e:
        raise CIHostError(f"Cannot write {name} to {path}: {e}") from e


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")
