"""
Logging setup for the build-ledger CLI.

``main.cli`` calls ``setup_logging`` once; modules log through
``logging.getLogger(__name__)`` and never configure handlers themselves.

Console level, first match wins:

    --debug / --verbose / --quiet
    BUILD_LEDGER_LOG_LEVEL
    INFO when running under GitHub Actions
    WARNING

A second, more detailed sink can be written to BUILD_LEDGER_LOG_FILE at
BUILD_LEDGER_LOG_FILE_LEVEL (defaults to the console level).
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

ENV_LEVEL = "BUILD_LEDGER_LOG_LEVEL"
ENV_FILE = "BUILD_LEDGER_LOG_FILE"
ENV_FILE_LEVEL = "BUILD_LEDGER_LOG_FILE_LEVEL"

_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d - %(message)s"

# (highest level the row applies to, format, datefmt), checked top down
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    (logging.CRITICAL, "%(message)s", None),
)

_FILE_FORMAT = (_DETAILED, "%Y-%m-%d %H:%M:%S")


def resolve_level(
    *,
    verbose: bool = False,
    quiet: bool = False,
    debug: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level from CLI flags and the environment."""
    env = os.environ if env is None else env
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    if env.get(ENV_LEVEL):
        return env[ENV_LEVEL]
    # Runner logs are the only record of a CI step; keep the progress lines
    if env.get("GITHUB_ACTIONS") == "true":
        return "INFO"
    return "WARNING"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Install the console handler (and optionally a file handler) on the root logger.

    Safe to call again: earlier handlers are replaced, not stacked.
    """
    console_level = _parse_level(level)
    handlers: list[logging.Handler] = [_console_handler(console_level)]

    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    # Root must let through whatever the most verbose handler wants
    root.setLevel(min(h.level for h in handlers))


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = _CONSOLE_FORMATS[-1][1:]
    for ceiling, row_fmt, row_datefmt in _CONSOLE_FORMATS:
        if level <= ceiling:
            fmt, datefmt = row_fmt, row_datefmt
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(*_FILE_FORMAT))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name to number; anything unrecognised means WARNING."""
    numeric = getattr(logging, level.upper(), None) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
