"""
Configuration loader — resolves ledger inputs into ``LedgerSettings``
(for ``update``) or ``LedgerLocation`` (for ``show``).

Sources, highest precedence first:

    1. Explicit overrides (CLI options)
    2. GitHub Actions inputs (``INPUT_<NAME>`` environment variables)
    3. ``build-ledger.yml`` (searched upward from the working directory)
    4. Model defaults

Empty values count as unset at every level, so an Actions input that
was declared but not given falls through to the next source.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from build_ledger.core.errors import ConfigurationError
from build_ledger.core.models.settings import LedgerLocation, LedgerSettings

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "build-ledger.yml"

# Input names as declared in action.yml (hyphenated)
INPUT_NAMES = (
    "identifier",
    "branch",
    "increment",
    "token",
    "remote",
    "file",
    "author-name",
    "author-email",
    "max-attempts",
    "lock-timeout",
    "git-timeout",
)

_TRUE_VALUES = ("true", "True", "TRUE")
_FALSE_VALUES = ("false", "False", "FALSE")


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for build-ledger.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to build-ledger.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def load_config_file(path: Path) -> dict[str, Any]:
    """Read a YAML config file into a flat dict with ``snake_case`` keys.

    Raises:
        ConfigurationError: If the file is missing or invalid.
    """
    if not path.is_file():
        raise ConfigurationError(f"Config file not found: {path}")

    logger.debug("Loading config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under a "build-ledger" key or be flat
    if "build-ledger" in data and isinstance(data["build-ledger"], dict):
        data = data["build-ledger"]

    return _drop_unset({_normalize_key(str(k)): v for k, v in data.items()})


def action_inputs(env: Mapping[str, str] | None = None) -> dict[str, str]:
    """Collect GitHub Actions inputs from ``INPUT_*`` environment variables.

    Actions upper-cases the input name and replaces spaces with
    underscores, keeping hyphens; both hyphen and underscore spellings
    are accepted here.
    """
    env = os.environ if env is None else env
    inputs: dict[str, str] = {}
    for name in INPUT_NAMES:
        upper = name.upper()
        for var in (f"INPUT_{upper}", f"INPUT_{upper.replace('-', '_')}"):
            value = env.get(var, "").strip()
            if value:
                inputs[_normalize_key(name)] = value
                break
    return inputs


def parse_bool(value: Any, name: str = "increment") -> bool | None:
    """Parse a boolean input the way the Actions toolkit does.

    Returns None when the value is unset (None or empty string).

    Raises:
        ConfigurationError: If the value is not a recognised spelling.
    """
    if value is None or isinstance(value, bool):
        return value
    text = str(value).strip()
    if not text:
        return None
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigurationError(
        f"Input is not a YAML 1.2 Core Schema boolean: {name}\n"
        "Support boolean input list: `true | True | TRUE | false | False | FALSE`"
    )


def resolve_settings(
    overrides: Mapping[str, Any] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    config_path: Path | None = None,
    start_dir: Path | None = None,
) -> LedgerSettings:
    """Merge every configuration source and validate the result.

    Args:
        overrides: Explicit values (CLI options); ``None`` entries are ignored.
        env: Environment to read Actions inputs from (default: ``os.environ``).
        config_path: Explicit config file. If None, searches upward from
            ``start_dir``; a missing file is not an error in that case.
        start_dir: Where to start the config file search (default: cwd).

    Raises:
        ConfigurationError: If ``identifier`` is missing or any value is invalid.
    """
    merged, config_path = _merge_sources(overrides, env, config_path, start_dir)
    if "increment" in merged:
        merged["increment"] = parse_bool(merged["increment"])

    if not merged.get("identifier"):
        raise ConfigurationError("Input required and not supplied: identifier")

    try:
        settings = LedgerSettings.model_validate(merged)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {_describe(e)}") from e

    logger.debug(
        "Resolved settings: identifier=%s branch=%s increment=%s (config: %s)",
        settings.identifier, settings.branch, settings.increment, config_path or "none",
    )
    return settings


def resolve_location(
    overrides: Mapping[str, Any] | None = None,
    *,
    env: Mapping[str, str] | None = None,
    config_path: Path | None = None,
    start_dir: Path | None = None,
) -> LedgerLocation:
    """Resolve branch, file, remote and token for read-only access.

    Same sources and precedence as ``resolve_settings``; update-only
    values (identifier, increment, author, ...) are ignored.

    Raises:
        ConfigurationError: If any location value is invalid.
    """
    merged, config_path = _merge_sources(overrides, env, config_path, start_dir)
    fields = {k: v for k, v in merged.items() if k in LedgerLocation.model_fields}

    try:
        location = LedgerLocation.model_validate(fields)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {_describe(e)}") from e

    logger.debug(
        "Resolved location: %s %s:%s (config: %s)",
        location.remote, location.branch, location.file, config_path or "none",
    )
    return location


def _merge_sources(
    overrides: Mapping[str, Any] | None,
    env: Mapping[str, str] | None,
    config_path: Path | None,
    start_dir: Path | None,
) -> tuple[dict[str, Any], Path | None]:
    if config_path is None:
        config_path = find_config_file(start_dir)
    merged = load_config_file(config_path) if config_path else {}
    merged.update(action_inputs(env))
    merged.update(_drop_unset({_normalize_key(k): v for k, v in (overrides or {}).items()}))
    return merged, config_path


def _normalize_key(key: str) -> str:
    return key.strip().lower().replace("-", "_")


def _drop_unset(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None and v != ""}


def _describe(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "settings"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)
