"""
Ledger file persistence — read/write for ``build_numbers.json``.

The ledger is stored as a pretty-printed JSON object at the root of the
ledger branch. Writes are atomic (write to temp file, then rename) so a
crash mid-write never leaves a truncated file for git to commit.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError

from build_ledger.core.errors import LedgerIOError
from build_ledger.core.models.ledger import Ledger

logger = logging.getLogger(__name__)

DEFAULT_LEDGER_FILE = "build_numbers.json"


def ensure_ledger_file(path: Path) -> bool:
    """Create the ledger as an empty object if it does not exist yet.

    Returns True if the file was created.
    """
    if path.is_file():
        return False
    logger.debug("Creating empty ledger at %s", path)
    save_ledger(Ledger(), path)
    return True


def load_ledger(path: Path) -> Ledger:
    """Load and validate the ledger file.

    Raises:
        LedgerIOError: If the file is missing, unreadable, not JSON, or
            not a mapping of identifier to non-negative integer.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise LedgerIOError(f"Cannot read ledger {path}: {e}") from e

    ledger = parse_ledger(raw, source=str(path))
    logger.debug("Loaded ledger from %s (%d identifiers)", path, len(ledger))
    return ledger


def parse_ledger(raw: str, *, source: str = "<string>") -> Ledger:
    """Parse ledger JSON text.

    Raises:
        LedgerIOError: If the text is not a JSON object of identifier to
            non-negative integer.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise LedgerIOError(f"Invalid JSON in ledger {source}: {e}") from e

    if not isinstance(data, dict):
        raise LedgerIOError(
            f"Expected a JSON object in ledger {source}, got {type(data).__name__}"
        )

    try:
        return Ledger.model_validate(data)
    except ValidationError as e:
        raise LedgerIOError(f"Malformed ledger {source}: {e}") from e


def save_ledger(ledger: Ledger, path: Path) -> None:
    """Write the ledger (atomic write).

    Raises:
        LedgerIOError: If the file cannot be written.
    """
    content = ledger.to_json()

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        _fd, tmp_path = tempfile.mkstemp(
            dir=path.parent,
            prefix=".ledger_",
            suffix=".tmp",
        )
        tmp = Path(tmp_path)
        try:
            with open(_fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
    except OSError as e:
        raise LedgerIOError(f"Cannot write ledger {path}: {e}") from e

    logger.debug("Ledger saved to %s", path)
