"""
Domain models — Pydantic types for the build ledger.

    from build_ledger.core.models import Ledger, LedgerSettings, UpdateResult
"""

from build_ledger.core.models.ledger import Ledger, UpdateResult
from build_ledger.core.models.settings import LedgerLocation, LedgerSettings

__all__ = [
    "Ledger",
    "LedgerLocation",
    "LedgerSettings",
    "UpdateResult",
]
