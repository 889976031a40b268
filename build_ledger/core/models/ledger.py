"""
Ledger models — the identifier → build-number mapping and update results.

These are pure Pydantic models with no I/O. ``Ledger`` is exactly what
gets written to ``build_numbers.json`` on the ledger branch.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, Field, RootModel, field_validator

# Strict so that JSON booleans and floats are not coerced into counters
BuildNumber = Annotated[int, Field(strict=True, ge=0)]


class Ledger(RootModel[dict[str, BuildNumber]]):
    """Flat mapping of identifier to build number.

    An identifier that is absent from the mapping reads as 0.
    """

    root: dict[str, BuildNumber] = Field(default_factory=dict)

    @field_validator("root")
    @classmethod
    def _non_empty_keys(cls, value: dict[str, int]) -> dict[str, int]:
        if any(not key for key in value):
            raise ValueError("ledger identifiers must be non-empty strings")
        return value

    def get(self, identifier: str) -> int:
        return self.root.get(identifier, 0)

    def ensure(self, identifier: str) -> bool:
        """Make sure ``identifier`` has an entry.

        Returns True if it was absent or 0 (a first sighting).
        """
        if not self.root.get(identifier):
            self.root[identifier] = 0
            return True
        return False

    def increment(self, identifier: str) -> int:
        """Bump the counter by one and return the new value."""
        self.root[identifier] = self.get(identifier) + 1
        return self.root[identifier]

    def to_json(self) -> str:
        """Pretty-printed JSON (2-space indent, trailing newline)."""
        return self.model_dump_json(indent=2) + "\n"

    def __len__(self) -> int:
        return len(self.root)

    def __contains__(self, identifier: object) -> bool:
        return identifier in self.root


class UpdateResult(BaseModel):
    """Outcome of one ledger update cycle."""

    identifier: str
    branch: str
    build_number: int = 0
    incremented: bool = False
    committed: bool = False
    commit_sha: str = ""
    attempts: int = 1
    created_branch: bool = False
