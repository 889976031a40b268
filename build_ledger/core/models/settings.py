"""
Settings models — resolved inputs for one ledger update or read.

Built by ``build_ledger.core.config.loader`` from CLI options, GitHub
Actions inputs and ``build-ledger.yml``. ``LedgerLocation`` is the subset
``show`` needs; ``LedgerSettings`` adds what an update needs.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator

DEFAULT_BRANCH = "build-numbers"
DEFAULT_AUTHOR_NAME = "GitHub Action"
DEFAULT_AUTHOR_EMAIL = "action@github.com"


class LedgerLocation(BaseModel):
    """Where the ledger lives and how to reach it. Enough for read-only access."""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    branch: str = Field(default=DEFAULT_BRANCH, min_length=1)
    token: SecretStr | None = None
    remote: str = Field(default="origin", min_length=1)
    file: str = "build_numbers.json"
    git_timeout: int = Field(default=60, gt=0)

    @field_validator("file")
    @classmethod
    def _relative_file(cls, value: str) -> str:
        path = PurePosixPath(value)
        if not value or path.is_absolute() or ".." in path.parts:
            raise ValueError("file must be a path inside the working tree")
        return value

    def token_value(self) -> str | None:
        return self.token.get_secret_value() if self.token else None


class LedgerSettings(LedgerLocation):
    """Everything the updater needs to know about one invocation."""

    identifier: str = Field(min_length=1)
    increment: bool | None = None                   # None → default (True)
    author_name: str = DEFAULT_AUTHOR_NAME
    author_email: str = DEFAULT_AUTHOR_EMAIL
    max_attempts: int = Field(default=3, ge=1)
    lock_timeout: float = Field(default=60.0, gt=0)

    @property
    def should_increment(self) -> bool:
        """The increment flag with its default applied."""
        return True if self.increment is None else self.increment
