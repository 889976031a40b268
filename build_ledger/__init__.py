"""Build Ledger — per-identifier build numbers kept on a git branch."""

__version__ = "0.1.0"
