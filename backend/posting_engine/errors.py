from __future__ import annotations


class LedgerError(Exception):
    """Base for every error raised by an engine operation."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}
