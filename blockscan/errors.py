"""
Scanner error kinds.

Every failure during discovery aborts the whole attempt; nothing here is
meant to be caught and ignored.
"""

from typing import Optional

from .types import BlockRef


class ScanError(Exception):
    """Base exception for all block scanner errors."""


class SourceUnavailable(ScanError):
    """Connection to the trusted source (or every replica) was lost."""


class FetchFailed(ScanError):
    """A specific block or its parent list could not be retrieved."""

    def __init__(self, message: str, ref: Optional[BlockRef] = None):
        super().__init__(message)
        self.ref = ref


class PersistenceFailed(ScanError):
    """The persistence sink rejected a record."""


class ConfigError(ScanError):
    """Invalid scanner configuration."""
