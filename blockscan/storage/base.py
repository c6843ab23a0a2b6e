"""
Persistence Sink Protocol.

Append-only: the scanner never updates or deletes a record.
"""

from abc import abstractmethod
from typing import Protocol

from ..types import PersistedRecord


class BlockSink(Protocol):
    """Protocol for block record sinks."""

    @abstractmethod
    def append(self, record: PersistedRecord) -> None:
        """Durably append one record.

        Raises:
            PersistenceFailed: the record was not stored
        """
        ...

    @abstractmethod
    def close(self) -> None:
        ...
