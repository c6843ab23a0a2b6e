"""
Trusted Ledger Source Protocol.

Defines the interface the scanner consumes. Implementations return
proof-verified data; verification itself happens outside this package.
"""

import threading
from abc import abstractmethod
from typing import List, Optional, Protocol

from .types import BlockContent, BlockRef


class LedgerSource(Protocol):
    """Protocol for trusted ledger sources.

    Implementations:
    - TonHttpSource: toncenter-style JSON API over HTTP
    - InMemoryLedgerSource: synthetic topologies for tests/offline runs
    """

    @abstractmethod
    def get_master_block(
        self,
        after_seqno: Optional[int] = None,
        cancel: Optional[threading.Event] = None
    ) -> Optional[BlockRef]:
        """Return a master block newer than after_seqno, blocking until one exists.

        Args:
            after_seqno: Last master seqno already handled, None for the latest
            cancel: Cancellation token; if set while waiting, return None

        Raises:
            SourceUnavailable: connection lost on every replica
        """
        ...

    @abstractmethod
    def get_block_content(self, ref: BlockRef) -> BlockContent:
        """Fetch a block header with its parent references.

        Raises:
            FetchFailed: the block could not be retrieved
            SourceUnavailable: connection lost
        """
        ...

    @abstractmethod
    def get_shards(self, master_ref: BlockRef) -> List[BlockRef]:
        """Return the shard descriptors referenced by a master block."""
        ...
