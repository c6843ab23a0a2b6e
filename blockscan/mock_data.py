"""
In-Memory Ledger Source

Synthetic sharded ledger for offline development and tests.
Blocks, parent links and master blocks are registered explicitly; the
source follows the same contract as the HTTP source.

Use cases:
- Unit testing without a network source
- Replaying hand-built shard topologies (splits, merges, gaps)
"""

import hashlib
import logging
import threading
from typing import Dict, List, Optional, Sequence

from .errors import FetchFailed, SourceUnavailable
from .types import MASTERCHAIN_ID, BlockContent, BlockRef

# Full-chain shard mask
ROOT_SHARD = 0x8000000000000000


def make_ref(workchain: int, shard: int, seqno: int) -> BlockRef:
    """Build a BlockRef with deterministic fake hashes."""
    seed = f"{workchain}:{shard}:{seqno}".encode()
    return BlockRef(
        workchain=workchain,
        shard=shard,
        seqno=seqno,
        root_hash=hashlib.sha256(b"root" + seed).digest(),
        file_hash=hashlib.sha256(b"file" + seed).digest(),
    )


class InMemoryLedgerSource:
    """
    Ledger source backed by dictionaries.

    Usage:
        source = InMemoryLedgerSource()
        p = source.add_block(make_ref(0, ROOT_SHARD, 1))
        r = source.add_block(make_ref(0, ROOT_SHARD, 2), parents=[p])
        source.add_master(make_ref(-1, ROOT_SHARD, 10), shards=[r])
    """

    def __init__(self):
        self._logger = logging.getLogger("InMemoryLedgerSource")
        self._blocks: Dict[BlockRef, BlockContent] = {}
        self._masters: List[BlockRef] = []
        self._shards: Dict[BlockRef, List[BlockRef]] = {}
        self._new_master = threading.Condition()

        # Failure injection
        self.failing_refs = set()
        self.unavailable = False

        self.fetch_count = 0
        self.fetch_log: List[BlockRef] = []

    # =========================================================================
    # Topology Building
    # =========================================================================

    def add_block(
        self,
        ref: BlockRef,
        parents: Sequence[BlockRef] = ()
    ) -> BlockRef:
        """Register a block and its parent references."""
        self._blocks[ref] = BlockContent(
            ref=ref,
            file_hash=ref.file_hash,
            parents=tuple(parents),
        )
        return ref

    def add_master(
        self,
        ref: BlockRef,
        shards: Sequence[BlockRef] = ()
    ) -> BlockRef:
        """Publish a master block with its shard descriptors."""
        if ref.workchain != MASTERCHAIN_ID:
            raise ValueError(f"Master block must be on workchain {MASTERCHAIN_ID}: {ref}")

        with self._new_master:
            self._blocks.setdefault(ref, BlockContent(ref=ref, file_hash=ref.file_hash))
            self._shards[ref] = list(shards)
            self._masters.append(ref)
            self._masters.sort(key=lambda m: m.seqno)
            self._new_master.notify_all()
        return ref

    # =========================================================================
    # LedgerSource
    # =========================================================================

    def get_master_block(
        self,
        after_seqno: Optional[int] = None,
        cancel: Optional[threading.Event] = None
    ) -> Optional[BlockRef]:
        with self._new_master:
            while True:
                if self.unavailable:
                    raise SourceUnavailable("in-memory source marked unavailable")

                if after_seqno is None and self._masters:
                    return self._masters[-1]

                for master in self._masters:
                    if after_seqno is not None and master.seqno > after_seqno:
                        return master

                if cancel is not None and cancel.is_set():
                    return None

                # Periodic wake-up so a cancel set from outside is observed
                self._new_master.wait(timeout=0.05)

    def get_block_content(self, ref: BlockRef) -> BlockContent:
        if self.unavailable:
            raise SourceUnavailable("in-memory source marked unavailable")

        self.fetch_count += 1
        self.fetch_log.append(ref)

        if ref in self.failing_refs:
            raise FetchFailed(f"injected fetch failure for {ref}", ref)

        content = self._blocks.get(ref)
        if content is None:
            raise FetchFailed(f"unknown block {ref}", ref)
        return content

    def get_shards(self, master_ref: BlockRef) -> List[BlockRef]:
        if self.unavailable:
            raise SourceUnavailable("in-memory source marked unavailable")

        shards = self._shards.get(master_ref)
        if shards is None:
            raise FetchFailed(f"unknown master block {master_ref}", master_ref)
        return list(shards)
