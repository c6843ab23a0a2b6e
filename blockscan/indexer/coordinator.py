"""
Scan Coordinator

Drives the scanner:
- Waits for the next finalized master block
- Discovers every unseen shard block through the closure walker
- Derives and appends one record per discovered block
- Advances the frontier once every record is stored

States:
    INITIALIZING -> STREAMING -> DISCOVERING -> PERSISTING -> ADVANCING -> STREAMING ...
    Any unrecoverable error -> FATAL; cancellation -> STOPPED
"""

import logging
import threading
import time
from enum import Enum
from typing import Dict, List, Optional

from ..config import ScanConfig
from ..derivation import build_record
from ..source import LedgerSource
from ..storage.base import BlockSink
from ..types import (
    MASTERCHAIN_ID,
    MASTERCHAIN_SHARD,
    BlockContent,
    BlockRef,
    PersistedRecord,
    ShardIdentity,
)
from .frontier import FrontierStore
from .walker import ShardClosureWalker

MASTER_IDENTITY = ShardIdentity(MASTERCHAIN_ID, MASTERCHAIN_SHARD)


class ScanState(Enum):
    """Scan loop lifecycle."""
    INITIALIZING = "INITIALIZING"
    STREAMING = "STREAMING"
    DISCOVERING = "DISCOVERING"
    PERSISTING = "PERSISTING"
    ADVANCING = "ADVANCING"
    FATAL = "FATAL"
    STOPPED = "STOPPED"


class ScanCoordinator:
    """
    Orchestrates source, walker, derivation and sink.

    Owns its frontier: one coordinator per frontier, single thread.
    The frontier (and checkpoint) moves only after every record of an
    iteration was appended, so a crash never skips unpersisted blocks.

    Usage:
        coordinator = ScanCoordinator(source, sink, ScanConfig())
        coordinator.run()          # blocks until stop() or a fatal error
        coordinator.stop()         # from a signal handler / another thread
    """

    def __init__(
        self,
        source: LedgerSource,
        sink: BlockSink,
        config: Optional[ScanConfig] = None,
        frontier: Optional[FrontierStore] = None,
        cancel: Optional[threading.Event] = None
    ):
        self.config = config or ScanConfig()
        self._source = source
        self._sink = sink
        self._logger = logging.getLogger("ScanCoordinator")
        self._cancel = cancel or threading.Event()

        if frontier is None:
            frontier = (
                FrontierStore.load(self.config.checkpoint_path)
                if self.config.checkpoint_path else FrontierStore()
            )
        self._frontier = frontier
        self._walker = ShardClosureWalker(source)

        # State
        self._state = ScanState.INITIALIZING
        self._master_seqno: Optional[int] = None
        self._stats = {
            "master_blocks": 0,
            "shard_blocks": 0,
            "records": 0,
            "start_time": 0.0,
        }

    @property
    def state(self) -> ScanState:
        return self._state

    @property
    def frontier(self) -> FrontierStore:
        return self._frontier

    @property
    def master_seqno(self) -> Optional[int]:
        """Last fully handled master seqno."""
        return self._master_seqno

    def stop(self):
        """Request a clean stop; the pending wait returns promptly."""
        self._cancel.set()

    # =========================================================================
    # Main Loop
    # =========================================================================

    def run(self, max_iterations: Optional[int] = None):
        """
        Run until stopped, max_iterations master blocks are handled, or a
        fatal error occurs (re-raised after entering FATAL).
        """
        if max_iterations is None:
            max_iterations = self.config.max_iterations

        self._stats["start_time"] = time.time()
        iterations = 0

        try:
            if not self.initialize():
                self._state = ScanState.STOPPED
                return

            while not self._cancel.is_set():
                if max_iterations is not None and iterations >= max_iterations:
                    break

                self._state = ScanState.STREAMING
                master = self._source.get_master_block(self._master_seqno, self._cancel)
                if master is None:
                    break

                self.run_once(master)
                iterations += 1

        except Exception as e:
            self._state = ScanState.FATAL
            self._logger.error(f"Scan aborted in fatal state: {type(e).__name__}: {e}")
            raise

        self._state = ScanState.STOPPED
        self._logger.info(f"Scan stopped after {iterations} master blocks")

    def initialize(self) -> bool:
        """
        Establish the starting point.

        A fresh frontier is seeded from the latest master block's shard
        descriptors (a baseline, not a closure). A checkpointed frontier
        resumes after its last handled master block.

        Returns False if cancelled while waiting for the first master block.
        """
        self._state = ScanState.INITIALIZING

        resume_seqno = self._frontier.get(MASTER_IDENTITY)
        if resume_seqno is not None:
            self._master_seqno = resume_seqno
            self._logger.info(
                f"Resuming after master block {resume_seqno} "
                f"({len(self._frontier)} shards in frontier)"
            )
            return True

        master = self._source.get_master_block(None, self._cancel)
        if master is None:
            return False

        shards = self._source.get_shards(master)
        for shard in shards:
            if shard.identity not in self._frontier:
                self._frontier.set(shard.identity, shard.seqno)

        if self.config.record_master_blocks:
            self._persist(master, self._master_content(master))

        self._frontier.advance(MASTER_IDENTITY, master.seqno)
        self._master_seqno = master.seqno
        self._save_checkpoint()

        self._logger.info(
            f"Initialized at master block {master.seqno} with {len(shards)} shards"
        )
        return True

    def run_once(self, master: BlockRef) -> List[PersistedRecord]:
        """Discover, persist and advance for a single master block."""
        self._state = ScanState.DISCOVERING
        shards = self._source.get_shards(master)
        discovered = self._walker.discover_master(self._frontier, shards)

        self._state = ScanState.PERSISTING
        records = []
        for block in discovered:
            records.append(self._persist(block.ref, block.content))

        if self.config.record_master_blocks:
            records.append(self._persist(master, self._master_content(master)))

        self._state = ScanState.ADVANCING
        for block in discovered:
            self._frontier.advance(block.ref.identity, block.ref.seqno)
        for shard in shards:
            self._frontier.advance(shard.identity, shard.seqno)
        self._frontier.advance(MASTER_IDENTITY, master.seqno)
        self._save_checkpoint()

        self._walker.release(block.ref for block in discovered)
        self._master_seqno = master.seqno
        self._stats["master_blocks"] += 1
        self._stats["shard_blocks"] += len(discovered)

        self._logger.info(
            f"Master block {master.seqno}: {len(discovered)} new shard blocks"
        )
        return records

    # =========================================================================
    # Helpers
    # =========================================================================

    def _master_content(self, master: BlockRef) -> BlockContent:
        # The master ref already carries its file hash
        return BlockContent(ref=master, file_hash=master.file_hash)

    def _persist(self, ref: BlockRef, content: BlockContent) -> PersistedRecord:
        record = build_record(ref, content)
        self._sink.append(record)
        self._stats["records"] += 1
        self._logger.info(
            f"block {record.seqno} {record.hash} number: {record.digits} dice: {record.value:2d}"
        )
        return record

    def _save_checkpoint(self):
        if self.config.checkpoint_path:
            self._frontier.save(self.config.checkpoint_path)

    def get_stats(self) -> Dict:
        runtime = time.time() - self._stats["start_time"] if self._stats["start_time"] > 0 else 0

        return {
            "state": self._state.value,
            "master_seqno": self._master_seqno,
            "master_blocks": self._stats["master_blocks"],
            "shard_blocks": self._stats["shard_blocks"],
            "records": self._stats["records"],
            "frontier_shards": len(self._frontier),
            "runtime_seconds": runtime,
            "walker": self._walker.get_stats(),
        }
