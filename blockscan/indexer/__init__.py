"""
Shard Frontier Indexer

Discovers every shard block finalized since the last visit and hands one
record per block to a persistence sink.

Components:
- FrontierStore: last accounted seqno per shard (+ JSON checkpoint)
- ShardClosureWalker: post-order parent walk pruned at the frontier
- ScanCoordinator: master block loop, persistence and frontier advance
"""

from .frontier import FrontierStore
from .walker import ShardClosureWalker, discover_closure
from .coordinator import MASTER_IDENTITY, ScanCoordinator, ScanState

__all__ = [
    "FrontierStore",
    "ShardClosureWalker",
    "discover_closure",
    "MASTER_IDENTITY",
    "ScanCoordinator",
    "ScanState",
]
