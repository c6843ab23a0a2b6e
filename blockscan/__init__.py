"""
blockscan - incremental shard block scanner for sharded ledgers.

Watches the master chain, discovers every shard block finalized since the
last visit, derives a dice value from each block hash and appends one
record per block to SQLite or PostgreSQL.
"""

from .errors import (
    ConfigError,
    FetchFailed,
    PersistenceFailed,
    ScanError,
    SourceUnavailable,
)
from .types import (
    BlockContent,
    BlockRef,
    DiscoveredBlock,
    PersistedRecord,
    ShardIdentity,
)
from .derivation import build_record, derive_value
from .indexer import (
    FrontierStore,
    ScanCoordinator,
    ScanState,
    ShardClosureWalker,
    discover_closure,
)

__version__ = "0.1.0"

__all__ = [
    "BlockContent",
    "BlockRef",
    "ConfigError",
    "DiscoveredBlock",
    "FetchFailed",
    "FrontierStore",
    "PersistedRecord",
    "PersistenceFailed",
    "ScanCoordinator",
    "ScanError",
    "ScanState",
    "ShardClosureWalker",
    "ShardIdentity",
    "SourceUnavailable",
    "build_record",
    "derive_value",
    "discover_closure",
]
