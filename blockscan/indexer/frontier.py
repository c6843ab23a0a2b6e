"""
Frontier Store

Per shard identity, the sequence number of the last block already
accounted for. In-memory state with an optional JSON checkpoint so a
restarted scanner resumes where it stopped.

set() overwrites unconditionally: on the very first scan every shard is
absent, so monotonicity is the caller's discipline. advance() is the
monotonic write the scan loop uses.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple

from ..errors import ConfigError
from ..types import ShardIdentity


class FrontierStore:
    """
    Mapping ShardIdentity -> highest seqno accounted for.

    Single writer: one scan session owns one store.

    Usage:
        frontier = FrontierStore()
        frontier.set(ShardIdentity(0, 0x8000000000000000), 100)
        frontier.get(ShardIdentity(0, 0x8000000000000000))  # 100
    """

    def __init__(self, initial: Optional[Dict[ShardIdentity, int]] = None):
        self._seqnos: Dict[ShardIdentity, int] = dict(initial or {})
        self._logger = logging.getLogger("FrontierStore")

    def get(self, identity: ShardIdentity) -> Optional[int]:
        return self._seqnos.get(identity)

    def set(self, identity: ShardIdentity, seqno: int):
        self._seqnos[identity] = seqno

    def advance(self, identity: ShardIdentity, seqno: int) -> bool:
        """
        Raise the frontier for a shard, never lowering it.

        Returns True if the stored value changed.
        """
        current = self._seqnos.get(identity)
        if current is not None and current >= seqno:
            return False
        self._seqnos[identity] = seqno
        return True

    def __contains__(self, identity: ShardIdentity) -> bool:
        return identity in self._seqnos

    def __len__(self) -> int:
        return len(self._seqnos)

    def __iter__(self) -> Iterator[ShardIdentity]:
        return iter(self._seqnos)

    def items(self) -> Iterator[Tuple[ShardIdentity, int]]:
        return iter(list(self._seqnos.items()))

    def snapshot(self) -> Dict[ShardIdentity, int]:
        """Copy of the current frontier."""
        return dict(self._seqnos)

    # =========================================================================
    # Checkpoint Management
    # =========================================================================

    def save(self, path: str):
        """Write the frontier to a JSON checkpoint (temp file + rename)."""
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        payload = {
            "shards": {identity.key: seqno for identity, seqno in self._seqnos.items()},
            "timestamp": time.time(),
        }

        fd, tmp_path = tempfile.mkstemp(dir=str(target.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(payload, f)
            os.replace(tmp_path, target)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        self._logger.debug(f"Checkpoint saved: {len(self._seqnos)} shards -> {path}")

    @classmethod
    def load(cls, path: str) -> "FrontierStore":
        """
        Load a frontier checkpoint; a missing file gives an empty store.

        Raises:
            ConfigError: file is not a valid checkpoint
        """
        store = cls()
        target = Path(path)
        if not target.exists():
            return store

        try:
            with open(target, "r") as f:
                payload = json.load(f)
            for key, seqno in payload.get("shards", {}).items():
                store.set(ShardIdentity.from_key(key), int(seqno))
        except (ValueError, TypeError, AttributeError) as e:
            raise ConfigError(f"Corrupt checkpoint {path}: {e}") from e

        store._logger.info(f"Loaded checkpoint: {len(store)} shards from {path}")
        return store
