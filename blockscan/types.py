"""
Ledger Data Types

Pure data structures for shard block discovery.
Block references, fetched headers and persisted records - no behaviour
beyond identity and formatting.
"""

from dataclasses import dataclass, field
from typing import Tuple


# Shard masks are unsigned 64-bit; the wire format carries them signed
SHARD_MASK_BITS = 64
SHARD_MASK = (1 << SHARD_MASK_BITS) - 1
MASTERCHAIN_ID = -1
MASTERCHAIN_SHARD = 0x8000000000000000


def shard_to_unsigned(shard: int) -> int:
    """Normalize a signed 64-bit shard value to its unsigned mask."""
    return int(shard) & SHARD_MASK


def shard_to_signed(shard: int) -> int:
    """Convert an unsigned shard mask back to the signed wire value."""
    shard = int(shard) & SHARD_MASK
    if shard >= 1 << (SHARD_MASK_BITS - 1):
        return shard - (1 << SHARD_MASK_BITS)
    return shard


@dataclass(frozen=True)
class ShardIdentity:
    """Workchain and shard mask of a parallel sub-chain."""
    workchain: int
    shard: int  # unsigned mask

    @property
    def key(self) -> str:
        """Stable text form used in logs and checkpoints."""
        return f"{self.workchain}|{self.shard}"

    @classmethod
    def from_key(cls, key: str) -> "ShardIdentity":
        workchain, shard = key.split("|", 1)
        return cls(int(workchain), shard_to_unsigned(int(shard)))

    def __str__(self) -> str:
        return f"{self.workchain}:{self.shard:016x}"


@dataclass(frozen=True)
class BlockRef:
    """
    Reference to a single block.

    Identity is (workchain, shard, seqno); the hashes let the source
    fetch and verify the exact block.
    """
    workchain: int
    shard: int  # unsigned mask
    seqno: int
    root_hash: bytes = b""
    file_hash: bytes = b""

    @property
    def identity(self) -> ShardIdentity:
        return ShardIdentity(self.workchain, self.shard)

    @property
    def is_master(self) -> bool:
        return self.workchain == MASTERCHAIN_ID

    def __str__(self) -> str:
        return f"({self.workchain}:{self.shard:016x}:{self.seqno})"


@dataclass(frozen=True)
class BlockContent:
    """Fetched block header: content hash plus parent references."""
    ref: BlockRef
    file_hash: bytes
    parents: Tuple[BlockRef, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class DiscoveredBlock:
    """A block not yet represented in the frontier, with its content."""
    ref: BlockRef
    content: BlockContent


@dataclass(frozen=True)
class PersistedRecord:
    """
    Durable representation of one discovered block.

    hash is the base64 text of the content hash, digits every decimal
    digit of that text in order, value the derived number in [0, 100).
    """
    workchain: int
    shard: int
    seqno: int
    hash: str
    digits: str
    value: int
