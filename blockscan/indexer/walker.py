"""
Shard Closure Walker

Computes, for a newly observed master block, every shard block finalized
since the last visit by walking parent references back to the frontier.

Walk rules:
- A ref whose shard frontier equals its seqno is already accounted for,
  together with all its ancestors: nothing is fetched below it.
- Parents are emitted before children (post-order), in parent-list order.
- A ref reached through several branches (merge/split) is emitted once.
- Any fetch failure aborts the whole walk; no partial result escapes.

The frontier is only read here. Advancing it is the caller's job, after
every returned block has been durably handled.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from ..errors import FetchFailed, ScanError
from ..source import LedgerSource
from ..types import BlockContent, BlockRef, DiscoveredBlock
from .frontier import FrontierStore


class ShardClosureWalker:
    """
    Depth-first, post-order walk over the parent-reference graph.

    Uses an explicit stack rather than call recursion, and keeps every
    fetched header in an arena keyed by BlockRef so callers can derive
    records without fetching again.

    Usage:
        walker = ShardClosureWalker(source)
        refs = walker.discover_closure(frontier, shard_ref)
        blocks = walker.discover_master(frontier, source.get_shards(master))
    """

    def __init__(self, source: LedgerSource):
        self._source = source
        self._logger = logging.getLogger("ShardClosureWalker")
        self.arena: Dict[BlockRef, BlockContent] = {}
        self._stats = {
            "walks": 0,
            "fetches": 0,
            "pruned": 0,
        }

    def discover_closure(
        self,
        frontier: FrontierStore,
        start_ref: BlockRef,
        visited: Optional[Set[BlockRef]] = None
    ) -> List[BlockRef]:
        """
        Return the not-yet-seen ancestors of start_ref plus start_ref itself.

        Args:
            frontier: Frontier to prune against (read only)
            start_ref: Root of the walk
            visited: Refs already resolved in this invocation; share it
                across several roots of one master block

        Raises:
            FetchFailed: a block or its parents could not be retrieved
            SourceUnavailable: connection to the source lost
        """
        if visited is None:
            visited = set()

        self._stats["walks"] += 1
        result: List[BlockRef] = []
        expanding: Set[BlockRef] = set()
        # (ref, parents_done)
        stack = [(start_ref, False)]

        while stack:
            ref, parents_done = stack.pop()

            if parents_done:
                expanding.discard(ref)
                visited.add(ref)
                result.append(ref)
                continue

            if ref in visited or ref in expanding:
                continue

            if frontier.get(ref.identity) == ref.seqno:
                self._stats["pruned"] += 1
                visited.add(ref)
                continue

            content = self._fetch(ref)
            expanding.add(ref)
            stack.append((ref, True))
            # Reversed so the first parent is walked first
            for parent in reversed(content.parents):
                if parent not in visited:
                    stack.append((parent, False))

        if result:
            self._logger.debug(f"Closure of {start_ref}: {len(result)} new blocks")
        return result

    def discover_master(
        self,
        frontier: FrontierStore,
        shard_refs: Iterable[BlockRef]
    ) -> List[DiscoveredBlock]:
        """
        Run the closure from every shard descriptor of a master block.

        One visited set spans all descriptors, so a block shared by two
        descriptors (shard split) is reported once.
        """
        visited: Set[BlockRef] = set()
        discovered: List[DiscoveredBlock] = []

        for shard_ref in shard_refs:
            for ref in self.discover_closure(frontier, shard_ref, visited):
                discovered.append(DiscoveredBlock(ref=ref, content=self.arena[ref]))

        return discovered

    def _fetch(self, ref: BlockRef) -> BlockContent:
        """Fetch through the arena."""
        content = self.arena.get(ref)
        if content is not None:
            return content

        try:
            content = self._source.get_block_content(ref)
        except ScanError:
            raise
        except Exception as e:
            raise FetchFailed(f"get block data {ref}: {e}", ref) from e

        self._stats["fetches"] += 1
        self.arena[ref] = content
        return content

    def release(self, refs: Iterable[BlockRef]):
        """Drop handled blocks from the arena."""
        for ref in refs:
            self.arena.pop(ref, None)

    def get_stats(self) -> Dict:
        return {
            **self._stats,
            "arena_size": len(self.arena),
        }


def discover_closure(
    source: LedgerSource,
    frontier: FrontierStore,
    start_ref: BlockRef
) -> List[BlockRef]:
    """Single-shot closure computation with a throwaway walker."""
    return ShardClosureWalker(source).discover_closure(frontier, start_ref)
