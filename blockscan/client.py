"""
TON HTTP Ledger Source

REST client for a toncenter-style JSON API (v2).
Handles endpoint pinning, polling for new master blocks and block id parsing.

Endpoints used:
- GET /getMasterchainInfo
- GET /shards?seqno=N
- GET /getBlockHeader?workchain=W&shard=S&seqno=N[&root_hash=..&file_hash=..]

Proof verification is out of scope: point this at a trusted (proof
checking) API instance.
"""

import base64
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from .errors import FetchFailed, SourceUnavailable
from .types import BlockContent, BlockRef, shard_to_signed, shard_to_unsigned


MAINNET_API_URL = "https://toncenter.com/api/v2"

# Rate limiting and lite-server hiccups; retried on the pinned endpoint
RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass
class SourceConfig:
    """Configuration for the HTTP ledger source."""
    api_urls: List[str] = field(default_factory=lambda: [MAINNET_API_URL])
    api_key: Optional[str] = None
    request_timeout: float = 10.0
    poll_interval: float = 1.0  # Master block polling period
    max_retries: int = 3  # Extra attempts on a RETRY_STATUSES reply
    retry_backoff: float = 0.5  # Seconds, doubled after each retry


def parse_block_id(data: Dict[str, Any]) -> BlockRef:
    """Parse a ton.blockIdExt JSON object into a BlockRef."""
    try:
        return BlockRef(
            workchain=int(data["workchain"]),
            shard=shard_to_unsigned(int(data["shard"])),
            seqno=int(data["seqno"]),
            root_hash=base64.b64decode(data.get("root_hash") or ""),
            file_hash=base64.b64decode(data.get("file_hash") or ""),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise FetchFailed(f"malformed block id {data!r}: {e}") from e


class TonHttpSource:
    """
    Ledger source over HTTP.

    All requests go to one pinned endpoint so parent-chain views stay
    consistent. If that endpoint stops answering while waiting for the next
    master block, the source fails over to the next configured endpoint.
    Block content fetches never fail over: a lost connection mid-walk
    raises SourceUnavailable.

    Usage:
        source = TonHttpSource(SourceConfig(api_urls=[...]))
        master = source.get_master_block()
        shards = source.get_shards(master)
    """

    def __init__(
        self,
        config: Optional[SourceConfig] = None,
        session: Optional[requests.Session] = None
    ):
        self.config = config or SourceConfig()
        if not self.config.api_urls:
            raise ValueError("At least one API URL is required")

        self._logger = logging.getLogger("TonHttpSource")
        self._session = session or requests.Session()
        if self.config.api_key:
            self._session.headers.update({"X-API-Key": self.config.api_key})

        self._endpoint_index = 0
        self._stats = {
            "requests": 0,
            "retries": 0,
            "failovers": 0,
        }

    @property
    def endpoint(self) -> str:
        """Currently pinned endpoint."""
        return self.config.api_urls[self._endpoint_index].rstrip("/")

    def close(self):
        self._session.close()

    # =========================================================================
    # Transport
    # =========================================================================

    def _get(self, method: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        GET {endpoint}/{method} and unwrap the result field.

        Replies with a RETRY_STATUSES code are retried on the same endpoint
        with exponential backoff; the last reply is then handled as usual.

        Raises:
            SourceUnavailable: connection lost or timed out
            FetchFailed: error reply after retries, or malformed payload
        """
        url = f"{self.endpoint}/{method}"
        delay = self.config.retry_backoff

        for attempt in range(self.config.max_retries + 1):
            self._stats["requests"] += 1
            try:
                response = self._session.get(
                    url,
                    params=params,
                    timeout=self.config.request_timeout
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                raise SourceUnavailable(f"{url}: {e}") from e

            if response.status_code not in RETRY_STATUSES or attempt == self.config.max_retries:
                break

            self._stats["retries"] += 1
            self._logger.warning(
                f"{method}: HTTP {response.status_code}, "
                f"retry {attempt + 1}/{self.config.max_retries} in {delay}s"
            )
            time.sleep(delay)
            delay *= 2

        try:
            payload = response.json()
        except ValueError as e:
            raise FetchFailed(f"{method}: HTTP {response.status_code}, invalid JSON") from e

        if response.status_code != 200 or not payload.get("ok", False):
            error = payload.get("error") or payload.get("result") or "unknown error"
            raise FetchFailed(f"{method}: HTTP {response.status_code}: {error}")

        return payload["result"]

    def _failover(self):
        """Pin the next configured endpoint."""
        self._endpoint_index = (self._endpoint_index + 1) % len(self.config.api_urls)
        self._stats["failovers"] += 1
        self._logger.warning(f"Failing over to {self.endpoint}")

    # =========================================================================
    # LedgerSource
    # =========================================================================

    def get_masterchain_info(self) -> BlockRef:
        """Latest master block, trying each endpoint once on connection loss."""
        last_error: Optional[SourceUnavailable] = None

        for _ in range(len(self.config.api_urls)):
            try:
                result = self._get("getMasterchainInfo")
                return parse_block_id(result["last"])
            except SourceUnavailable as e:
                last_error = e
                self._logger.warning(f"Endpoint unavailable: {e}")
                self._failover()

        raise SourceUnavailable(f"all {len(self.config.api_urls)} endpoints unavailable: {last_error}")

    def get_master_block(
        self,
        after_seqno: Optional[int] = None,
        cancel: Optional[threading.Event] = None
    ) -> Optional[BlockRef]:
        """Poll until a master block newer than after_seqno is available."""
        while True:
            master = self.get_masterchain_info()
            if after_seqno is None or master.seqno > after_seqno:
                if after_seqno is not None and master.seqno > after_seqno + 1:
                    # Step one master block at a time
                    return self._lookup_master(master, after_seqno + 1)
                return master

            if cancel is not None:
                if cancel.wait(self.config.poll_interval):
                    return None
            else:
                time.sleep(self.config.poll_interval)

    def _lookup_master(self, master: BlockRef, seqno: int) -> BlockRef:
        result = self._get("lookupBlock", {
            "workchain": master.workchain,
            "shard": shard_to_signed(master.shard),
            "seqno": seqno,
        })
        return parse_block_id(result)

    def get_block_content(self, ref: BlockRef) -> BlockContent:
        params = {
            "workchain": ref.workchain,
            "shard": shard_to_signed(ref.shard),
            "seqno": ref.seqno,
        }
        if ref.root_hash:
            params["root_hash"] = base64.b64encode(ref.root_hash).decode("ascii")
        if ref.file_hash:
            params["file_hash"] = base64.b64encode(ref.file_hash).decode("ascii")

        try:
            header = self._get("getBlockHeader", params)
        except FetchFailed as e:
            raise FetchFailed(f"get block data {ref}: {e}", ref) from e

        try:
            parents = tuple(parse_block_id(p) for p in header.get("prev_blocks", []))
        except FetchFailed as e:
            raise FetchFailed(f"get parent blocks {ref}: {e}", ref) from e

        block_id = header.get("id")
        file_hash = ref.file_hash
        if not file_hash and block_id:
            file_hash = parse_block_id(block_id).file_hash

        return BlockContent(ref=ref, file_hash=file_hash, parents=parents)

    def get_shards(self, master_ref: BlockRef) -> List[BlockRef]:
        try:
            result = self._get("shards", {"seqno": master_ref.seqno})
        except FetchFailed as e:
            raise FetchFailed(f"get shards {master_ref}: {e}", master_ref) from e
        return [parse_block_id(s) for s in result.get("shards", [])]

    def get_stats(self) -> Dict:
        return {
            **self._stats,
            "endpoint": self.endpoint,
        }
