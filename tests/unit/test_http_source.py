"""
Unit tests for the TON HTTP ledger source.

Tests verify request shaping and response parsing without network access.

RULE: Mock the HTTP session.
RULE: Verify endpoint pinning and failover boundaries.
"""

import base64
import threading
from unittest.mock import MagicMock, Mock

import pytest
import requests

from blockscan.client import SourceConfig, TonHttpSource, parse_block_id
from blockscan.errors import FetchFailed, SourceUnavailable
from blockscan.types import BlockRef

MASTER_SHARD_SIGNED = "-9223372036854775808"
ROOT_HASH = base64.b64encode(b"r" * 32).decode()
FILE_HASH = base64.b64encode(b"f" * 32).decode()


def block_id(workchain=-1, shard=MASTER_SHARD_SIGNED, seqno=100):
    return {
        "@type": "ton.blockIdExt",
        "workchain": workchain,
        "shard": shard,
        "seqno": seqno,
        "root_hash": ROOT_HASH,
        "file_hash": FILE_HASH,
    }


def ok_response(result):
    response = Mock()
    response.status_code = 200
    response.json.return_value = {"ok": True, "result": result}
    return response


def master_info(seqno):
    return ok_response({"@type": "blocks.masterchainInfo", "last": block_id(seqno=seqno)})


@pytest.fixture
def session():
    s = MagicMock()
    s.headers = {}
    return s


def make_source(session, urls=("http://a/api/v2", "http://b/api/v2")):
    config = SourceConfig(api_urls=list(urls), poll_interval=0.0, retry_backoff=0.0)
    return TonHttpSource(config, session=session)


class TestParseBlockId:

    def test_signed_shard_becomes_unsigned(self):
        ref = parse_block_id(block_id(shard=MASTER_SHARD_SIGNED))

        assert ref.shard == 0x8000000000000000
        assert ref.workchain == -1
        assert ref.seqno == 100
        assert ref.file_hash == b"f" * 32
        assert ref.root_hash == b"r" * 32

    def test_missing_field_raises_fetch_failed(self):
        with pytest.raises(FetchFailed):
            parse_block_id({"workchain": 0, "shard": "1"})


class TestMasterBlocks:

    def test_latest_master(self, session):
        session.get.return_value = master_info(500)
        source = make_source(session)

        master = source.get_master_block()

        assert master.seqno == 500
        url = session.get.call_args[0][0]
        assert url == "http://a/api/v2/getMasterchainInfo"

    def test_polls_until_newer_block(self, session):
        session.get.side_effect = [master_info(500), master_info(500), master_info(501)]
        source = make_source(session)

        master = source.get_master_block(after_seqno=500, cancel=threading.Event())

        assert master.seqno == 501
        assert session.get.call_count == 3

    def test_steps_one_master_at_a_time(self, session):
        """A jump of several master blocks returns the next one via lookupBlock."""
        session.get.side_effect = [master_info(505), ok_response(block_id(seqno=501))]
        source = make_source(session)

        master = source.get_master_block(after_seqno=500)

        assert master.seqno == 501
        method_url, = session.get.call_args[0]
        assert method_url.endswith("/lookupBlock")
        assert session.get.call_args[1]["params"]["seqno"] == 501

    def test_cancel_returns_none(self, session):
        session.get.return_value = master_info(500)
        source = make_source(session)
        cancel = threading.Event()
        cancel.set()

        assert source.get_master_block(after_seqno=500, cancel=cancel) is None

    def test_failover_between_iterations(self, session):
        session.get.side_effect = [requests.ConnectionError("down"), master_info(42)]
        source = make_source(session)

        master = source.get_master_block()

        assert master.seqno == 42
        assert source.endpoint == "http://b/api/v2"
        assert source.get_stats()["failovers"] == 1

    def test_all_endpoints_down(self, session):
        session.get.side_effect = requests.ConnectionError("down")
        source = make_source(session)

        with pytest.raises(SourceUnavailable):
            source.get_master_block()


class TestBlockContent:

    def test_header_parents_parsed(self, session):
        parent = block_id(workchain=0, shard="-9223372036854775808", seqno=9)
        session.get.return_value = ok_response({
            "@type": "blocks.header",
            "id": block_id(workchain=0, seqno=10),
            "prev_blocks": [parent],
        })
        source = make_source(session)
        ref = BlockRef(0, 0x8000000000000000, 10, b"r" * 32, b"f" * 32)

        content = source.get_block_content(ref)

        assert content.ref == ref
        assert content.file_hash == b"f" * 32
        assert len(content.parents) == 1
        assert content.parents[0].seqno == 9
        params = session.get.call_args[1]["params"]
        assert params["shard"] == -9223372036854775808
        assert params["file_hash"] == FILE_HASH

    def test_api_error_is_fetch_failed(self, session):
        response = Mock()
        response.status_code = 500
        response.json.return_value = {"ok": False, "error": "LITE_SERVER_NOTREADY", "code": 500}
        session.get.return_value = response
        source = make_source(session)
        ref = BlockRef(0, 0x8000000000000000, 10)

        with pytest.raises(FetchFailed) as exc_info:
            source.get_block_content(ref)

        assert exc_info.value.ref == ref
        assert "LITE_SERVER_NOTREADY" in str(exc_info.value)

    def test_invalid_json_is_fetch_failed(self, session):
        response = Mock()
        response.status_code = 502
        response.json.side_effect = ValueError("no json")
        session.get.return_value = response
        source = make_source(session)

        with pytest.raises(FetchFailed):
            source.get_block_content(BlockRef(0, 0x8000000000000000, 10))

    def test_connection_loss_mid_walk_does_not_fail_over(self, session):
        session.get.side_effect = requests.Timeout("slow")
        source = make_source(session)

        with pytest.raises(SourceUnavailable):
            source.get_block_content(BlockRef(0, 0x8000000000000000, 10))

        assert source.endpoint == "http://a/api/v2"


class TestShards:

    def test_shards_parsed(self, session):
        session.get.return_value = ok_response({
            "@type": "blocks.shards",
            "shards": [
                block_id(workchain=0, shard="-4611686018427387904", seqno=7),
                block_id(workchain=0, shard="4611686018427387904", seqno=8),
            ],
        })
        source = make_source(session)
        master = BlockRef(-1, 0x8000000000000000, 100)

        shards = source.get_shards(master)

        assert [s.shard for s in shards] == [0xC000000000000000, 0x4000000000000000]
        assert session.get.call_args[1]["params"] == {"seqno": 100}


def error_response(status, error):
    response = Mock()
    response.status_code = status
    response.json.return_value = {"ok": False, "error": error, "code": status}
    return response


class TestRetries:

    def test_rate_limit_then_success(self, session):
        session.get.side_effect = [error_response(429, "Ratelimit exceed"), master_info(5)]
        source = make_source(session)

        master = source.get_master_block()

        assert master.seqno == 5
        assert session.get.call_count == 2
        assert source.endpoint == "http://a/api/v2"
        assert source.get_stats()["retries"] == 1
        assert source.get_stats()["failovers"] == 0

    def test_retries_exhausted_is_fetch_failed(self, session):
        session.get.return_value = error_response(503, "Service Unavailable")
        source = make_source(session)

        with pytest.raises(FetchFailed) as exc_info:
            source.get_master_block()

        assert "HTTP 503" in str(exc_info.value)
        assert session.get.call_count == source.config.max_retries + 1

    def test_client_error_not_retried(self, session):
        session.get.return_value = error_response(422, "Incorrect block id")
        source = make_source(session)

        with pytest.raises(FetchFailed):
            source.get_block_content(BlockRef(0, 0x8000000000000000, 10))

        assert session.get.call_count == 1

    def test_zero_retries(self, session):
        session.get.return_value = error_response(429, "Ratelimit exceed")
        config = SourceConfig(api_urls=["http://a/api/v2"], max_retries=0)
        source = TonHttpSource(config, session=session)

        with pytest.raises(FetchFailed):
            source.get_master_block()

        assert session.get.call_count == 1


class TestConfig:

    def test_api_key_header(self):
        source = TonHttpSource(SourceConfig(api_key="secret"))

        assert source._session.headers["X-API-Key"] == "secret"
        source.close()

    def test_requires_endpoint(self):
        with pytest.raises(ValueError):
            TonHttpSource(SourceConfig(api_urls=[]))
