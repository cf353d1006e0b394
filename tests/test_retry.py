"""Tests for the shared retry helpers, exercised the way the RPC and DEX clients call them."""

from __future__ import annotations

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from launch_agent.data_sources._retry import (
    _parse_retry_after,
    async_http_get,
    async_http_post_json,
)
from launch_agent.data_sources.solana_rpc import (
    BLOCK_NOT_AVAILABLE,
    SLOT_SKIPPED,
    _QUIET_BLOCK_ERRORS,
)

RPC_URL = "https://rpc.example.com"
DEX_URL = "https://api.dexscreener.com/latest/dex/tokens/MINT"
SLEEP = "launch_agent.data_sources._retry.asyncio.sleep"


def _resp(status_code: int = 200, body=None, headers=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body
    resp.headers = headers or {}
    if status_code >= 500:
        resp.raise_for_status.side_effect = httpx.HTTPStatusError(
            f"HTTP {status_code}", request=MagicMock(), response=resp,
        )
    else:
        resp.raise_for_status = MagicMock()
    return resp


def _rpc_error(code: int, message: str = "unavailable") -> MagicMock:
    return _resp(200, {"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}})


def _poster(*responses) -> AsyncMock:
    client = AsyncMock()
    client.post = AsyncMock(side_effect=list(responses))
    return client


class TestParseRetryAfter:

    def test_seconds(self):
        assert _parse_retry_after(_resp(429, headers={"retry-after": "4"}), 1.0) == 4.0

    def test_floor(self):
        assert _parse_retry_after(_resp(429, headers={"retry-after": "0"}), 1.0) == 0.5

    def test_http_date_falls_back(self):
        resp = _resp(429, headers={"retry-after": "Wed, 21 Oct 2026 07:28:00 GMT"})
        assert _parse_retry_after(resp, 3.0) == 3.0

    def test_missing_header(self):
        assert _parse_retry_after(_resp(429), 2.5) == 2.5


class TestGetBlockErrors:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", sorted(_QUIET_BLOCK_ERRORS))
    async def test_not_available_codes_are_quiet(self, code, caplog):
        client = _poster(_rpc_error(code))
        with caplog.at_level(logging.DEBUG, logger="launch_agent.data_sources._retry"):
            result = await async_http_post_json(
                client, RPC_URL, json_payload={"method": "getBlock"},
                label="Solana RPC (getBlock)", quiet_error_codes=_QUIET_BLOCK_ERRORS,
            )
        assert result is None
        assert client.post.call_count == 1
        errors = [r for r in caplog.records if "getBlock" in r.getMessage()]
        assert errors and all(r.levelno == logging.DEBUG for r in errors)

    @pytest.mark.asyncio
    async def test_other_codes_warn(self, caplog):
        client = _poster(_rpc_error(-32602, "invalid params"))
        with caplog.at_level(logging.DEBUG, logger="launch_agent.data_sources._retry"):
            result = await async_http_post_json(
                client, RPC_URL, json_payload={"method": "getBlock"},
                label="Solana RPC (getBlock)", quiet_error_codes=_QUIET_BLOCK_ERRORS,
            )
        assert result is None
        assert any(r.levelno == logging.WARNING and "invalid params" in r.getMessage()
                   for r in caplog.records)

    @pytest.mark.asyncio
    async def test_skipped_slot_is_not_retried(self):
        client = _poster(_rpc_error(SLOT_SKIPPED), _resp(200, {"result": {"transactions": []}}))
        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            result = await async_http_post_json(
                client, RPC_URL, json_payload={}, quiet_error_codes={BLOCK_NOT_AVAILABLE, SLOT_SKIPPED},
            )
        assert result is None
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_block_body_returned(self):
        block = {"blockhash": "H", "transactions": [{"meta": None}]}
        client = _poster(_resp(200, {"jsonrpc": "2.0", "id": 1, "result": block}))
        assert await async_http_post_json(client, RPC_URL, json_payload={}) == block


class TestSignaturePageFailures:

    @pytest.mark.asyncio
    async def test_server_errors_exhaust_to_none(self):
        client = _poster(_resp(502), _resp(503), _resp(500))
        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            result = await async_http_post_json(
                client, RPC_URL, json_payload={"method": "getSignaturesForAddress"},
                label="Solana RPC (getSignaturesForAddress)",
            )
        assert result is None
        assert client.post.call_count == 3
        # No sleep after the final attempt
        assert [c.args[0] for c in sleep.await_args_list] == [1.5, 3.0]

    @pytest.mark.asyncio
    async def test_timeout_then_page(self):
        page = [{"signature": "s1", "slot": 9}]
        client = AsyncMock()
        client.post = AsyncMock(side_effect=[httpx.ReadTimeout("slow"), _resp(200, {"result": page})])
        with patch(SLEEP, new_callable=AsyncMock):
            assert await async_http_post_json(client, RPC_URL, json_payload={}) == page
        assert client.post.call_count == 2

    @pytest.mark.asyncio
    async def test_rate_limited_waits_retry_after(self):
        client = _poster(_resp(429, headers={"retry-after": "2"}), _resp(200, {"result": []}))
        with patch(SLEEP, new_callable=AsyncMock) as sleep:
            assert await async_http_post_json(client, RPC_URL, json_payload={}) == []
        sleep.assert_awaited_once_with(2.0)

    @pytest.mark.asyncio
    async def test_forbidden_endpoint_is_final(self):
        client = _poster(_resp(403), _resp(200, {"result": []}))
        assert await async_http_post_json(client, RPC_URL, json_payload={}) is None
        assert client.post.call_count == 1


class TestDexScreenerGet:

    @pytest.mark.asyncio
    async def test_server_error_then_pairs(self):
        client = AsyncMock()
        client.get = AsyncMock(side_effect=[_resp(500), _resp(200, {"pairs": [{"fdv": 1}]})])
        with patch(SLEEP, new_callable=AsyncMock):
            data = await async_http_get(client, DEX_URL, max_retries=2, label="DexScreener")
        assert data == {"pairs": [{"fdv": 1}]}
        assert client.get.call_args.args[0] == DEX_URL

    @pytest.mark.asyncio
    async def test_connection_refused_gives_none(self):
        client = AsyncMock()
        client.get = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with patch(SLEEP, new_callable=AsyncMock):
            assert await async_http_get(client, DEX_URL, max_retries=2, label="DexScreener") is None
        assert client.get.call_count == 2

    @pytest.mark.asyncio
    async def test_non_json_object_passed_through(self):
        client = AsyncMock()
        client.get = AsyncMock(return_value=_resp(200, ["unexpected"]))
        assert await async_http_get(client, DEX_URL) == ["unexpected"]
