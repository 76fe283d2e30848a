"""Unit tests for the JSON-RPC client using respx to mock httpx."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from rollup_deployer.config.models import LedgerConfig
from rollup_deployer.errors import RpcError
from rollup_deployer.ledger.rpc import ARB_SYS_ADDRESS, JsonRpcClient

RPC_URL = "http://node:8545"
TX = "0x" + "ab" * 32


@pytest.fixture
def config() -> LedgerConfig:
    return LedgerConfig(
        rpc_url=RPC_URL,
        chain_id=1337,
        poll_interval_seconds=0.01,
        retry_max_attempts=3,
        retry_wait_seconds=0.01,
    )


def _result(value, request_id: int = 1) -> httpx.Response:
    return httpx.Response(
        200, json={"jsonrpc": "2.0", "id": request_id, "result": value}
    )


def _error(code: int, message: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={"jsonrpc": "2.0", "id": 1, "error": {"code": code, "message": message}},
    )


class TestJsonRpcClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_request_payload(self, config: LedgerConfig):
        route = respx.post(RPC_URL).mock(return_value=_result("0x539"))
        async with JsonRpcClient(config) as client:
            assert await client.chain_id() == 1337

        body = json.loads(route.calls.last.request.content)
        assert body["method"] == "eth_chainId"
        assert body["params"] == []
        assert body["jsonrpc"] == "2.0"

    @pytest.mark.asyncio
    @respx.mock
    async def test_error_object_raises_rpc_error(self, config: LedgerConfig):
        respx.post(RPC_URL).mock(return_value=_error(-32000, "nonce too low"))
        async with JsonRpcClient(config) as client:
            with pytest.raises(RpcError, match="nonce too low") as info:
                await client.gas_price()
        assert info.value.code == -32000
        assert info.value.rpc_message == "nonce too low"

    @pytest.mark.asyncio
    @respx.mock
    async def test_reads_retry_transport_errors(self, config: LedgerConfig):
        route = respx.post(RPC_URL).mock(
            side_effect=[httpx.ConnectError("refused"), _result("0x5")]
        )
        async with JsonRpcClient(config) as client:
            assert await client.get_transaction_count("0x" + "11" * 20) == 5
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_reads_give_up_after_max_attempts(self, config: LedgerConfig):
        route = respx.post(RPC_URL).mock(side_effect=httpx.ConnectError("refused"))
        async with JsonRpcClient(config) as client:
            with pytest.raises(httpx.ConnectError):
                await client.gas_price()
        assert route.call_count == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_send_raw_transaction_not_retried(self, config: LedgerConfig):
        route = respx.post(RPC_URL).mock(side_effect=httpx.ConnectError("refused"))
        async with JsonRpcClient(config) as client:
            with pytest.raises(httpx.ConnectError):
                await client.send_raw_transaction("0xf86b")
        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_wait_for_receipt_polls_until_mined(self, config: LedgerConfig):
        receipt = {"status": "0x1", "transactionHash": TX}
        route = respx.post(RPC_URL).mock(
            side_effect=[_result(None), _result(None), _result(receipt)]
        )
        async with JsonRpcClient(config) as client:
            assert await client.wait_for_receipt(TX, timeout=5) == receipt
        assert route.call_count == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_wait_for_receipt_times_out(self, config: LedgerConfig):
        respx.post(RPC_URL).mock(return_value=_result(None))
        async with JsonRpcClient(config) as client:
            with pytest.raises(TimeoutError):
                await client.wait_for_receipt(TX, timeout=0.05)


class TestArbitrumProbe:
    @pytest.mark.asyncio
    @respx.mock
    async def test_arbsys_answer_means_arbitrum(self, config: LedgerConfig):
        route = respx.post(RPC_URL).mock(return_value=_result("0x" + "00" * 31 + "14"))
        async with JsonRpcClient(config) as client:
            assert await client.is_arbitrum() is True

        body = json.loads(route.calls.last.request.content)
        assert body["method"] == "eth_call"
        assert body["params"][0]["to"] == ARB_SYS_ADDRESS

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_answer_means_l1(self, config: LedgerConfig):
        respx.post(RPC_URL).mock(return_value=_result("0x"))
        async with JsonRpcClient(config) as client:
            assert await client.is_arbitrum() is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_execution_error_means_l1(self, config: LedgerConfig):
        respx.post(RPC_URL).mock(return_value=_error(-32000, "execution reverted"))
        async with JsonRpcClient(config) as client:
            assert await client.is_arbitrum() is False
