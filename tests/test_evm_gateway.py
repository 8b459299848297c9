"""Tests for the EVM chain gateway against a mocked JSON-RPC node."""

import json
import re
from decimal import Decimal

import httpx
import pytest
from eth_abi import encode

from clearlink.chain.abi import GET_OPEN_CHANNELS, selector
from clearlink.chain.evm import EVMChainGateway
from clearlink.errors import (
    ChainReadError,
    ChainSubmissionError,
    NodeUnreachableError,
    TransactionRevertedError,
)

from conftest import CUSTODY_ADDRESS, TX_HASH_PATTERN, USER_PRIVATE_KEY

RPC_URL = "http://anvil.test:8545"
TX_HASH = "0x" + "cd" * 32


class FakeNode:
    """JSON-RPC node answering from a method -> result table."""

    def __init__(self, **results):
        self.results = {
            "eth_chainId": "0x7a69",
            "eth_getTransactionCount": "0x3",
            "eth_gasPrice": "0x3b9aca00",
            "eth_sendRawTransaction": TX_HASH,
            **results,
        }
        self.calls = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        method = body["method"]
        self.calls.append((method, body["params"]))

        result = self.results.get(method)
        if isinstance(result, list):
            result = result.pop(0) if len(result) > 1 else result[0]
        if isinstance(result, dict) and "error" in result:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **result})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]


def make_gateway(node, **kwargs) -> EVMChainGateway:
    return EVMChainGateway(
        RPC_URL,
        USER_PRIVATE_KEY,
        receipt_poll_interval=0.01,
        transport=httpx.MockTransport(node),
        **kwargs,
    )


class TestReads:

    @pytest.mark.asyncio
    async def test_chain_id_is_cached(self):
        node = FakeNode()
        gateway = make_gateway(node)

        assert await gateway.get_chain_id() == 31337
        assert await gateway.get_chain_id() == 31337
        assert node.methods().count("eth_chainId") == 1

    @pytest.mark.asyncio
    async def test_get_balance(self):
        gateway = make_gateway(FakeNode(eth_getBalance=hex(2 * 10**18)))

        assert await gateway.get_balance(gateway.address) == Decimal("2")

    @pytest.mark.asyncio
    async def test_read_open_channels(self):
        ids = [bytes.fromhex("aa" * 32)]
        node = FakeNode(eth_call="0x" + encode(["bytes32[]"], [ids]).hex())
        gateway = make_gateway(node)

        channels = await gateway.read_open_channels(CUSTODY_ADDRESS, gateway.address)

        assert channels == ["0x" + "aa" * 32]
        call, _ = node.calls[0][1]
        assert call["to"] == CUSTODY_ADDRESS
        assert call["data"].startswith(selector(GET_OPEN_CHANNELS))

    @pytest.mark.asyncio
    async def test_read_error_is_not_a_submission_error(self):
        node = FakeNode(eth_call={"error": {"code": 3, "message": "execution reverted"}})
        gateway = make_gateway(node)

        with pytest.raises(ChainReadError) as exc_info:
            await gateway.read_open_channels(CUSTODY_ADDRESS, gateway.address)

        assert not isinstance(exc_info.value, ChainSubmissionError)


class TestSubmission:

    @pytest.mark.asyncio
    async def test_submit_returns_hash(self):
        node = FakeNode()
        gateway = make_gateway(node)

        tx_hash = await gateway.submit_transaction(CUSTODY_ADDRESS, "0x1234")

        assert re.match(TX_HASH_PATTERN, tx_hash)
        assert node.methods()[-1] == "eth_sendRawTransaction"
        raw_tx = node.calls[-1][1][0]
        assert raw_tx.startswith("0x")

    @pytest.mark.asyncio
    async def test_broadcast_revert(self):
        node = FakeNode(eth_sendRawTransaction={
            "error": {"code": 3, "message": "execution reverted: channel exists"}
        })

        with pytest.raises(TransactionRevertedError):
            await make_gateway(node).submit_transaction(CUSTODY_ADDRESS, "0x1234")

    @pytest.mark.asyncio
    async def test_broadcast_error(self):
        node = FakeNode(eth_sendRawTransaction={
            "error": {"code": -32000, "message": "nonce too low"}
        })

        with pytest.raises(ChainSubmissionError) as exc_info:
            await make_gateway(node).submit_transaction(CUSTODY_ADDRESS, "0x1234")

        assert not isinstance(exc_info.value, TransactionRevertedError)
        assert exc_info.value.cause["message"] == "nonce too low"

    @pytest.mark.asyncio
    async def test_preparation_error_is_submission_error(self):
        node = FakeNode(eth_gasPrice={"error": {"code": -32603, "message": "internal error"}})

        with pytest.raises(ChainSubmissionError):
            await make_gateway(node).submit_transaction(CUSTODY_ADDRESS, "0x1234")

        assert "eth_sendRawTransaction" not in node.methods()

    @pytest.mark.asyncio
    async def test_node_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NodeUnreachableError):
            await make_gateway(handler).submit_transaction(CUSTODY_ADDRESS, "0x1234")

    @pytest.mark.asyncio
    async def test_non_json_answer_is_unreachable(self):
        gateway = make_gateway(lambda r: httpx.Response(200, text="<html>bad gateway</html>"))

        with pytest.raises(NodeUnreachableError):
            await gateway.get_chain_id()

    @pytest.mark.asyncio
    async def test_non_object_answer_is_unreachable(self):
        with pytest.raises(NodeUnreachableError):
            await make_gateway(lambda r: httpx.Response(200, json=[1, 2])).get_chain_id()

    @pytest.mark.asyncio
    async def test_http_error_is_unreachable(self):
        with pytest.raises(NodeUnreachableError):
            await make_gateway(lambda r: httpx.Response(502)).get_chain_id()


class TestReceipts:

    @pytest.mark.asyncio
    async def test_waits_until_mined(self):
        node = FakeNode(eth_getTransactionReceipt=[
            None,
            None,
            {"status": "0x1", "blockNumber": "0x10", "gasUsed": "0x5208"},
        ])

        receipt = await make_gateway(node).wait_for_receipt(TX_HASH, timeout=2.0)

        assert receipt.succeeded
        assert receipt.block_number == 16
        assert receipt.gas_used == 21000
        assert node.methods().count("eth_getTransactionReceipt") == 3

    @pytest.mark.asyncio
    async def test_failed_status_raises(self):
        node = FakeNode(eth_getTransactionReceipt={"status": "0x0", "blockNumber": "0x10"})

        with pytest.raises(TransactionRevertedError) as exc_info:
            await make_gateway(node).wait_for_receipt(TX_HASH, timeout=2.0)

        assert exc_info.value.tx_hash == TX_HASH

    @pytest.mark.asyncio
    async def test_timeout(self):
        node = FakeNode(eth_getTransactionReceipt=None)

        with pytest.raises(ChainSubmissionError) as exc_info:
            await make_gateway(node).wait_for_receipt(TX_HASH, timeout=0.05)

        assert not isinstance(exc_info.value, TransactionRevertedError)
