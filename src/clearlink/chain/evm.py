"""EVM chain gateway.

Talks JSON-RPC to an EVM node over httpx and signs legacy transactions
locally with eth_account.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Optional

import httpx
from eth_account import Account
from web3 import Web3

from clearlink.chain.abi import GET_OPEN_CHANNELS, decode_open_channels, encode_call
from clearlink.chain.base import ChainGateway
from clearlink.errors import (
    ChainReadError,
    ChainSubmissionError,
    NodeUnreachableError,
    TransactionRevertedError,
)
from clearlink.models import ChainId, TransactionReceipt

logger = logging.getLogger(__name__)

DEFAULT_GAS_LIMIT = 500_000


class RPCError(ChainReadError):
    """JSON-RPC error object returned by the node.

    Submission paths convert it to ChainSubmissionError.
    """

    def __init__(self, method: str, error: dict):
        self.method = method
        self.error = error
        super().__init__(f"{method} failed: {error.get('message', error)}", cause=error)


class EVMChainGateway(ChainGateway):
    """Chain gateway for EVM nodes.

    The gateway account is derived from the private key; every submitted
    transaction is signed with it.
    """

    def __init__(
        self,
        rpc_url: str,
        private_key: str,
        gas_limit: int = DEFAULT_GAS_LIMIT,
        timeout: float = 30.0,
        receipt_timeout: float = 60.0,
        receipt_poll_interval: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._account = Account.from_key(private_key)
        super().__init__(self._account.address)
        self.rpc_url = rpc_url
        self.gas_limit = gas_limit
        self.timeout = timeout
        self.receipt_timeout = receipt_timeout
        self.receipt_poll_interval = receipt_poll_interval
        self._transport = transport
        self._chain_id: Optional[int] = None
        self._request_id = 0

    async def _rpc(self, method: str, params: list) -> Any:
        """Send one JSON-RPC request and return its result.

        Raises:
            NodeUnreachableError: On transport failures, non-200 answers and
                bodies that are not a JSON-RPC object
            RPCError: If the node returned an error object
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.rpc_url, json=payload)
        except httpx.TransportError as e:
            logger.error(f"RPC node {self.rpc_url} unreachable ({method}): {e}")
            raise NodeUnreachableError(f"RPC node {self.rpc_url} unreachable: {e}", cause=e)

        if response.status_code != 200:
            logger.error(f"RPC node returned HTTP {response.status_code} for {method}")
            raise NodeUnreachableError(
                f"RPC node {self.rpc_url} returned HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise NodeUnreachableError(
                f"RPC node {self.rpc_url} returned a non-JSON answer for {method}", cause=e
            )
        if not isinstance(data, dict):
            raise NodeUnreachableError(
                f"RPC node {self.rpc_url} returned {type(data).__name__} for {method}"
            )
        if "error" in data:
            error = data["error"]
            raise RPCError(method, error if isinstance(error, dict) else {"message": error})
        return data.get("result")

    async def get_chain_id(self) -> ChainId:
        """Get chain id (cached after the first call)."""
        if self._chain_id is None:
            self._chain_id = int(await self._rpc("eth_chainId", []), 16)
        return self._chain_id

    async def get_balance(self, address: str) -> Decimal:
        result = await self._rpc("eth_getBalance", [address, "latest"])
        return Decimal(int(result, 16)) / Decimal(10**18)

    async def read_open_channels(self, custody_address: str, owner: str) -> list[str]:
        data = encode_call(GET_OPEN_CHANNELS, Web3.to_checksum_address(owner))
        result = await self._rpc("eth_call", [{"to": custody_address, "data": data}, "latest"])
        return decode_open_channels(result or "0x")

    async def _get_nonce(self) -> int:
        result = await self._rpc("eth_getTransactionCount", [self.address, "pending"])
        return int(result, 16)

    async def _get_gas_price(self) -> int:
        return int(await self._rpc("eth_gasPrice", []), 16)

    async def submit_transaction(self, to: str, data: str, value: int = 0) -> str:
        """Sign and broadcast a transaction.

        Raises:
            NodeUnreachableError: If the node cannot be reached
            TransactionRevertedError: If the node rejects the call as reverting
            ChainSubmissionError: On any other node error while preparing or
                broadcasting
        """
        try:
            chain_id = await self.get_chain_id()
            nonce = await self._get_nonce()
            gas_price = await self._get_gas_price()
        except RPCError as e:
            raise ChainSubmissionError(f"Cannot prepare transaction: {e}", cause=e.error)

        tx = {
            "nonce": nonce,
            "gasPrice": gas_price,
            "gas": self.gas_limit,
            "to": Web3.to_checksum_address(to),
            "value": value,
            "data": data,
            "chainId": chain_id,
        }

        signed_tx = self._account.sign_transaction(tx)
        raw_tx = signed_tx.raw_transaction.hex()
        if not raw_tx.startswith("0x"):
            raw_tx = f"0x{raw_tx}"

        try:
            tx_hash = await self._rpc("eth_sendRawTransaction", [raw_tx])
        except RPCError as e:
            message = str(e.error.get("message", ""))
            logger.error(f"Broadcast error: {e.error}")
            if "revert" in message.lower():
                raise TransactionRevertedError(f"Transaction reverted: {message}", cause=e.error)
            raise ChainSubmissionError(f"Broadcast failed: {message}", cause=e.error)

        logger.info(f"Broadcast tx {tx_hash} to {to} (nonce {nonce})")
        return tx_hash

    async def wait_for_receipt(
        self, tx_hash: str, timeout: Optional[float] = None
    ) -> TransactionReceipt:
        """Poll for a receipt until mined or timed out."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + (timeout if timeout is not None else self.receipt_timeout)
        last_error: Optional[Exception] = None

        while True:
            try:
                result = await self._rpc("eth_getTransactionReceipt", [tx_hash])
            except NodeUnreachableError as e:
                logger.debug(f"Receipt poll for {tx_hash} failed: {e}")
                last_error = e
                result = None
            except RPCError as e:
                raise ChainSubmissionError(
                    f"Receipt lookup for {tx_hash} failed: {e}", tx_hash=tx_hash, cause=e.error
                )

            if result is not None:
                receipt = TransactionReceipt(
                    tx_hash=tx_hash,
                    status=int(result.get("status", "0x0"), 16),
                    block_number=int(result["blockNumber"], 16) if result.get("blockNumber") else None,
                    gas_used=int(result["gasUsed"], 16) if result.get("gasUsed") else None,
                )
                if not receipt.succeeded:
                    logger.warning(f"Transaction {tx_hash} reverted in block {receipt.block_number}")
                    raise TransactionRevertedError(
                        f"Transaction {tx_hash} reverted", tx_hash=tx_hash
                    )
                return receipt

            if loop.time() >= deadline:
                raise ChainSubmissionError(
                    f"No receipt for {tx_hash} before timeout", tx_hash=tx_hash, cause=last_error
                )
            await asyncio.sleep(self.receipt_poll_interval)
