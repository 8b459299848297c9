"""In-memory chain for dry runs and tests.

A SimulatedChain holds balances, custody contracts and receipts. Each
SimulatedChainGateway is one account's view of that chain. Custody calls are
decoded with the real ABI helpers so calldata authorized by a clearnode runs
through the same encoding as on a live node.
"""

import logging
import secrets
from decimal import Decimal
from typing import Callable, Optional

from clearlink.chain.abi import CHECKPOINT_DEPOSIT, CREATE_CHANNEL, decode_call
from clearlink.chain.base import ChainGateway
from clearlink.errors import (
    ChainSubmissionError,
    NodeUnreachableError,
    TransactionRevertedError,
)
from clearlink.models import ChainId, TransactionReceipt

logger = logging.getLogger(__name__)

ChainEvent = dict
EventListener = Callable[[ChainEvent], None]


class ContractRevert(Exception):
    """Raised by simulated contracts to revert a call."""

    pass


class SimulatedCustody:
    """Custody contract tracking open channels per owner.

    Rejects a create for a channel id that is already open, and a create for
    an owner and token that already have an open channel.
    """

    def __init__(self, address: str):
        self.address = address
        self.channels: dict[str, dict] = {}
        self._open_by_owner: dict[str, list[str]] = {}

    def open_channels(self, owner: str) -> list[str]:
        return list(self._open_by_owner.get(owner.lower(), []))

    def apply(self, sender: str, data: str) -> ChainEvent:
        try:
            signature, args = decode_call(data)
        except ValueError as e:
            raise ContractRevert(str(e))

        if signature == CREATE_CHANNEL:
            return self._create(sender, *args)
        if signature == CHECKPOINT_DEPOSIT:
            return self._checkpoint(sender, *args)
        raise ContractRevert(f"{signature} is not callable")

    def _create(self, sender, channel_id, owner, token, amount, version, node_sig) -> ChainEvent:
        channel_hex = "0x" + channel_id.hex()
        if owner.lower() != sender.lower():
            raise ContractRevert("sender is not the channel owner")
        if not node_sig:
            raise ContractRevert("missing node signature")
        if channel_hex in self.channels:
            raise ContractRevert(f"channel {channel_hex} already exists")
        for existing in self.open_channels(owner):
            if self.channels[existing]["token"].lower() == token.lower():
                raise ContractRevert(f"owner already has open channel {existing} for token")

        self.channels[channel_hex] = {
            "owner": owner,
            "token": token,
            "balance": amount,
            "version": version,
        }
        self._open_by_owner.setdefault(owner.lower(), []).append(channel_hex)
        return {
            "event": "ChannelCreated",
            "channel_id": channel_hex,
            "owner": owner,
            "token": token,
            "amount": amount,
            "version": version,
        }

    def _checkpoint(self, sender, channel_id, token, amount, version, node_sig) -> ChainEvent:
        channel_hex = "0x" + channel_id.hex()
        channel = self.channels.get(channel_hex)
        if channel is None:
            raise ContractRevert(f"channel {channel_hex} is not open")
        if channel["owner"].lower() != sender.lower():
            raise ContractRevert("sender is not the channel owner")
        if channel["token"].lower() != token.lower():
            raise ContractRevert("token does not match channel")
        if not node_sig:
            raise ContractRevert("missing node signature")
        if version <= channel["version"]:
            raise ContractRevert(f"stale version {version} <= {channel['version']}")

        channel["balance"] += amount
        channel["version"] = version
        return {
            "event": "ChannelCheckpointed",
            "channel_id": channel_hex,
            "owner": channel["owner"],
            "token": token,
            "amount": amount,
            "version": version,
        }


class SimulatedChain:
    """Shared in-memory chain state."""

    def __init__(self, chain_id: ChainId = 31337):
        self.chain_id = chain_id
        self.block_number = 0
        self.unreachable = False
        self.balances: dict[str, Decimal] = {}
        self.contracts: dict[str, SimulatedCustody] = {}
        self.receipts: dict[str, TransactionReceipt] = {}
        self.transactions: list[dict] = []
        self._listeners: list[EventListener] = []

    def deploy_custody(self, address: str) -> SimulatedCustody:
        custody = SimulatedCustody(address)
        self.contracts[address.lower()] = custody
        return custody

    def custody(self, address: str) -> Optional[SimulatedCustody]:
        return self.contracts.get(address.lower())

    def fund(self, address: str, amount: Decimal) -> None:
        self.balances[address.lower()] = self.balances.get(address.lower(), Decimal("0")) + amount

    def subscribe(self, listener: EventListener) -> None:
        """Register a callback for custody events of mined transactions."""
        self._listeners.append(listener)

    def check_reachable(self) -> None:
        if self.unreachable:
            raise NodeUnreachableError("Simulated node is unreachable")

    def execute(self, sender: str, to: str, data: str, value: int) -> str:
        """Mine a transaction immediately and return its hash."""
        self.check_reachable()
        tx_hash = f"0x{secrets.token_hex(32)}"
        self.block_number += 1
        self.transactions.append({"hash": tx_hash, "from": sender, "to": to, "data": data, "value": value})

        contract = self.custody(to)
        event: Optional[ChainEvent] = None
        status = 1
        if contract is None:
            status = 0
            logger.info(f"[SIMULATED] tx {tx_hash} to non-contract {to} reverted")
        else:
            try:
                event = contract.apply(sender, data)
            except ContractRevert as e:
                status = 0
                logger.info(f"[SIMULATED] tx {tx_hash} reverted: {e}")

        self.receipts[tx_hash] = TransactionReceipt(
            tx_hash=tx_hash,
            status=status,
            block_number=self.block_number,
            gas_used=21000,
        )

        if event is not None:
            event = {**event, "tx_hash": tx_hash, "block_number": self.block_number}
            for listener in self._listeners:
                listener(event)
        return tx_hash


class SimulatedChainGateway(ChainGateway):
    """Chain gateway over a SimulatedChain for one account."""

    def __init__(self, chain: SimulatedChain, address: str):
        super().__init__(address)
        self.chain = chain
        self.submitted: list[str] = []

    async def get_chain_id(self) -> ChainId:
        self.chain.check_reachable()
        return self.chain.chain_id

    async def get_balance(self, address: str) -> Decimal:
        self.chain.check_reachable()
        return self.chain.balances.get(address.lower(), Decimal("0"))

    async def read_open_channels(self, custody_address: str, owner: str) -> list[str]:
        self.chain.check_reachable()
        custody = self.chain.custody(custody_address)
        if custody is None:
            return []
        return custody.open_channels(owner)

    async def submit_transaction(self, to: str, data: str, value: int = 0) -> str:
        tx_hash = self.chain.execute(self.address, to, data, value)
        self.submitted.append(tx_hash)
        logger.info(f"[SIMULATED] Broadcast tx {tx_hash} from {self.address} to {to}")
        return tx_hash

    async def wait_for_receipt(
        self, tx_hash: str, timeout: Optional[float] = None
    ) -> TransactionReceipt:
        self.chain.check_reachable()
        receipt = self.chain.receipts.get(tx_hash)
        if receipt is None:
            raise ChainSubmissionError(f"Unknown transaction {tx_hash}", tx_hash=tx_hash)
        if not receipt.succeeded:
            raise TransactionRevertedError(f"Transaction {tx_hash} reverted", tx_hash=tx_hash)
        return receipt
