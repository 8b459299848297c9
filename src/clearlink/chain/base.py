"""Base interface for on-chain access.

Gateway responsibilities:
1. Report the chain id and native balances
2. Read the custody contract's open-channel registry
3. Sign and broadcast a transaction, returning its hash
4. Wait for the receipt of a broadcast transaction

Failures are distinct: NodeUnreachableError when the RPC node cannot be
reached, TransactionRevertedError when a mined transaction failed, and
ChainSubmissionError for any other broadcast failure.
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

from clearlink.models import ChainId, TransactionReceipt

logger = logging.getLogger(__name__)


class ChainGateway(ABC):
    """Abstract base class for chain gateways.

    A gateway is bound to one chain and one signing account.
    """

    def __init__(self, address: str):
        """Initialize gateway.

        Args:
            address: Address of the account that signs submitted transactions
        """
        self.address = address

    @abstractmethod
    async def get_chain_id(self) -> ChainId:
        """Get the id of the chain the gateway is connected to."""
        pass

    @abstractmethod
    async def get_balance(self, address: str) -> Decimal:
        """Get the native balance of an address, in ether units."""
        pass

    @abstractmethod
    async def read_open_channels(self, custody_address: str, owner: str) -> list[str]:
        """Read the custody contract's open channel ids for an owner.

        Args:
            custody_address: Custody contract address
            owner: Channel owner address

        Returns:
            Channel ids as 0x-prefixed hex strings
        """
        pass

    @abstractmethod
    async def submit_transaction(self, to: str, data: str, value: int = 0) -> str:
        """Sign and broadcast a transaction from the gateway account.

        Args:
            to: Destination contract address
            data: Calldata (hex)
            value: Native value in wei

        Returns:
            Transaction hash
        """
        pass

    @abstractmethod
    async def wait_for_receipt(
        self, tx_hash: str, timeout: Optional[float] = None
    ) -> TransactionReceipt:
        """Wait until a transaction is mined.

        Raises:
            TransactionRevertedError: If the transaction was mined with a failed status
            ChainSubmissionError: If no receipt appeared within the timeout
        """
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(address={self.address})"
