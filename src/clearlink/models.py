"""Domain models for channels, assets and deposits."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

ChainId = int


class ChannelStatus(str, Enum):
    """Lifecycle status of a channel as seen by the clearnode."""

    ABSENT = "absent"
    PENDING = "pending"    # Authorized, not yet confirmed on-chain
    OPEN = "open"


class DepositMode(str, Enum):
    """Kind of on-chain transaction a deposit turns into."""

    CREATE = "create"          # No home channel yet
    CHECKPOINT = "checkpoint"  # Top up the existing home channel


@dataclass(frozen=True)
class TokenInfo:
    """Token backing an asset on one chain."""
    chain_id: ChainId
    address: str
    decimals: int


@dataclass
class AssetDescriptor:
    """Asset known to the clearnode, with its token per chain."""
    symbol: str
    tokens: dict[ChainId, TokenInfo] = field(default_factory=dict)

    def token_for(self, chain_id: ChainId) -> Optional[TokenInfo]:
        return self.tokens.get(chain_id)

    def matches(self, symbol: str) -> bool:
        return self.symbol.lower() == symbol.lower()


@dataclass(frozen=True)
class BlockchainInfo:
    """A chain the clearnode operates on."""
    chain_id: ChainId
    name: str
    custody_address: str


@dataclass
class NodeConfig:
    """Clearnode configuration snapshot."""
    node_address: str
    blockchains: list[BlockchainInfo] = field(default_factory=list)

    def custody_for(self, chain_id: ChainId) -> Optional[str]:
        for chain in self.blockchains:
            if chain.chain_id == chain_id:
                return chain.custody_address or None
        return None


@dataclass
class HomeChannel:
    """The canonical channel the clearnode keeps per (owner, asset)."""
    channel_id: str
    owner: str
    asset: str
    chain_id: ChainId
    status: ChannelStatus = ChannelStatus.OPEN
    version: int = 0
    balance: Decimal = Decimal("0")


@dataclass
class ChannelState:
    """Latest off-chain state of a user's position in an asset."""
    owner: str
    asset: str
    home_channel_id: Optional[str]
    version: int = 0
    balance: Decimal = Decimal("0")
    is_signed: bool = True


@dataclass
class DepositIntent:
    """A single deposit in flight. Built and discarded per call."""
    owner: str
    chain_id: ChainId
    asset: str
    amount: Decimal
    mode: DepositMode


@dataclass
class ChannelAuthorization:
    """Clearnode co-signed transaction for a create or checkpoint.

    Attributes:
        channel_id: Channel the transaction creates or tops up
        mode: Transition the clearnode signed for
        to: Custody contract address
        data: ABI encoded calldata (hex)
        value: Native value to attach, in wei
        version: State version the channel will have once indexed
        node_signature: Clearnode signature over the new state
    """
    channel_id: str
    mode: DepositMode
    to: str
    data: str
    value: int = 0
    version: int = 0
    node_signature: Optional[str] = None


@dataclass
class TransactionReceipt:
    """Mined transaction outcome."""
    tx_hash: str
    status: int
    block_number: Optional[int] = None
    gas_used: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == 1


@dataclass
class DepositResult:
    """Outcome of a deposit.

    The transaction is confirmed on-chain, but the clearnode may not have
    indexed it yet; use the convergence wait for that.
    """
    transaction_hash: str
    mode: DepositMode
    channel_id: str
    version: int = 0
    receipt: Optional[TransactionReceipt] = None
