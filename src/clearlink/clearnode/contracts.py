"""Wire contracts for clearnode RPC results.

The clearnode speaks camelCase; these models validate results and convert
them to domain models.
"""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from clearlink.models import (
    AssetDescriptor,
    BlockchainInfo,
    ChannelAuthorization,
    ChannelState,
    ChannelStatus,
    DepositMode,
    HomeChannel,
    NodeConfig,
    TokenInfo,
)


class WireModel(BaseModel):
    """Base for clearnode contracts: camelCase aliases, extra keys ignored."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BlockchainContract(WireModel):
    id: int = Field(..., description="Chain id")
    name: str = Field(default="", description="Human-readable chain name")
    contract_address: str = Field(
        default="", alias="contractAddress", description="Custody contract address"
    )


class ConfigContract(WireModel):
    node_address: str = Field(..., alias="nodeAddress", description="Clearnode signer address")
    blockchains: list[BlockchainContract] = Field(default_factory=list)

    def to_model(self) -> NodeConfig:
        return NodeConfig(
            node_address=self.node_address,
            blockchains=[
                BlockchainInfo(chain_id=b.id, name=b.name, custody_address=b.contract_address)
                for b in self.blockchains
            ],
        )


class TokenContract(WireModel):
    blockchain_id: int = Field(..., alias="blockchainId")
    address: str = Field(..., description="Token contract address")
    decimals: int = Field(..., ge=0, le=77)


class AssetContract(WireModel):
    symbol: str
    tokens: list[TokenContract] = Field(default_factory=list)

    def to_model(self) -> AssetDescriptor:
        return AssetDescriptor(
            symbol=self.symbol,
            tokens={
                t.blockchain_id: TokenInfo(
                    chain_id=t.blockchain_id, address=t.address, decimals=t.decimals
                )
                for t in self.tokens
            },
        )


class AssetsContract(WireModel):
    assets: list[AssetContract] = Field(default_factory=list)


class HomeChannelContract(WireModel):
    channel_id: str = Field(..., alias="channelId")
    owner: str
    asset: str
    chain_id: int = Field(..., alias="blockchainId")
    status: ChannelStatus = ChannelStatus.OPEN
    version: int = 0
    balance: Decimal = Decimal("0")

    def to_model(self) -> HomeChannel:
        return HomeChannel(
            channel_id=self.channel_id,
            owner=self.owner,
            asset=self.asset,
            chain_id=self.chain_id,
            status=self.status,
            version=self.version,
            balance=self.balance,
        )


class LatestStateContract(WireModel):
    owner: str = Field(..., alias="userWallet")
    asset: str
    home_channel_id: Optional[str] = Field(None, alias="homeChannelId")
    version: int = 0
    balance: Decimal = Decimal("0")
    is_signed: bool = Field(default=True, alias="isSigned")

    def to_model(self) -> ChannelState:
        return ChannelState(
            owner=self.owner,
            asset=self.asset,
            home_channel_id=self.home_channel_id,
            version=self.version,
            balance=self.balance,
            is_signed=self.is_signed,
        )


class AuthorizationContract(WireModel):
    channel_id: str = Field(..., alias="channelId")
    mode: DepositMode
    to: str = Field(..., description="Custody contract address")
    data: str = Field(..., description="Calldata (hex)")
    value: int = Field(default=0, ge=0, description="Native value in wei")
    version: int = Field(default=0, ge=0, description="State version after the transition")
    node_signature: Optional[str] = Field(None, alias="nodeSignature")

    def to_model(self) -> ChannelAuthorization:
        return ChannelAuthorization(
            channel_id=self.channel_id,
            mode=self.mode,
            to=self.to,
            data=self.data,
            value=self.value,
            version=self.version,
            node_signature=self.node_signature,
        )
