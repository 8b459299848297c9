"""Base interface for the clearnode API.

The clearnode co-signs every channel state transition and indexes custody
events into per-(owner, asset) home channels. Its index lags the chain: a
channel created on-chain is reported as ChannelNotFoundError until the
indexer has seen the creation event.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from clearlink.models import (
    AssetDescriptor,
    ChainId,
    ChannelAuthorization,
    ChannelState,
    DepositMode,
    HomeChannel,
    NodeConfig,
)


class ClearnodeAPI(ABC):
    """Abstract base class for clearnode access."""

    @abstractmethod
    async def get_config(self) -> NodeConfig:
        """Get the node signer address and supported blockchains."""
        pass

    @abstractmethod
    async def get_assets(self, chain_id: ChainId) -> list[AssetDescriptor]:
        """Get assets with a token on the given chain."""
        pass

    @abstractmethod
    async def get_home_channel(self, owner: str, asset: str) -> HomeChannel:
        """Get the home channel for (owner, asset).

        Raises:
            ChannelNotFoundError: If the clearnode has no home channel recorded
            UnsupportedAssetError: If the asset is not configured
        """
        pass

    @abstractmethod
    async def get_latest_state(
        self, owner: str, asset: str, only_signed: bool = False
    ) -> ChannelState:
        """Get the latest off-chain state of owner's position in asset."""
        pass

    @abstractmethod
    async def request_channel_authorization(
        self,
        owner: str,
        chain_id: ChainId,
        asset: str,
        amount: Decimal,
        mode: DepositMode,
    ) -> ChannelAuthorization:
        """Ask the clearnode to co-sign a create or checkpoint.

        Raises:
            SigningRejectedError: If the clearnode declines to sign
        """
        pass

    async def close(self) -> None:
        """Release any held connections."""
        return None
