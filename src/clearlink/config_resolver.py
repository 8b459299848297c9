"""Resolution of custody contracts and asset tokens from clearnode config.

Node config and per-chain asset lists are fetched once and cached. Fetches
are serialized by a lock; reads of a populated cache take no lock, so
concurrent deposits can share one resolver.
"""

import asyncio
import logging
from typing import Optional

from clearlink.clearnode.base import ClearnodeAPI
from clearlink.errors import UnsupportedAssetError, UnsupportedChainError
from clearlink.models import AssetDescriptor, ChainId, NodeConfig, TokenInfo

logger = logging.getLogger(__name__)


class ConfigResolver:
    """Read-only view of the clearnode's chain and asset registry."""

    def __init__(self, clearnode: ClearnodeAPI):
        self.clearnode = clearnode
        self._config: Optional[NodeConfig] = None
        self._assets: dict[ChainId, list[AssetDescriptor]] = {}
        self._lock = asyncio.Lock()

    async def get_config(self) -> NodeConfig:
        if self._config is None:
            async with self._lock:
                if self._config is None:
                    self._config = await self.clearnode.get_config()
                    logger.debug(
                        f"Loaded clearnode config: node {self._config.node_address}, "
                        f"{len(self._config.blockchains)} chain(s)"
                    )
        return self._config

    async def get_node_address(self) -> str:
        return (await self.get_config()).node_address

    async def get_custody_contract(self, chain_id: ChainId) -> Optional[str]:
        """Custody contract address for a chain, or None if not served."""
        return (await self.get_config()).custody_for(chain_id)

    async def require_custody_contract(self, chain_id: ChainId) -> str:
        """Custody contract address for a chain.

        Raises:
            UnsupportedChainError: If the clearnode reports no custody contract
        """
        custody = await self.get_custody_contract(chain_id)
        if not custody:
            logger.warning(f"No custody contract reported for chain {chain_id}")
            raise UnsupportedChainError(chain_id)
        return custody

    async def get_assets(self, chain_id: ChainId) -> list[AssetDescriptor]:
        if chain_id not in self._assets:
            async with self._lock:
                if chain_id not in self._assets:
                    self._assets[chain_id] = await self.clearnode.get_assets(chain_id)
        return self._assets[chain_id]

    async def resolve_asset(self, chain_id: ChainId, symbol: str) -> tuple[AssetDescriptor, TokenInfo]:
        """Find an asset by symbol (case-insensitive) and its token on a chain.

        Raises:
            UnsupportedAssetError: If the symbol is unknown or has no token on the chain
        """
        for asset in await self.get_assets(chain_id):
            if asset.matches(symbol):
                token = asset.token_for(chain_id)
                if token is None:
                    break
                return asset, token

        logger.warning(f"Asset {symbol} not configured for chain {chain_id}")
        raise UnsupportedAssetError(symbol, chain_id)

    async def refresh(self) -> None:
        """Drop cached config so the next read refetches it."""
        async with self._lock:
            self._config = None
            self._assets.clear()
