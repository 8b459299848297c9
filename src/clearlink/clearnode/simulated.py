"""In-memory clearnode for dry runs and tests.

Co-signs create and checkpoint transitions for a SimulatedChain and indexes
the resulting custody events into home channels. Indexing lags the chain by
``indexing_delay`` seconds and can be paused outright, which reproduces the
window in which a channel is open on-chain but unknown to the clearnode.
"""

import logging
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

from clearlink.amounts import from_base_units, to_base_units
from clearlink.chain.abi import (
    CHECKPOINT_DEPOSIT,
    CREATE_CHANNEL,
    channel_id_bytes,
    derive_channel_id,
    encode_call,
)
from clearlink.chain.simulated import ChainEvent, SimulatedChain
from clearlink.clearnode.base import ClearnodeAPI
from clearlink.errors import (
    ChannelNotFoundError,
    ClearnodeUnavailableError,
    SigningRejectedError,
    UnsupportedAssetError,
    UnsupportedChainError,
)
from clearlink.models import (
    AssetDescriptor,
    BlockchainInfo,
    ChainId,
    ChannelAuthorization,
    ChannelState,
    ChannelStatus,
    DepositMode,
    HomeChannel,
    NodeConfig,
    TokenInfo,
)

logger = logging.getLogger(__name__)


@dataclass
class _PendingEvent:
    ready_at: float
    event: ChainEvent


class SimulatedClearnode(ClearnodeAPI):
    """Clearnode backed by a SimulatedChain."""

    def __init__(
        self,
        chain: SimulatedChain,
        custody_address: Optional[str],
        node_private_key: Optional[str] = None,
        indexing_delay: float = 0.0,
    ):
        self.chain = chain
        self.custody_address = custody_address
        self._node = Account.from_key(node_private_key) if node_private_key else Account.create()
        self.indexing_delay = indexing_delay
        self.indexing_paused = False
        self.unavailable = False
        self.reject_reason: Optional[str] = None
        self.misconfigured_assets: set[str] = set()
        self.authorizations: list[ChannelAuthorization] = []

        self._assets: dict[str, AssetDescriptor] = {}
        self._home_channels: dict[tuple[str, str], HomeChannel] = {}
        self._issued_versions: dict[str, int] = {}
        self._pending: list[_PendingEvent] = []

        chain.subscribe(self._on_chain_event)

    @property
    def node_address(self) -> str:
        return self._node.address

    def add_asset(self, symbol: str, token_address: str, decimals: int = 18) -> AssetDescriptor:
        """Register a token for an asset on the simulated chain."""
        asset = self._assets.setdefault(symbol.lower(), AssetDescriptor(symbol=symbol))
        asset.tokens[self.chain.chain_id] = TokenInfo(
            chain_id=self.chain.chain_id, address=token_address, decimals=decimals
        )
        return asset

    # ======================
    # Indexer
    # ======================

    def _on_chain_event(self, event: ChainEvent) -> None:
        if self.custody_address is None:
            return
        self._pending.append(_PendingEvent(time.monotonic() + self.indexing_delay, event))

    @property
    def pending_events(self) -> int:
        return len(self._pending)

    def pause_indexing(self) -> None:
        self.indexing_paused = True

    def resume_indexing(self) -> None:
        self.indexing_paused = False

    def run_indexer(self, force: bool = False) -> int:
        """Apply due custody events. Returns the number applied."""
        if self.indexing_paused and not force:
            return 0
        now = time.monotonic()
        due = [p for p in self._pending if force or p.ready_at <= now]
        self._pending = [p for p in self._pending if p not in due]
        for pending in due:
            self._apply(pending.event)
        return len(due)

    def _asset_for_token(self, token: str) -> Optional[AssetDescriptor]:
        for asset in self._assets.values():
            info = asset.token_for(self.chain.chain_id)
            if info and info.address.lower() == token.lower():
                return asset
        return None

    def _apply(self, event: ChainEvent) -> None:
        asset = self._asset_for_token(event["token"])
        if asset is None:
            logger.warning(f"[SIMULATED] Ignoring event for unknown token {event['token']}")
            return
        decimals = asset.token_for(self.chain.chain_id).decimals
        key = (event["owner"].lower(), asset.symbol.lower())
        amount = from_base_units(event["amount"], decimals)

        if event["event"] == "ChannelCreated":
            if key in self._home_channels:
                logger.warning(f"[SIMULATED] Home channel already indexed for {key}")
                return
            self._home_channels[key] = HomeChannel(
                channel_id=event["channel_id"],
                owner=event["owner"],
                asset=asset.symbol,
                chain_id=self.chain.chain_id,
                status=ChannelStatus.OPEN,
                version=event["version"],
                balance=amount,
            )
            logger.info(f"[SIMULATED] Indexed home channel {event['channel_id']} for {key}")
        elif event["event"] == "ChannelCheckpointed":
            channel = self._home_channels.get(key)
            if channel is None or channel.channel_id != event["channel_id"]:
                logger.warning(f"[SIMULATED] Checkpoint for unindexed channel {event['channel_id']}")
                return
            channel.version = event["version"]
            channel.balance += amount

    # ======================
    # ClearnodeAPI
    # ======================

    def _check_available(self) -> None:
        if self.unavailable:
            raise ClearnodeUnavailableError("Simulated clearnode is unavailable")

    def _resolve_asset(self, asset: str) -> AssetDescriptor:
        descriptor = self._assets.get(asset.lower())
        if descriptor is None or asset.lower() in self.misconfigured_assets:
            raise UnsupportedAssetError(asset)
        return descriptor

    async def get_config(self) -> NodeConfig:
        self._check_available()
        blockchains = []
        if self.custody_address:
            blockchains.append(
                BlockchainInfo(
                    chain_id=self.chain.chain_id,
                    name="Simulated",
                    custody_address=self.custody_address,
                )
            )
        return NodeConfig(node_address=self.node_address, blockchains=blockchains)

    async def get_assets(self, chain_id: ChainId) -> list[AssetDescriptor]:
        self._check_available()
        return [a for a in self._assets.values() if a.token_for(chain_id) is not None]

    async def get_home_channel(self, owner: str, asset: str) -> HomeChannel:
        self._check_available()
        descriptor = self._resolve_asset(asset)
        self.run_indexer()
        channel = self._home_channels.get((owner.lower(), descriptor.symbol.lower()))
        if channel is None:
            raise ChannelNotFoundError(owner, asset)
        return HomeChannel(**vars(channel))

    async def get_latest_state(
        self, owner: str, asset: str, only_signed: bool = False
    ) -> ChannelState:
        self._check_available()
        descriptor = self._resolve_asset(asset)
        self.run_indexer()
        channel = self._home_channels.get((owner.lower(), descriptor.symbol.lower()))
        return ChannelState(
            owner=owner,
            asset=descriptor.symbol,
            home_channel_id=channel.channel_id if channel else None,
            version=channel.version if channel else 0,
            balance=channel.balance if channel else Decimal("0"),
        )

    async def request_channel_authorization(
        self,
        owner: str,
        chain_id: ChainId,
        asset: str,
        amount: Decimal,
        mode: DepositMode,
    ) -> ChannelAuthorization:
        self._check_available()
        if chain_id != self.chain.chain_id or self.custody_address is None:
            raise UnsupportedChainError(chain_id)
        descriptor = self._resolve_asset(asset)
        token = descriptor.token_for(chain_id)
        if token is None:
            raise UnsupportedAssetError(asset, chain_id)
        if self.reject_reason:
            raise SigningRejectedError(self.reject_reason)
        if owner.lower() == self.node_address.lower():
            raise SigningRejectedError("owner is the node signer")

        self.run_indexer()
        units = to_base_units(amount, token.decimals)
        key = (owner.lower(), descriptor.symbol.lower())
        home = self._home_channels.get(key)

        if mode == DepositMode.CREATE:
            if home is not None:
                raise SigningRejectedError(f"home channel {home.channel_id} already exists")
            channel_id = derive_channel_id(owner, self.node_address, token.address, 0, chain_id)
        else:
            if home is None:
                raise SigningRejectedError("no home channel to checkpoint")
            channel_id = home.channel_id

        current = max(home.version if home else 0, self._issued_versions.get(channel_id, 0))
        version = current + 1 if mode == DepositMode.CHECKPOINT else max(current, 1)
        self._issued_versions[channel_id] = max(version, self._issued_versions.get(channel_id, 0))

        signed = self._node.sign_message(encode_defunct(text=f"{channel_id}:{version}:{units}"))
        signature = bytes(signed.signature)

        if mode == DepositMode.CREATE:
            data = encode_call(
                CREATE_CHANNEL,
                channel_id_bytes(channel_id),
                Web3.to_checksum_address(owner),
                Web3.to_checksum_address(token.address),
                units,
                version,
                signature,
            )
        else:
            data = encode_call(
                CHECKPOINT_DEPOSIT,
                channel_id_bytes(channel_id),
                Web3.to_checksum_address(token.address),
                units,
                version,
                signature,
            )

        authorization = ChannelAuthorization(
            channel_id=channel_id,
            mode=mode,
            to=self.custody_address,
            data=data,
            value=0,
            version=version,
            node_signature="0x" + signature.hex(),
        )
        self.authorizations.append(authorization)
        logger.info(f"[SIMULATED] Signed {mode.value} of {amount} {descriptor.symbol} for {owner}")
        return authorization
