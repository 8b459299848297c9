"""Deposit coordinator.

Deposit flow:
1. Validate the amount (no network call before this)
2. Resolve the asset's token and the chain's custody contract
3. Ask the clearnode whether the owner already has a home channel
4. No channel -> create, open channel -> checkpoint, pending channel ->
   ChannelPendingError (its create is not confirmed yet)
5. Get the clearnode's co-signed authorization for that transition
6. Submit it on-chain and wait for the receipt
7. Return the hash; the clearnode indexes the effect later (await_home_channel)

Deposits for the same (owner, asset) are not serialized here. Two deposits
that both see "no home channel" both request a create; the custody contract
accepts one and reverts the other, which surfaces as TransactionRevertedError.
Use clearlink.utils.locks.pair_lock to serialize within a process.
"""

import logging
from decimal import Decimal
from typing import Optional

from clearlink.amounts import AmountLike, parse_amount, to_base_units
from clearlink.chain.base import ChainGateway
from clearlink.clearnode.base import ClearnodeAPI
from clearlink.config_resolver import ConfigResolver
from clearlink.errors import (
    ChannelPendingError,
    ClearnodeError,
    ConsistencyMismatchError,
    InvalidOwnerError,
    UnsupportedChainError,
)
from clearlink.models import (
    ChainId,
    ChannelState,
    ChannelStatus,
    DepositIntent,
    DepositMode,
    DepositResult,
    HomeChannel,
)
from clearlink.state_store import DEFAULT_POLL_INTERVAL, DEFAULT_TIMEOUT, ChannelStateStore

logger = logging.getLogger(__name__)


class DepositCoordinator:
    """Creates or tops up the owner's home channel for an asset.

    The owner is the gateway's signing account. Collaborators are passed in
    once and shared by every deposit this instance runs.
    """

    def __init__(
        self,
        gateway: ChainGateway,
        clearnode: ClearnodeAPI,
        resolver: Optional[ConfigResolver] = None,
        store: Optional[ChannelStateStore] = None,
        receipt_timeout: Optional[float] = None,
        convergence_timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.gateway = gateway
        self.clearnode = clearnode
        self.resolver = resolver or ConfigResolver(clearnode)
        self.store = store or ChannelStateStore(clearnode)
        self.receipt_timeout = receipt_timeout
        self.convergence_timeout = convergence_timeout
        self.poll_interval = poll_interval

    @property
    def owner(self) -> str:
        return self.gateway.address

    async def check_chain(self, chain_id: ChainId) -> None:
        """Check that the gateway is connected to the expected chain.

        Raises:
            UnsupportedChainError: If the node reports a different chain id
        """
        live_chain_id = await self.gateway.get_chain_id()
        if live_chain_id != chain_id:
            raise UnsupportedChainError(
                chain_id,
                message=f"Gateway is connected to chain {live_chain_id}, expected {chain_id}",
            )

    async def _plan(self, chain_id: ChainId, asset: str, amount: Decimal) -> tuple[DepositIntent, str]:
        """Resolve config and decide the deposit mode."""
        descriptor, token = await self.resolver.resolve_asset(chain_id, asset)
        to_base_units(amount, token.decimals)

        custody = await self.resolver.require_custody_contract(chain_id)

        node_address = await self.resolver.get_node_address()
        if node_address.lower() == self.owner.lower():
            raise InvalidOwnerError(
                f"Owner {self.owner} is the clearnode signer and cannot hold a channel"
            )

        # Fresh read: only the clearnode knows whether the channel exists
        existing = await self.store.get_home_channel(self.owner, descriptor.symbol)
        if existing is not None and existing.status == ChannelStatus.PENDING:
            logger.warning(
                f"Home channel {existing.channel_id} for {self.owner}/{descriptor.symbol} is pending"
            )
            raise ChannelPendingError(existing)
        mode = DepositMode.CREATE if existing is None else DepositMode.CHECKPOINT

        intent = DepositIntent(
            owner=self.owner,
            chain_id=chain_id,
            asset=descriptor.symbol,
            amount=amount,
            mode=mode,
        )
        return intent, custody

    async def deposit(self, chain_id: ChainId, asset: str, amount: AmountLike) -> DepositResult:
        """Deposit amount of asset into the owner's home channel.

        Args:
            chain_id: Chain to deposit on
            asset: Asset symbol (case-insensitive)
            amount: Positive decimal amount in asset units

        Returns:
            DepositResult with the confirmed transaction hash

        Raises:
            InvalidAmountError: Before any network call, for non-positive amounts
            ChannelPendingError: A create for this pair is not confirmed yet
            UnsupportedAssetError: Asset unknown or not on this chain
            UnsupportedChainError: No custody contract for the chain
            SigningRejectedError: Clearnode declined to co-sign
            ChainSubmissionError: Broadcast failed or transaction reverted
        """
        value = parse_amount(amount)
        intent, custody = await self._plan(chain_id, asset, value)

        logger.info(
            f"Deposit {intent.amount} {intent.asset} on chain {chain_id} for {intent.owner}: "
            f"{intent.mode.value}"
        )

        authorization = await self.clearnode.request_channel_authorization(
            intent.owner, intent.chain_id, intent.asset, intent.amount, intent.mode
        )
        if authorization.to.lower() != custody.lower():
            raise ClearnodeError(
                f"Authorization targets {authorization.to}, expected custody {custody}",
                code="custody_mismatch",
            )
        if authorization.mode != intent.mode:
            raise ClearnodeError(
                f"Authorization is for {authorization.mode.value}, requested {intent.mode.value}",
                code="mode_mismatch",
            )

        tx_hash = await self.gateway.submit_transaction(
            authorization.to, authorization.data, authorization.value
        )
        receipt = await self.gateway.wait_for_receipt(tx_hash, self.receipt_timeout)

        logger.info(
            f"Deposit tx {tx_hash} confirmed in block {receipt.block_number} "
            f"({intent.mode.value} {authorization.channel_id})"
        )
        return DepositResult(
            transaction_hash=tx_hash,
            mode=intent.mode,
            channel_id=authorization.channel_id,
            version=authorization.version,
            receipt=receipt,
        )

    async def await_home_channel(
        self,
        asset: str,
        *,
        owner: Optional[str] = None,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        min_version: Optional[int] = None,
    ) -> HomeChannel:
        """Wait for the clearnode to index the home channel.

        Pass ``min_version=result.version`` after a checkpoint to wait for
        that specific deposit rather than the channel's existence.
        """
        return await self.store.await_home_channel(
            owner or self.owner,
            asset,
            timeout=self.convergence_timeout if timeout is None else timeout,
            poll_interval=self.poll_interval if poll_interval is None else poll_interval,
            min_version=min_version,
        )

    async def get_latest_state(
        self, asset: str, *, owner: Optional[str] = None, only_signed: bool = False
    ) -> ChannelState:
        return await self.store.get_latest_state(owner or self.owner, asset, only_signed)

    async def verify_home_channel(
        self, chain_id: ChainId, asset: str, *, owner: Optional[str] = None
    ) -> HomeChannel:
        """Cross-check the indexed home channel against the custody registry.

        Raises:
            ChannelNotFoundError: If the clearnode has no home channel
            ChannelPendingError: If the channel is not open yet
            ConsistencyMismatchError: If its id is not open on-chain
        """
        owner = owner or self.owner
        channel = await self.store.require_home_channel(owner, asset)
        if channel.status != ChannelStatus.OPEN:
            raise ChannelPendingError(channel)
        custody = await self.resolver.require_custody_contract(chain_id)
        on_chain = await self.gateway.read_open_channels(custody, owner)

        if channel.channel_id.lower() not in {c.lower() for c in on_chain}:
            logger.error(
                f"Indexer mismatch: home channel {channel.channel_id} for {owner}/{asset} "
                f"not open on-chain ({len(on_chain)} open)"
            )
            raise ConsistencyMismatchError(channel.channel_id, on_chain)
        return channel
