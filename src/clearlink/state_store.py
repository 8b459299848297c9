"""Client view of the clearnode's home-channel records.

The clearnode's indexer is the only writer of home channels; this store only
reads. Every lookup goes to the clearnode. The last channel observed per pair
is kept for diagnostics (timeouts report it), never to answer a lookup.
"""

import logging
from typing import Optional

from clearlink.clearnode.base import ClearnodeAPI
from clearlink.errors import (
    ChannelNotFoundError,
    ChannelPendingError,
    ClearnodeUnavailableError,
    ConvergenceTimeoutError,
)
from clearlink.models import ChannelState, ChannelStatus, HomeChannel
from clearlink.utils.polling import PollTimeoutError, wait_for

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0
DEFAULT_POLL_INTERVAL = 0.25


class VersionPendingError(Exception):
    """Home channel found but its version is behind the expected one."""

    def __init__(self, channel: HomeChannel, min_version: int):
        self.channel = channel
        self.min_version = min_version
        super().__init__(
            f"Home channel {channel.channel_id} at version {channel.version}, waiting for {min_version}"
        )


class ChannelStateStore:
    """Reads home channels and waits for the indexer to catch up."""

    # Conditions that only mean "not indexed yet"
    TRANSIENT_ERRORS = (
        ChannelNotFoundError,
        ClearnodeUnavailableError,
        ChannelPendingError,
        VersionPendingError,
    )

    def __init__(self, clearnode: ClearnodeAPI):
        self.clearnode = clearnode
        self._last_seen: dict[tuple[str, str], HomeChannel] = {}

    def last_seen(self, owner: str, asset: str) -> Optional[HomeChannel]:
        """Last home channel observed for a pair, if any."""
        return self._last_seen.get((owner.lower(), asset.lower()))

    async def _fetch(self, owner: str, asset: str) -> HomeChannel:
        channel = await self.clearnode.get_home_channel(owner, asset)
        self._last_seen[(owner.lower(), asset.lower())] = channel
        # An absent record is the same answer as no record
        if channel.status == ChannelStatus.ABSENT:
            raise ChannelNotFoundError(owner, asset)
        return channel

    async def get_home_channel(self, owner: str, asset: str) -> Optional[HomeChannel]:
        """Fetch the home channel, or None if the clearnode has none.

        A pending channel is returned as is; check its status.

        Raises:
            UnsupportedAssetError: If the clearnode does not know the asset
            ClearnodeError: On other clearnode failures
        """
        try:
            return await self._fetch(owner, asset)
        except ChannelNotFoundError:
            return None

    async def require_home_channel(self, owner: str, asset: str) -> HomeChannel:
        """Fetch the home channel; ChannelNotFoundError if there is none."""
        return await self._fetch(owner, asset)

    async def get_latest_state(
        self, owner: str, asset: str, only_signed: bool = False
    ) -> ChannelState:
        return await self.clearnode.get_latest_state(owner, asset, only_signed)

    async def await_home_channel(
        self,
        owner: str,
        asset: str,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        min_version: Optional[int] = None,
    ) -> HomeChannel:
        """Poll until the clearnode reports an open home channel for the pair.

        Args:
            owner: Channel owner address
            asset: Asset symbol
            timeout: Total seconds to wait
            poll_interval: Fixed seconds between polls
            min_version: Also wait until the channel reaches this state version

        Returns:
            The indexed home channel

        Raises:
            ConvergenceTimeoutError: If not observed before the deadline
            UnsupportedAssetError: Immediately, if the clearnode rejects the asset
        """

        async def check() -> HomeChannel:
            channel = await self._fetch(owner, asset)
            if channel.status != ChannelStatus.OPEN:
                raise ChannelPendingError(channel)
            if min_version is not None and channel.version < min_version:
                raise VersionPendingError(channel, min_version)
            return channel

        try:
            channel = await wait_for(
                check,
                timeout=timeout,
                interval=poll_interval,
                transient=self.TRANSIENT_ERRORS,
                description=f"home channel {owner}/{asset}",
            )
        except PollTimeoutError as e:
            raise ConvergenceTimeoutError(
                owner,
                asset,
                timeout,
                last_error=e.last_error,
                last_seen=self.last_seen(owner, asset),
            )

        logger.info(f"Home channel {channel.channel_id} for {owner}/{asset} at version {channel.version}")
        return channel
