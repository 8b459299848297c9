"""Caller-side locks for deposits on the same (owner, asset) pair.

DepositCoordinator does not serialize deposits: two processes may both read
"no home channel" and both request a create, and the custody contract decides
which one wins. Callers that run several deposits for one pair inside a single
process can wrap them in pair_lock to avoid the losing create altogether.
These locks are process-local.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

PairKey = tuple[str, str]

# Global lock registry: (owner, asset) -> asyncio.Lock
_pair_locks: dict[PairKey, asyncio.Lock] = {}
_registry_lock = asyncio.Lock()


def _key(owner: str, asset: str) -> PairKey:
    return owner.lower(), asset.lower()


async def get_pair_lock(owner: str, asset: str) -> asyncio.Lock:
    """Get or create the lock for an (owner, asset) pair.

    Owner and asset are compared case-insensitively.
    """
    key = _key(owner, asset)
    async with _registry_lock:
        if key not in _pair_locks:
            _pair_locks[key] = asyncio.Lock()
        return _pair_locks[key]


class LockTimeoutError(Exception):
    """Raised when a lock cannot be acquired within the timeout period."""

    pass


@asynccontextmanager
async def pair_lock(
    owner: str,
    asset: str,
    timeout: Optional[float] = 30.0,
    operation: str = "deposit",
):
    """Hold the (owner, asset) lock for the duration of the block.

    Args:
        owner: Channel owner address
        asset: Asset symbol
        timeout: Maximum time to wait for lock (None = wait forever)
        operation: Description for logging

    Example:
        async with pair_lock(owner, "MST"):
            await coordinator.deposit(chain_id, "MST", amount)
            await coordinator.await_home_channel(owner, "MST")
    """
    lock = await get_pair_lock(owner, asset)

    try:
        if timeout:
            await asyncio.wait_for(lock.acquire(), timeout=timeout)
        else:
            await lock.acquire()
    except asyncio.TimeoutError:
        logger.warning(f"Lock timeout for {owner}/{asset} after {timeout}s: {operation}")
        raise LockTimeoutError(
            f"Could not acquire lock for {owner}/{asset} within {timeout}s"
        )

    logger.debug(f"Lock acquired for {owner}/{asset}: {operation}")
    try:
        yield
    finally:
        lock.release()
        logger.debug(f"Lock released for {owner}/{asset}: {operation}")


def clear_pair_locks() -> None:
    """Clear all pair locks (useful for testing)."""
    _pair_locks.clear()
