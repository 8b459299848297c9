"""Error taxonomy for deposits and channel reconciliation.

Every failure a caller can see is a distinct subclass of ClearlinkError.
Only ChannelNotFoundError, ClearnodeUnavailableError and ChannelPendingError
are treated as transient, and only inside the convergence wait.
"""

from typing import Any, Optional


class ClearlinkError(Exception):
    """Base class for all client errors."""

    pass


class InvalidAmountError(ClearlinkError, ValueError):
    """Raised when a deposit amount is not a positive, representable decimal."""

    pass


class InvalidOwnerError(ClearlinkError):
    """Raised when the depositing owner cannot hold a channel with the clearnode."""

    pass


class UnsupportedChainError(ClearlinkError):
    """Raised when the clearnode reports no custody contract for a chain."""

    def __init__(self, chain_id: int, message: Optional[str] = None):
        self.chain_id = chain_id
        super().__init__(message or f"Clearnode reports no custody contract for chain {chain_id}")


class UnsupportedAssetError(ClearlinkError):
    """Raised when an asset symbol is unknown or not configured for a chain."""

    def __init__(self, asset: str, chain_id: Optional[int] = None, message: Optional[str] = None):
        self.asset = asset
        self.chain_id = chain_id
        if message is None:
            if chain_id is None:
                message = f"Asset {asset} is not supported by the clearnode"
            else:
                message = f"Asset {asset} is not configured for chain {chain_id}"
        super().__init__(message)


class SigningRejectedError(ClearlinkError):
    """Raised when the clearnode declines to co-sign a channel transition."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Clearnode rejected channel authorization: {reason}")


class ChainSubmissionError(ClearlinkError):
    """Raised when a transaction could not be broadcast or did not succeed."""

    def __init__(self, message: str, tx_hash: Optional[str] = None, cause: Optional[Any] = None):
        self.tx_hash = tx_hash
        self.cause = cause
        super().__init__(message)


class NodeUnreachableError(ChainSubmissionError):
    """Raised when the chain RPC node cannot be reached.

    Read-only calls raise it too: an unreachable node fails reads and
    submissions alike.
    """

    pass


class TransactionRevertedError(ChainSubmissionError):
    """Raised when a mined transaction has a failed status."""

    pass


class ChainReadError(ClearlinkError):
    """Raised when a read-only chain call is answered with an error.

    Covers eth_chainId, eth_getBalance and eth_call; nothing was submitted.
    """

    def __init__(self, message: str, cause: Optional[Any] = None):
        self.cause = cause
        super().__init__(message)


class ClearnodeError(ClearlinkError):
    """Raised for clearnode RPC errors without a more specific kind."""

    def __init__(self, message: str, code: Optional[str] = None):
        self.code = code
        super().__init__(message)


class ClearnodeUnavailableError(ClearnodeError):
    """Raised when the clearnode cannot be reached or answers with a server error."""

    pass


class ChannelNotFoundError(ClearnodeError):
    """Raised when the clearnode has no home channel recorded for a pair.

    Right after an on-chain create this is the expected "not yet indexed"
    answer, not a failure.
    """

    def __init__(self, owner: str, asset: str):
        self.owner = owner
        self.asset = asset
        super().__init__(f"No home channel for {owner} in {asset}", code="channel_not_found")


class ChannelPendingError(ClearnodeError):
    """Raised when the home channel is known but not yet open on-chain.

    The clearnode reports a channel as pending between authorizing its
    create and indexing the confirmed transaction.
    """

    def __init__(self, channel: Any):
        self.channel = channel
        super().__init__(
            f"Home channel {channel.channel_id} for {channel.owner} in {channel.asset} "
            f"is {channel.status.value}",
            code="channel_pending",
        )


class ConvergenceTimeoutError(ClearlinkError):
    """Raised when the clearnode does not reflect an on-chain effect in time."""

    def __init__(
        self,
        owner: str,
        asset: str,
        timeout: float,
        last_error: Optional[BaseException] = None,
        last_seen: Optional[Any] = None,
    ):
        self.owner = owner
        self.asset = asset
        self.timeout = timeout
        self.last_error = last_error
        self.last_seen = last_seen
        super().__init__(
            f"Home channel for {owner} in {asset} not observed within {timeout}s. "
            f"Last error: {last_error!s}; last seen: {last_seen!r}"
        )


class ConsistencyMismatchError(ClearlinkError):
    """Raised when the clearnode's home channel is missing from the on-chain registry.

    This points at an indexer defect rather than a protocol violation.
    """

    def __init__(self, channel_id: str, on_chain_ids: list[str]):
        self.channel_id = channel_id
        self.on_chain_ids = on_chain_ids
        super().__init__(
            f"Home channel {channel_id} is not among on-chain open channels {on_chain_ids}"
        )
