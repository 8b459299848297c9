"""Clearlink - clearnode payment-channel client.

Deposits into a user's home channel on a custody contract, co-signed by a
clearnode, and waits for the clearnode to index the result.
"""

from clearlink.coordinator import DepositCoordinator
from clearlink.errors import (
    ChainReadError,
    ChainSubmissionError,
    ChannelPendingError,
    ClearlinkError,
    ConsistencyMismatchError,
    ConvergenceTimeoutError,
    InvalidAmountError,
    SigningRejectedError,
    UnsupportedAssetError,
    UnsupportedChainError,
)
from clearlink.factory import build_coordinator
from clearlink.models import DepositMode, DepositResult, HomeChannel

__version__ = "0.1.0"

__all__ = [
    "DepositCoordinator",
    "build_coordinator",
    "DepositMode",
    "DepositResult",
    "HomeChannel",
    "ClearlinkError",
    "InvalidAmountError",
    "UnsupportedChainError",
    "UnsupportedAssetError",
    "SigningRejectedError",
    "ChainSubmissionError",
    "ChainReadError",
    "ChannelPendingError",
    "ConvergenceTimeoutError",
    "ConsistencyMismatchError",
]
