"""Utility modules."""

from clearlink.utils.locks import pair_lock
from clearlink.utils.polling import wait_for

__all__ = ["pair_lock", "wait_for"]
