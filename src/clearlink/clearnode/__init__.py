"""Clearnode access: RPC client, wire contracts and in-memory node."""

from clearlink.clearnode.base import ClearnodeAPI
from clearlink.clearnode.rpc import ClearnodeRPCClient
from clearlink.clearnode.simulated import SimulatedClearnode

__all__ = [
    "ClearnodeAPI",
    "ClearnodeRPCClient",
    "SimulatedClearnode",
]
