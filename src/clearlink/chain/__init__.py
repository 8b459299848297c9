"""On-chain access: custody ABI, EVM gateway and in-memory chain."""

from clearlink.chain.base import ChainGateway
from clearlink.chain.evm import EVMChainGateway
from clearlink.chain.simulated import SimulatedChain, SimulatedChainGateway

__all__ = [
    "ChainGateway",
    "EVMChainGateway",
    "SimulatedChain",
    "SimulatedChainGateway",
]
