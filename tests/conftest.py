"""Pytest configuration and fixtures."""

import os

import pytest
from eth_account import Account

# Set test environment
os.environ["CLEARLINK_DRY_RUN"] = "true"
os.environ.pop("CLEARLINK_PRIVATE_KEY", None)

from clearlink.chain.simulated import SimulatedChain, SimulatedChainGateway
from clearlink.clearnode.simulated import SimulatedClearnode
from clearlink.coordinator import DepositCoordinator

CHAIN_ID = 31337
CUSTODY_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
MST_TOKEN = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"

# Anvil default accounts #1 and #2
USER_PRIVATE_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
OTHER_PRIVATE_KEY = "0x5de4111afa1a4b94908f83103eb1f1706367c2e68ca870fc3fb9a804cdab365a"
# Anvil account #0, the clearnode signer
NODE_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"

TX_HASH_PATTERN = r"^0x[0-9a-fA-F]{64}$"


@pytest.fixture
def chain() -> SimulatedChain:
    """Simulated chain with a deployed custody contract."""
    chain = SimulatedChain(CHAIN_ID)
    chain.deploy_custody(CUSTODY_ADDRESS)
    return chain


@pytest.fixture
def clearnode(chain) -> SimulatedClearnode:
    """Simulated clearnode serving MST with immediate indexing."""
    node = SimulatedClearnode(chain, CUSTODY_ADDRESS, node_private_key=NODE_PRIVATE_KEY)
    node.add_asset("MST", MST_TOKEN, decimals=18)
    return node


@pytest.fixture
def user_address() -> str:
    return Account.from_key(USER_PRIVATE_KEY).address


@pytest.fixture
def gateway(chain, user_address) -> SimulatedChainGateway:
    return SimulatedChainGateway(chain, user_address)


@pytest.fixture
def coordinator(gateway, clearnode) -> DepositCoordinator:
    """Coordinator for a user with no home channel yet."""
    return DepositCoordinator(gateway, clearnode, convergence_timeout=2.0, poll_interval=0.01)


def make_coordinator(chain, clearnode, private_key: str) -> DepositCoordinator:
    """Coordinator for another account on the same chain and clearnode."""
    gateway = SimulatedChainGateway(chain, Account.from_key(private_key).address)
    return DepositCoordinator(gateway, clearnode, convergence_timeout=2.0, poll_interval=0.01)
