"""Factory for wiring a DepositCoordinator from settings.

With ``dry_run`` enabled, the coordinator runs against an in-memory chain and
clearnode serving a single MST asset, and no transaction leaves the process.
"""

import logging
from decimal import Decimal
from typing import Optional

from eth_account import Account

from clearlink.chain.evm import EVMChainGateway
from clearlink.chain.simulated import SimulatedChain, SimulatedChainGateway
from clearlink.clearnode.rpc import ClearnodeRPCClient
from clearlink.clearnode.simulated import SimulatedClearnode
from clearlink.config import Settings, get_settings
from clearlink.coordinator import DepositCoordinator

logger = logging.getLogger(__name__)

SIMULATED_CUSTODY_ADDRESS = "0x00000000000000000000000000000000000c0de5"
SIMULATED_MST_TOKEN = "0x000000000000000000000000000000000000a57e"


def build_coordinator(settings: Optional[Settings] = None) -> DepositCoordinator:
    """Build a coordinator for the configured chain and clearnode.

    Raises:
        ValueError: If no private key is configured outside dry-run mode
    """
    settings = settings or get_settings()

    if settings.dry_run:
        return build_simulated_coordinator(settings)

    if not settings.has_key:
        raise ValueError("CLEARLINK_PRIVATE_KEY is required unless dry_run is enabled")

    gateway = EVMChainGateway(
        rpc_url=settings.rpc_url,
        private_key=settings.private_key,
        gas_limit=settings.gas_limit,
        timeout=settings.http_timeout,
        receipt_timeout=settings.receipt_timeout,
        receipt_poll_interval=settings.receipt_poll_interval,
    )
    clearnode = ClearnodeRPCClient(
        settings.clearnode_url,
        private_key=settings.private_key,
        timeout=settings.http_timeout,
    )
    logger.info(f"Coordinator for {gateway.address} on chain {settings.chain_id} via {settings.clearnode_url}")

    return DepositCoordinator(
        gateway,
        clearnode,
        receipt_timeout=settings.receipt_timeout,
        convergence_timeout=settings.convergence_timeout,
        poll_interval=settings.convergence_poll_interval,
    )


def build_simulated_coordinator(settings: Optional[Settings] = None) -> DepositCoordinator:
    """Coordinator over an in-memory chain and clearnode."""
    settings = settings or get_settings()

    chain = SimulatedChain(settings.chain_id)
    chain.deploy_custody(SIMULATED_CUSTODY_ADDRESS)
    clearnode = SimulatedClearnode(chain, SIMULATED_CUSTODY_ADDRESS)
    clearnode.add_asset("MST", SIMULATED_MST_TOKEN, decimals=18)

    account = Account.from_key(settings.private_key) if settings.has_key else Account.create()
    chain.fund(account.address, Decimal("1"))
    gateway = SimulatedChainGateway(chain, account.address)

    logger.info(f"[SIMULATED] Coordinator for {account.address} on chain {settings.chain_id}")

    return DepositCoordinator(
        gateway,
        clearnode,
        receipt_timeout=settings.receipt_timeout,
        convergence_timeout=settings.convergence_timeout,
        poll_interval=settings.convergence_poll_interval,
    )
