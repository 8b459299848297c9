"""Clearnode JSON-RPC client.

Requests are JSON-RPC 2.0 over HTTP POST. Requests that act on behalf of an
owner carry ``sig``, an EIP-191 signature over the canonical JSON of the
params, made with the owner's key.

Error codes returned by the clearnode map onto the client error taxonomy:
- channel_not_found -> ChannelNotFoundError (transient while indexing)
- unsupported_asset -> UnsupportedAssetError
- unsupported_chain -> UnsupportedChainError
- signing_rejected  -> SigningRejectedError
"""

import json
import logging
from decimal import Decimal
from typing import Any, Optional

import httpx
from eth_account import Account
from eth_account.messages import encode_defunct
from pydantic import ValidationError

from clearlink.clearnode.base import ClearnodeAPI
from clearlink.clearnode.contracts import (
    AssetsContract,
    AuthorizationContract,
    ConfigContract,
    HomeChannelContract,
    LatestStateContract,
)
from clearlink.errors import (
    ChannelNotFoundError,
    ClearnodeError,
    ClearnodeUnavailableError,
    InvalidOwnerError,
    SigningRejectedError,
    UnsupportedAssetError,
    UnsupportedChainError,
)
from clearlink.models import (
    AssetDescriptor,
    ChainId,
    ChannelAuthorization,
    ChannelState,
    DepositMode,
    HomeChannel,
    NodeConfig,
)

logger = logging.getLogger(__name__)


def canonical_json(params: dict) -> str:
    """Deterministic JSON used as the signed message."""
    return json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)


class ClearnodeRPCClient(ClearnodeAPI):
    """Clearnode client over JSON-RPC/HTTP."""

    def __init__(
        self,
        url: str,
        private_key: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize client.

        Args:
            url: Clearnode RPC endpoint
            private_key: Owner key used to sign owner requests
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.url = url
        self.timeout = timeout
        self._account = Account.from_key(private_key) if private_key else None
        self._transport = transport
        self._request_id = 0

    @property
    def signer_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    def _sign(self, params: dict) -> str:
        signed = self._account.sign_message(encode_defunct(text=canonical_json(params)))
        signature = signed.signature.hex()
        return signature if signature.startswith("0x") else f"0x{signature}"

    async def _call(self, method: str, params: dict, signed: bool = False) -> Any:
        """Send one RPC request and return its result.

        Raises:
            ClearnodeUnavailableError: On transport failures and 5xx answers
            ClearnodeError: On any RPC error object (see _raise_for_error), and
                with code "malformed_response" when the body is not a JSON object
        """
        self._request_id += 1
        payload: dict[str, Any] = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": self._request_id,
        }
        if signed:
            payload["sig"] = self._sign(params)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.url, json=payload)
        except httpx.TransportError as e:
            logger.error(f"Clearnode {self.url} unreachable ({method}): {e}")
            raise ClearnodeUnavailableError(f"Clearnode unreachable: {e}")

        if response.status_code >= 500:
            raise ClearnodeUnavailableError(
                f"Clearnode returned HTTP {response.status_code} for {method}"
            )
        if response.status_code != 200:
            raise ClearnodeError(
                f"Clearnode returned HTTP {response.status_code} for {method}",
                code=f"http_{response.status_code}",
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ClearnodeError(
                f"Clearnode returned a non-JSON answer for {method}: {e}", code="malformed_response"
            )
        if not isinstance(data, dict):
            raise ClearnodeError(
                f"Clearnode returned {type(data).__name__} instead of a JSON-RPC object for {method}",
                code="malformed_response",
            )
        if "error" in data:
            self._raise_for_error(method, data["error"], params)
        return data.get("result")

    @staticmethod
    def _raise_for_error(method: str, error: Any, params: dict) -> None:
        if not isinstance(error, dict):
            error = {"message": error}
        code = str(error.get("code", ""))
        message = str(error.get("message", error))

        if code == "channel_not_found":
            raise ChannelNotFoundError(params.get("owner", ""), params.get("asset", ""))
        if code == "unsupported_asset":
            raise UnsupportedAssetError(
                params.get("asset", ""), params.get("chainId"), message=message
            )
        if code == "unsupported_chain":
            raise UnsupportedChainError(params.get("chainId", 0), message=message)
        if code == "signing_rejected":
            raise SigningRejectedError(message)

        logger.error(f"Clearnode {method} error {code}: {message}")
        raise ClearnodeError(f"{method} failed: {message}", code=code or None)

    @staticmethod
    def _parse(contract, result: Any, method: str):
        try:
            return contract.model_validate(result)
        except ValidationError as e:
            raise ClearnodeError(f"Malformed {method} result: {e}", code="malformed_result")

    async def get_config(self) -> NodeConfig:
        result = await self._call("get_config", {})
        return self._parse(ConfigContract, result, "get_config").to_model()

    async def get_assets(self, chain_id: ChainId) -> list[AssetDescriptor]:
        result = await self._call("get_assets", {"chainId": chain_id})
        assets = self._parse(AssetsContract, result, "get_assets")
        return [asset.to_model() for asset in assets.assets]

    async def get_home_channel(self, owner: str, asset: str) -> HomeChannel:
        params = {"owner": owner, "asset": asset}
        result = await self._call("get_home_channel", params)
        if not result:
            raise ChannelNotFoundError(owner, asset)
        return self._parse(HomeChannelContract, result, "get_home_channel").to_model()

    async def get_latest_state(
        self, owner: str, asset: str, only_signed: bool = False
    ) -> ChannelState:
        params = {"owner": owner, "asset": asset, "onlySigned": only_signed}
        result = await self._call("get_latest_state", params)
        return self._parse(LatestStateContract, result, "get_latest_state").to_model()

    async def request_channel_authorization(
        self,
        owner: str,
        chain_id: ChainId,
        asset: str,
        amount: Decimal,
        mode: DepositMode,
    ) -> ChannelAuthorization:
        if self._account is None:
            raise InvalidOwnerError("No private key configured to sign clearnode requests")
        if self._account.address.lower() != owner.lower():
            raise InvalidOwnerError(
                f"Request signer {self._account.address} does not match owner {owner}"
            )

        params = {
            "owner": owner,
            "chainId": chain_id,
            "asset": asset,
            "amount": str(amount),
            "mode": mode.value,
        }
        result = await self._call("request_channel_authorization", params, signed=True)
        return self._parse(AuthorizationContract, result, "request_channel_authorization").to_model()
