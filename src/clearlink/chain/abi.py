"""Custody contract ABI helpers.

Selectors and argument layouts for the custody calls the client reads or that
the clearnode authorizes, plus deterministic channel id derivation.
"""

from typing import Any

from eth_abi import decode, encode
from web3 import Web3

# Function signatures
GET_OPEN_CHANNELS = "getOpenChannels(address)"
CREATE_CHANNEL = "createChannel(bytes32,address,address,uint256,uint64,bytes)"
CHECKPOINT_DEPOSIT = "checkpointDeposit(bytes32,address,uint256,uint64,bytes)"

# Argument types keyed by signature
_ARG_TYPES: dict[str, list[str]] = {
    GET_OPEN_CHANNELS: ["address"],
    CREATE_CHANNEL: ["bytes32", "address", "address", "uint256", "uint64", "bytes"],
    CHECKPOINT_DEPOSIT: ["bytes32", "address", "uint256", "uint64", "bytes"],
}


def selector(signature: str) -> str:
    """4-byte function selector as 0x-prefixed hex."""
    return "0x" + Web3.keccak(text=signature)[:4].hex().removeprefix("0x")


def encode_call(signature: str, *args: Any) -> str:
    """ABI encode a call to one of the custody functions."""
    types = _ARG_TYPES[signature]
    return selector(signature) + encode(types, list(args)).hex()


def decode_call(data: str) -> tuple[str, tuple]:
    """Decode custody calldata into (signature, args).

    Addresses come back checksummed whatever casing the decoder produces.

    Raises:
        ValueError: If the selector is not a known custody function
    """
    data = data.removeprefix("0x")
    head, body = "0x" + data[:8], bytes.fromhex(data[8:])
    for signature, types in _ARG_TYPES.items():
        if selector(signature) == head:
            args = decode(types, body)
            return signature, tuple(
                Web3.to_checksum_address(arg) if abi_type == "address" else arg
                for abi_type, arg in zip(types, args)
            )
    raise ValueError(f"Unknown custody selector {head}")


def decode_open_channels(result: str) -> list[str]:
    """Decode the bytes32[] returned by getOpenChannels."""
    raw = bytes.fromhex(result.removeprefix("0x"))
    if not raw:
        return []
    (ids,) = decode(["bytes32[]"], raw)
    return ["0x" + channel_id.hex() for channel_id in ids]


def derive_channel_id(
    owner: str,
    node: str,
    token: str,
    nonce: int,
    chain_id: int,
) -> str:
    """Channel id the custody contract assigns to (participants, asset, nonce)."""
    packed = encode(
        ["address", "address", "address", "uint256", "uint256"],
        [
            Web3.to_checksum_address(owner),
            Web3.to_checksum_address(node),
            Web3.to_checksum_address(token),
            nonce,
            chain_id,
        ],
    )
    return "0x" + Web3.keccak(packed).hex().removeprefix("0x")


def channel_id_bytes(channel_id: str) -> bytes:
    """bytes32 form of a hex channel id."""
    raw = bytes.fromhex(channel_id.removeprefix("0x"))
    if len(raw) != 32:
        raise ValueError(f"Channel id must be 32 bytes, got {len(raw)}")
    return raw
