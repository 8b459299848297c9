"""Component tests for utilities, amounts, ABI helpers and settings."""

import asyncio
from decimal import Decimal

import pytest
from eth_abi import encode
from web3 import Web3

from clearlink.amounts import from_base_units, parse_amount, to_base_units
from clearlink.chain.abi import (
    CHECKPOINT_DEPOSIT,
    CREATE_CHANNEL,
    GET_OPEN_CHANNELS,
    decode_call,
    decode_open_channels,
    derive_channel_id,
    encode_call,
    selector,
)
from clearlink.config import Settings
from clearlink.errors import InvalidAmountError
from clearlink.utils.locks import (
    LockTimeoutError,
    clear_pair_locks,
    get_pair_lock,
    pair_lock,
)
from clearlink.utils.polling import PollTimeoutError, wait_for

OWNER = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
NODE = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
TOKEN = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"


class TestPairLocks:
    """Tests for the caller-side pair locks."""

    @pytest.fixture(autouse=True)
    def setup(self):
        """Clear locks before each test."""
        clear_pair_locks()

    @pytest.mark.asyncio
    async def test_same_pair_same_lock(self):
        lock1 = await get_pair_lock(OWNER, "MST")
        lock2 = await get_pair_lock(OWNER.lower(), "mst")

        assert lock1 is lock2

    @pytest.mark.asyncio
    async def test_different_pairs_different_locks(self):
        lock1 = await get_pair_lock(OWNER, "MST")
        lock2 = await get_pair_lock(OWNER, "USDC")

        assert lock1 is not lock2

    @pytest.mark.asyncio
    async def test_pair_lock_prevents_concurrent_access(self):
        results = []

        async def task(name, delay):
            async with pair_lock(OWNER, "MST", timeout=10.0, operation=f"task_{name}"):
                results.append(f"{name}_start")
                await asyncio.sleep(delay)
                results.append(f"{name}_end")

        await asyncio.gather(task("A", 0.05), task("B", 0.05))

        assert results in [
            ["A_start", "A_end", "B_start", "B_end"],
            ["B_start", "B_end", "A_start", "A_end"],
        ]

    @pytest.mark.asyncio
    async def test_lock_timeout_raises_error(self):
        async def hold_lock():
            async with pair_lock(OWNER, "MST", timeout=5.0):
                await asyncio.sleep(0.5)

        hold_task = asyncio.create_task(hold_lock())
        await asyncio.sleep(0.05)

        with pytest.raises(LockTimeoutError):
            async with pair_lock(OWNER, "MST", timeout=0.1):
                pass

        await hold_task

    @pytest.mark.asyncio
    async def test_lock_released_after_error(self):
        with pytest.raises(RuntimeError):
            async with pair_lock(OWNER, "MST"):
                raise RuntimeError("deposit failed")

        lock = await get_pair_lock(OWNER, "MST")
        assert not lock.locked()


class TestWaitFor:
    """Tests for deadline-bounded polling."""

    @pytest.mark.asyncio
    async def test_returns_first_value(self):
        attempts = []

        async def check():
            attempts.append(1)
            if len(attempts) < 3:
                raise KeyError("not yet")
            return "ready"

        assert await wait_for(check, timeout=1.0, interval=0.01, transient=(KeyError,)) == "ready"
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_non_transient_error_is_not_retried(self):
        attempts = []

        async def check():
            attempts.append(1)
            raise ValueError("broken")

        with pytest.raises(ValueError):
            await wait_for(check, timeout=1.0, interval=0.01, transient=(KeyError,))
        assert len(attempts) == 1

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def check():
            raise KeyError("never")

        with pytest.raises(PollTimeoutError) as exc_info:
            await wait_for(check, timeout=0.05, interval=0.01, transient=(KeyError,))

        assert isinstance(exc_info.value.last_error, KeyError)
        assert exc_info.value.attempts >= 2


class TestAmounts:

    @pytest.mark.parametrize("value, expected", [
        ("1", Decimal("1")),
        (Decimal("0.5"), Decimal("0.5")),
        (3, Decimal("3")),
        (" 2.25 ", Decimal("2.25")),
    ])
    def test_parse_valid(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize("value", ["0", "-1", "Infinity", "NaN", "", 1.5, True])
    def test_parse_invalid(self, value):
        with pytest.raises(InvalidAmountError):
            parse_amount(value)

    def test_base_units(self):
        assert to_base_units(Decimal("1"), 18) == 10**18
        assert to_base_units(Decimal("1.5"), 6) == 1_500_000
        assert from_base_units(1_500_000, 6) == Decimal("1.5")

    def test_excess_precision_rejected(self):
        with pytest.raises(InvalidAmountError):
            to_base_units(Decimal("0.1234567"), 6)


class TestCustodyAbi:

    def test_selector_shape(self):
        sel = selector(GET_OPEN_CHANNELS)
        assert sel.startswith("0x")
        assert len(sel) == 10

    def test_create_calldata_decodes(self):
        channel_id = bytes.fromhex("11" * 32)
        data = encode_call(CREATE_CHANNEL, channel_id, OWNER, TOKEN, 10**18, 1, b"\x01" * 65)

        signature, args = decode_call(data)

        assert signature == CREATE_CHANNEL
        assert args[0] == channel_id
        assert Web3.to_checksum_address(args[1]) == OWNER
        assert args[2].lower() == TOKEN.lower()
        assert args[3] == 10**18

    def test_decoded_addresses_are_checksummed(self):
        data = encode_call(CHECKPOINT_DEPOSIT, bytes(32), TOKEN, 1, 2, b"\x01")

        _, args = decode_call(data)

        assert args[1] == TOKEN

    def test_checkpoint_and_create_selectors_differ(self):
        assert selector(CREATE_CHANNEL) != selector(CHECKPOINT_DEPOSIT)

    def test_unknown_selector(self):
        with pytest.raises(ValueError):
            decode_call("0xdeadbeef")

    def test_decode_open_channels(self):
        ids = [bytes.fromhex("aa" * 32), bytes.fromhex("bb" * 32)]
        result = "0x" + encode(["bytes32[]"], [ids]).hex()

        assert decode_open_channels(result) == ["0x" + "aa" * 32, "0x" + "bb" * 32]
        assert decode_open_channels("0x") == []

    def test_channel_id_is_deterministic(self):
        first = derive_channel_id(OWNER, NODE, TOKEN, 0, 31337)

        assert first == derive_channel_id(OWNER.lower(), NODE, TOKEN, 0, 31337)
        assert first != derive_channel_id(OWNER, NODE, TOKEN, 1, 31337)
        assert first != derive_channel_id(OWNER, NODE, TOKEN, 0, 1)
        assert len(first) == 66


class TestSettings:

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CLEARLINK_CHAIN_ID", "1")
        monkeypatch.setenv("CLEARLINK_CONVERGENCE_TIMEOUT", "5")

        settings = Settings()

        assert settings.chain_id == 1
        assert settings.convergence_timeout == 5.0

    def test_safe_dict_redacts_key(self):
        settings = Settings(private_key="0x" + "11" * 32)

        data = settings.get_safe_dict()

        assert data["private_key"] == "***"
        assert "11" * 32 not in str(data)
