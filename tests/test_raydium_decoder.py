"""
Unit tests for Raydium instruction decoding.

Tests the per-protocol decoders:
- Discriminator lookup (Anchor 8-byte and AMM V4 single byte)
- Argument layouts
- Account index tables
- Truncated data and bad account shapes
"""

import hashlib

import pytest

from raydiumtx.core.exceptions import (
    BadAccountShape,
    TruncatedData,
    UnknownDiscriminator,
    UnsupportedProgram,
)
from raydiumtx.core.models import (
    AmmV4Instruction,
    ClmmInstruction,
    CpmmInstruction,
    EventType,
    LiquidityInstruction,
    LpChangeLog,
    MarketType,
    PoolInitInstruction,
    SwapDirection,
    SwapInstruction,
    SwapLog,
)
from raydiumtx.ingest.decoders import (
    RAYDIUM_AMM_V4,
    RAYDIUM_CLMM,
    RAYDIUM_CPMM,
    build_registry,
    decode,
)
from raydiumtx.ingest.decoders.base import (
    EVENT_IX_TAG,
    InstructionReader,
    anchor_discriminator,
    anchor_event_discriminator,
)

from builders import (
    amm_v4_swap_data,
    anchor_data,
    clmm_swap_data,
    cpmm_lp_change_event_ix,
    cpmm_swap_event_ix,
    new_key,
    new_keys,
    u64,
    u128,
)


class TestDiscriminators:
    """Test discriminator derivation and lookup."""

    def test_anchor_discriminator_is_sha256_prefix(self):
        """Anchor discriminator = sha256('global:<name>')[:8]."""
        expected = hashlib.sha256(b"global:swap_base_input").digest()[:8]
        assert anchor_discriminator("swap_base_input") == expected
        assert len(expected) == 8

    def test_unknown_anchor_discriminator(self):
        """Unknown 8-byte prefix raises UnknownDiscriminator with the bytes."""
        data = bytes(8) + u64(1)
        with pytest.raises(UnknownDiscriminator) as exc_info:
            decode(RAYDIUM_CPMM, data, new_keys(13))

        unrecognized = exc_info.value.unrecognized
        assert unrecognized.protocol == MarketType.CPMM
        assert unrecognized.discriminator == bytes(8)

    def test_empty_data_is_unknown(self):
        """Empty data is an unknown discriminator, not a crash."""
        for program_id in (RAYDIUM_CPMM, RAYDIUM_CLMM, RAYDIUM_AMM_V4):
            with pytest.raises(UnknownDiscriminator):
                decode(program_id, b"", new_keys(20))

    def test_amm_v4_unknown_byte(self):
        """AMM V4 discriminator 2 is not a supported variant."""
        with pytest.raises(UnknownDiscriminator) as exc_info:
            decode(RAYDIUM_AMM_V4, bytes([2]) + u64(1), new_keys(18))
        assert exc_info.value.discriminator == bytes([2])

    def test_unsupported_program(self):
        """Decoding a non-Raydium program raises UnsupportedProgram."""
        with pytest.raises(UnsupportedProgram):
            decode("11111111111111111111111111111111", bytes([2]), [])


class TestInstructionReader:
    """Test little-endian argument reading."""

    def test_reads_in_order(self):
        data = bytes([7]) + u64(42) + u128(2**100) + bytes([1])
        reader = InstructionReader(data, "test")
        assert reader.u8() == 7
        assert reader.u64() == 42
        assert reader.u128() == 2**100
        assert reader.boolean() is True
        assert reader.remaining == 0

    def test_truncated_u64(self):
        """Fewer than 8 bytes left raises TruncatedData."""
        reader = InstructionReader(bytes(5), "test")
        with pytest.raises(TruncatedData) as exc_info:
            reader.u64()
        assert exc_info.value.needed == 8
        assert exc_info.value.remaining == 5

    def test_option_boolean(self):
        """Option<bool>: absent, None tag, and Some(true)."""
        assert InstructionReader(b"", "test").option_boolean() is None
        assert InstructionReader(bytes([0]), "test").option_boolean() is None
        assert InstructionReader(bytes([1, 1]), "test").option_boolean() is True
        assert InstructionReader(bytes([1, 0]), "test").option_boolean() is False


class TestCpmmDecoder:
    """Test CPMM instruction decoding."""

    def test_swap_base_input(self):
        """swap_base_input: amount_in + minimum_amount_out, exact input."""
        accounts = new_keys(13)
        data = anchor_data("swap_base_input", u64(11_988_000_000), u64(11_000_000_000))

        result = decode(RAYDIUM_CPMM, data, accounts)

        assert isinstance(result, SwapInstruction)
        assert result.variant == CpmmInstruction.SWAP_BASE_INPUT
        assert result.protocol == MarketType.CPMM
        assert result.amount == 11_988_000_000
        assert result.min_amount_out == 11_000_000_000
        assert result.max_amount_in is None
        assert result.direction == SwapDirection.EXACT_INPUT
        assert result.user == accounts[0]
        assert result.pool == accounts[3]
        assert result.user_input_account == accounts[4]
        assert result.user_output_account == accounts[5]
        assert result.input_vault == accounts[6]
        assert result.output_vault == accounts[7]
        assert result.input_mint == accounts[10]
        assert result.output_mint == accounts[11]

    def test_swap_base_output(self):
        """swap_base_output: max_amount_in + amount_out, exact output."""
        data = anchor_data("swap_base_output", u64(500), u64(300))

        result = decode(RAYDIUM_CPMM, data, new_keys(13))

        assert result.variant == CpmmInstruction.SWAP_BASE_OUTPUT
        assert result.amount == 300
        assert result.max_amount_in == 500
        assert result.direction == SwapDirection.EXACT_OUTPUT

    def test_swap_truncated(self):
        """Missing minimum_amount_out raises TruncatedData."""
        data = anchor_data("swap_base_input", u64(100))
        with pytest.raises(TruncatedData):
            decode(RAYDIUM_CPMM, data, new_keys(13))

    def test_swap_short_account_list(self):
        """Too few accounts raises BadAccountShape."""
        data = anchor_data("swap_base_input", u64(100), u64(90))
        with pytest.raises(BadAccountShape):
            decode(RAYDIUM_CPMM, data, new_keys(11))

    def test_deposit(self):
        """deposit maps to add liquidity with vaults and mints."""
        accounts = new_keys(13)
        data = anchor_data("deposit", u64(1000), u64(50), u64(60))

        result = decode(RAYDIUM_CPMM, data, accounts)

        assert isinstance(result, LiquidityInstruction)
        assert result.event_type == EventType.ADD_LIQUIDITY
        assert result.lp_amount == 1000
        assert result.amount_0_limit == 50
        assert result.amount_1_limit == 60
        assert result.pool == accounts[2]
        assert result.vault_0 == accounts[6]
        assert result.vault_1 == accounts[7]
        assert result.mint_0 == accounts[10]
        assert result.lp_mint == accounts[12]

    def test_withdraw(self):
        """withdraw maps to remove liquidity."""
        data = anchor_data("withdraw", u64(1000), u64(1), u64(2))
        result = decode(RAYDIUM_CPMM, data, new_keys(14))
        assert result.event_type == EventType.REMOVE_LIQUIDITY
        assert result.variant == CpmmInstruction.WITHDRAW

    def test_initialize(self):
        """initialize decodes the initial deposit and open time."""
        accounts = new_keys(20)
        data = anchor_data("initialize", u64(10), u64(20), u64(1_700_000_000))

        result = decode(RAYDIUM_CPMM, data, accounts)

        assert isinstance(result, PoolInitInstruction)
        assert result.creator == accounts[0]
        assert result.pool == accounts[3]
        assert result.mint_0 == accounts[4]
        assert result.mint_1 == accounts[5]
        assert result.init_amount_0 == 10
        assert result.init_amount_1 == 20
        assert result.open_time == 1_700_000_000


class TestCpmmEvents:
    """Test CPMM SwapEvent / LpChangeEvent self-CPI decoding."""

    def test_event_discriminator_is_sha256_prefix(self):
        """Event discriminator = sha256('event:<Name>')[:8], after the event tag."""
        assert anchor_event_discriminator("SwapEvent") == (
            hashlib.sha256(b"event:SwapEvent").digest()[:8]
        )

    def test_swap_event_with_fee(self):
        pool, mint_in, mint_out = new_keys(3)
        ix = cpmm_swap_event_ix(
            pool, 1_000, 950, input_mint=mint_in, output_mint=mint_out, trade_fee=3
        )
        registry = build_registry()

        assert registry.is_event(ix)
        log = registry.decode_event(ix)

        assert isinstance(log, SwapLog)
        assert log.pool == pool
        assert log.input_amount == 1_000
        assert log.output_amount == 950
        assert log.base_input is True
        assert log.input_mint == mint_in
        assert log.output_mint == mint_out
        assert log.trade_fee == 3
        assert log.program_id == RAYDIUM_CPMM

    def test_swap_event_without_mints(self):
        """Older SwapEvent layouts end after base_input."""
        log = build_registry().decode_event(cpmm_swap_event_ix(new_key(), 10, 9))
        assert log.input_mint is None
        assert log.trade_fee is None

    def test_lp_change_event(self):
        pool = new_key()
        ix = cpmm_lp_change_event_ix(pool, 49, 58, is_add=True, token_0_transfer_fee=1)

        log = build_registry().decode_event(ix)

        assert isinstance(log, LpChangeLog)
        assert log.is_add is True
        assert log.token_0_amount == 49
        assert log.transferred_amounts == (50, 58)
        assert log.lp_amount_before == 1_000

    def test_withdraw_lp_change_event(self):
        log = build_registry().decode_event(cpmm_lp_change_event_ix(new_key(), 5, 6, is_add=False))
        assert log.is_add is False
        assert log.transferred_amounts == (5, 6)

    def test_unknown_event(self):
        data = EVENT_IX_TAG + bytes(8)
        with pytest.raises(UnknownDiscriminator):
            build_registry().get(RAYDIUM_CPMM).decode_event(data)

    def test_truncated_event(self):
        data = EVENT_IX_TAG + anchor_event_discriminator("SwapEvent") + bytes(10)
        with pytest.raises(TruncatedData):
            build_registry().get(RAYDIUM_CPMM).decode_event(data)

    def test_event_is_not_an_instruction(self):
        """decode() rejects event data; only decode_event() reads it."""
        ix = cpmm_swap_event_ix(new_key(), 1, 1)
        with pytest.raises(UnknownDiscriminator):
            decode(RAYDIUM_CPMM, ix.data, new_keys(13))

    def test_amm_v4_has_no_events(self):
        registry = build_registry()
        ix = cpmm_swap_event_ix(new_key(), 1, 1)
        amm_ix = type(ix)(RAYDIUM_AMM_V4, ix.account_keys, ix.data)
        assert registry.is_event(amm_ix) is False
        assert registry.decode_event(amm_ix) is None


class TestClmmDecoder:
    """Test CLMM instruction decoding."""

    def test_swap(self):
        """swap carries sqrt_price_limit and is_base_input."""
        accounts = new_keys(10)
        data = clmm_swap_data(1000, 900, sqrt_price_limit=2**64, is_base_input=True)

        result = decode(RAYDIUM_CLMM, data, accounts)

        assert result.variant == ClmmInstruction.SWAP
        assert result.amount == 1000
        assert result.other_amount_threshold == 900
        assert result.sqrt_price_limit_x64 == 2**64
        assert result.direction == SwapDirection.EXACT_INPUT
        assert result.pool == accounts[2]
        assert result.input_vault == accounts[5]
        assert result.output_vault == accounts[6]
        assert result.input_mint is None

    def test_swap_v2_exact_output(self):
        """swap_v2 with is_base_input=false is exact output, mints from 11/12."""
        accounts = new_keys(13)
        data = clmm_swap_data(1000, 1100, is_base_input=False, name="swap_v2")

        result = decode(RAYDIUM_CLMM, data, accounts)

        assert result.variant == ClmmInstruction.SWAP_V2
        assert result.direction == SwapDirection.EXACT_OUTPUT
        assert result.max_amount_in == 1100
        assert result.input_mint == accounts[11]
        assert result.output_mint == accounts[12]

    def test_swap_missing_flag(self):
        """Missing is_base_input byte raises TruncatedData."""
        data = anchor_data("swap", u64(1), u64(2), u128(0))
        with pytest.raises(TruncatedData):
            decode(RAYDIUM_CLMM, data, new_keys(10))

    def test_increase_liquidity_v2_base_flag(self):
        """increase_liquidity_v2 reads the optional base_flag."""
        accounts = new_keys(15)
        data = anchor_data("increase_liquidity_v2", u128(5000), u64(10), u64(20), bytes([1, 1]))

        result = decode(RAYDIUM_CLMM, data, accounts)

        assert result.event_type == EventType.ADD_LIQUIDITY
        assert result.lp_amount == 5000
        assert result.base_flag is True
        assert result.user_token_0_account == accounts[7]
        assert result.vault_0 == accounts[9]
        assert result.mint_0 == accounts[13]

    def test_increase_liquidity_v2_without_base_flag(self):
        """base_flag absent from older clients reads as None."""
        data = anchor_data("increase_liquidity_v2", u128(5000), u64(10), u64(20))
        result = decode(RAYDIUM_CLMM, data, new_keys(15))
        assert result.base_flag is None

    def test_decrease_liquidity(self):
        """decrease_liquidity uses pool_state at index 3."""
        accounts = new_keys(12)
        data = anchor_data("decrease_liquidity", u128(100), u64(1), u64(2))

        result = decode(RAYDIUM_CLMM, data, accounts)

        assert result.event_type == EventType.REMOVE_LIQUIDITY
        assert result.pool == accounts[3]
        assert result.vault_0 == accounts[5]
        assert result.user_token_1_account == accounts[10]

    def test_create_pool(self):
        accounts = new_keys(13)
        data = anchor_data("create_pool", u128(2**64), u64(0))

        result = decode(RAYDIUM_CLMM, data, accounts)

        assert isinstance(result, PoolInitInstruction)
        assert result.sqrt_price_x64 == 2**64
        assert result.mint_0 == accounts[3]
        assert result.vault_1 == accounts[6]


class TestAmmV4Decoder:
    """Test AMM V4 instruction decoding."""

    def test_swap_base_in_18_accounts(self):
        """Legacy swap with target orders: order-book tagged."""
        accounts = new_keys(18)
        result = decode(RAYDIUM_AMM_V4, amm_v4_swap_data(9, 1000, 950), accounts)

        assert result.variant == AmmV4Instruction.SWAP_BASE_IN
        assert result.uses_order_book is True
        assert result.market == accounts[8]
        assert result.pool == accounts[1]
        assert result.pool_vaults == (accounts[5], accounts[6])
        assert result.user_input_account == accounts[15]
        assert result.user_output_account == accounts[16]
        assert result.user == accounts[17]
        assert result.input_vault is None

    def test_swap_base_in_17_accounts(self):
        """Without target orders every index after 3 shifts down by one."""
        accounts = new_keys(17)
        result = decode(RAYDIUM_AMM_V4, amm_v4_swap_data(9, 1000, 950), accounts)

        assert result.pool_vaults == (accounts[4], accounts[5])
        assert result.market == accounts[7]
        assert result.user_input_account == accounts[14]
        assert result.user == accounts[16]

    def test_swap_bad_account_count(self):
        """Legacy swap with 16 or 19 accounts raises BadAccountShape."""
        for count in (16, 19):
            with pytest.raises(BadAccountShape):
                decode(RAYDIUM_AMM_V4, amm_v4_swap_data(9, 1, 1), new_keys(count))

    def test_swap_base_out(self):
        """SwapBaseOut: max_amount_in then amount_out."""
        result = decode(RAYDIUM_AMM_V4, amm_v4_swap_data(11, 700, 500), new_keys(18))
        assert result.direction == SwapDirection.EXACT_OUTPUT
        assert result.amount == 500
        assert result.max_amount_in == 700

    def test_swap_v2_not_order_book(self):
        """SwapBaseInV2 only touches pool vaults."""
        accounts = new_keys(8)
        result = decode(RAYDIUM_AMM_V4, amm_v4_swap_data(16, 1000, 950), accounts)

        assert result.variant == AmmV4Instruction.SWAP_BASE_IN_V2
        assert result.uses_order_book is False
        assert result.market is None
        assert result.pool_vaults == (accounts[3], accounts[4])
        assert result.user == accounts[7]

    def test_swap_base_out_v2(self):
        result = decode(RAYDIUM_AMM_V4, amm_v4_swap_data(17, 700, 500), new_keys(8))
        assert result.variant == AmmV4Instruction.SWAP_BASE_OUT_V2
        assert result.direction == SwapDirection.EXACT_OUTPUT

    def test_deposit(self):
        """Deposit with and without other_amount_min."""
        accounts = new_keys(14)
        for data in (
            bytes([3]) + u64(100) + u64(200) + u64(0),
            bytes([3]) + u64(100) + u64(200) + u64(0) + u64(5),
        ):
            result = decode(RAYDIUM_AMM_V4, data, accounts)
            assert result.event_type == EventType.ADD_LIQUIDITY
            assert result.amount_0_limit == 100
            assert result.amount_1_limit == 200
            assert result.vault_0 == accounts[6]
            assert result.user == accounts[12]
            assert result.market == accounts[8]

    def test_withdraw(self):
        accounts = new_keys(19)
        result = decode(RAYDIUM_AMM_V4, bytes([4]) + u64(777), accounts)

        assert result.event_type == EventType.REMOVE_LIQUIDITY
        assert result.lp_amount == 777
        assert result.amount_0_limit == 0
        assert result.user_token_0_account == accounts[16]
        assert result.user == accounts[18]

    def test_withdraw_short_account_list(self):
        with pytest.raises(BadAccountShape):
            decode(RAYDIUM_AMM_V4, bytes([4]) + u64(777), new_keys(18))

    def test_initialize2(self):
        """Initialize2 reports coin as token 0 and pc as token 1."""
        accounts = new_keys(21)
        data = bytes([1, 254]) + u64(0) + u64(5_000) + u64(9_000)

        result = decode(RAYDIUM_AMM_V4, data, accounts)

        assert isinstance(result, PoolInitInstruction)
        assert result.pool == accounts[4]
        assert result.mint_0 == accounts[8]
        assert result.mint_1 == accounts[9]
        assert result.init_amount_0 == 9_000
        assert result.init_amount_1 == 5_000
        assert result.creator == accounts[17]

    def test_initialize(self):
        accounts = new_keys(17)
        result = decode(RAYDIUM_AMM_V4, bytes([0, 254]) + u64(1), accounts)
        assert result.variant == AmmV4Instruction.INITIALIZE
        assert result.pool == accounts[3]
        assert result.creator == accounts[16]


class TestRegistry:
    """Test the decoder registry."""

    def test_contains_all_programs(self):
        registry = build_registry()
        assert registry.program_ids == {RAYDIUM_CPMM, RAYDIUM_CLMM, RAYDIUM_AMM_V4}

    def test_registry_is_read_only(self):
        registry = build_registry()
        with pytest.raises(TypeError):
            registry._decoders["x"] = None
