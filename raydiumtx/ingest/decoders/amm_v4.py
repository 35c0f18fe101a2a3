"""
Raydium AMM V4 instruction decoder.

AMM V4 is not an Anchor program: the discriminator is the first data byte.

Legacy swaps (9, 11), deposit, withdraw and initialize reference an
OpenBook/Serum market and are tagged uses_order_book. The V2 swaps (16, 17)
only touch the pool vaults. Swap accounts never say which vault receives
the input, so the pool's two vaults are reported together.
"""

import logging
from typing import Sequence

from raydiumtx.core.exceptions import BadAccountShape, UnknownDiscriminator
from raydiumtx.core.models import (
    AmmV4Instruction,
    DecodedInstruction,
    EventType,
    LiquidityInstruction,
    MarketType,
    PoolInitInstruction,
    SwapInstruction,
)
from raydiumtx.ingest.decoders.base import AccountView, InstructionReader

logger = logging.getLogger(__name__)

# Raydium AMM V4 Program ID
RAYDIUM_AMM_V4 = "675kPX9MHTjS2zt1qfr1NYHuzeLXfQM9H24wFSUt1Mp8"

DISCRIMINATORS = {
    0: AmmV4Instruction.INITIALIZE,
    1: AmmV4Instruction.INITIALIZE2,
    3: AmmV4Instruction.DEPOSIT,
    4: AmmV4Instruction.WITHDRAW,
    9: AmmV4Instruction.SWAP_BASE_IN,
    11: AmmV4Instruction.SWAP_BASE_OUT,
    16: AmmV4Instruction.SWAP_BASE_IN_V2,
    17: AmmV4Instruction.SWAP_BASE_OUT_V2,
}

# Legacy swaps come with or without the amm_target_orders account
LEGACY_SWAP_ACCOUNTS = 18
LEGACY_SWAP_ACCOUNTS_NO_TARGET = 17
SWAP_V2_ACCOUNTS = 8
DEPOSIT_ACCOUNTS = 13
WITHDRAW_ACCOUNTS = 19
INITIALIZE_ACCOUNTS = 17
INITIALIZE2_ACCOUNTS = 18

_BASE_IN = (AmmV4Instruction.SWAP_BASE_IN, AmmV4Instruction.SWAP_BASE_IN_V2)
_LEGACY_SWAPS = (AmmV4Instruction.SWAP_BASE_IN, AmmV4Instruction.SWAP_BASE_OUT)
_V2_SWAPS = (AmmV4Instruction.SWAP_BASE_IN_V2, AmmV4Instruction.SWAP_BASE_OUT_V2)


class AmmV4Decoder:
    """Decoder for the AMM V4 program."""

    program_id = RAYDIUM_AMM_V4
    protocol = MarketType.AMM_V4

    def variant_of(self, data: bytes) -> AmmV4Instruction:
        variant = DISCRIMINATORS.get(data[0]) if data else None
        if variant is None:
            raise UnknownDiscriminator(self.protocol, self.program_id, bytes(data[:1]))
        return variant

    def decode(self, data: bytes, account_keys: Sequence[str]) -> DecodedInstruction:
        variant = self.variant_of(data)
        reader = InstructionReader(data, f"amm_v4.{variant.value}", offset=1)

        if variant in _LEGACY_SWAPS:
            decoded = self._decode_legacy_swap(variant, reader, account_keys)
        elif variant in _V2_SWAPS:
            decoded = self._decode_swap_v2(variant, reader, account_keys)
        elif variant == AmmV4Instruction.DEPOSIT:
            decoded = self._decode_deposit(variant, reader, account_keys)
        elif variant == AmmV4Instruction.WITHDRAW:
            decoded = self._decode_withdraw(variant, reader, account_keys)
        elif variant == AmmV4Instruction.INITIALIZE:
            decoded = self._decode_initialize(variant, reader, account_keys)
        else:
            decoded = self._decode_initialize2(variant, reader, account_keys)

        logger.debug(
            f"[DECODE] AMM-V4 {variant.value} pool={decoded.pool[:12]}... "
            f"order_book={decoded.uses_order_book}"
        )
        return decoded

    def _read_swap_args(self, variant, reader):
        """Returns (amount, other_amount_threshold, is_base_input)."""
        if variant in _BASE_IN:
            amount_in = reader.u64()
            minimum_amount_out = reader.u64()
            return amount_in, minimum_amount_out, True
        max_amount_in = reader.u64()
        amount_out = reader.u64()
        return amount_out, max_amount_in, False

    def _decode_legacy_swap(self, variant, reader, account_keys) -> SwapInstruction:
        amount, threshold, is_base_input = self._read_swap_args(variant, reader)

        count = len(account_keys)
        if count == LEGACY_SWAP_ACCOUNTS:
            shift = 0
        elif count == LEGACY_SWAP_ACCOUNTS_NO_TARGET:
            shift = -1
        else:
            raise BadAccountShape(
                reader.variant,
                f"{LEGACY_SWAP_ACCOUNTS_NO_TARGET} or {LEGACY_SWAP_ACCOUNTS}",
                count,
            )

        def get_account(idx: int) -> str:
            # Indices past amm_open_orders (3) move down when target orders is absent
            return account_keys[idx + shift if idx > 3 else idx]

        pool_coin = get_account(5)
        pool_pc = get_account(6)
        return SwapInstruction(
            protocol=self.protocol,
            variant=variant,
            pool=get_account(1),
            user=get_account(17),
            user_input_account=get_account(15),
            user_output_account=get_account(16),
            amount=amount,
            other_amount_threshold=threshold,
            is_base_input=is_base_input,
            pool_vaults=(pool_coin, pool_pc),
            market=get_account(8),
            uses_order_book=True,
        )

    def _decode_swap_v2(self, variant, reader, account_keys) -> SwapInstruction:
        amount, threshold, is_base_input = self._read_swap_args(variant, reader)

        accounts = AccountView(account_keys, reader.variant, SWAP_V2_ACCOUNTS)
        return SwapInstruction(
            protocol=self.protocol,
            variant=variant,
            pool=accounts[1],
            user=accounts[7],
            user_input_account=accounts[5],
            user_output_account=accounts[6],
            amount=amount,
            other_amount_threshold=threshold,
            is_base_input=is_base_input,
            pool_vaults=(accounts[3], accounts[4]),
        )

    def _decode_deposit(self, variant, reader, account_keys) -> LiquidityInstruction:
        max_coin_amount = reader.u64()
        max_pc_amount = reader.u64()
        reader.u64()  # base_side
        reader.optional_u64()  # other_amount_min

        accounts = AccountView(account_keys, reader.variant, DEPOSIT_ACCOUNTS)
        return LiquidityInstruction(
            protocol=self.protocol,
            variant=variant,
            event_type=EventType.ADD_LIQUIDITY,
            pool=accounts[1],
            user=accounts[12],
            user_token_0_account=accounts[9],
            user_token_1_account=accounts[10],
            vault_0=accounts[6],
            vault_1=accounts[7],
            amount_0_limit=max_coin_amount,
            amount_1_limit=max_pc_amount,
            lp_mint=accounts[5],
            market=accounts[8],
            uses_order_book=True,
        )

    def _decode_withdraw(self, variant, reader, account_keys) -> LiquidityInstruction:
        amount = reader.u64()
        min_coin_amount = reader.optional_u64()
        min_pc_amount = reader.optional_u64()

        accounts = AccountView(account_keys, reader.variant, WITHDRAW_ACCOUNTS)
        return LiquidityInstruction(
            protocol=self.protocol,
            variant=variant,
            event_type=EventType.REMOVE_LIQUIDITY,
            pool=accounts[1],
            user=accounts[18],
            user_token_0_account=accounts[16],
            user_token_1_account=accounts[17],
            vault_0=accounts[6],
            vault_1=accounts[7],
            amount_0_limit=min_coin_amount or 0,
            amount_1_limit=min_pc_amount or 0,
            lp_amount=amount,
            lp_mint=accounts[5],
            market=accounts[11],
            uses_order_book=True,
        )

    def _decode_initialize(self, variant, reader, account_keys) -> PoolInitInstruction:
        reader.u8()  # nonce
        open_time = reader.u64()

        accounts = AccountView(account_keys, reader.variant, INITIALIZE_ACCOUNTS)
        return PoolInitInstruction(
            protocol=self.protocol,
            variant=variant,
            pool=accounts[3],
            creator=accounts[16],
            mint_0=accounts[7],
            mint_1=accounts[8],
            vault_0=accounts[9],
            vault_1=accounts[10],
            open_time=open_time,
            lp_mint=accounts[6],
            market=accounts[15],
            uses_order_book=True,
        )

    def _decode_initialize2(self, variant, reader, account_keys) -> PoolInitInstruction:
        reader.u8()  # nonce
        open_time = reader.u64()
        init_pc_amount = reader.u64()
        init_coin_amount = reader.u64()

        accounts = AccountView(account_keys, reader.variant, INITIALIZE2_ACCOUNTS)
        return PoolInitInstruction(
            protocol=self.protocol,
            variant=variant,
            pool=accounts[4],
            creator=accounts[17],
            mint_0=accounts[8],
            mint_1=accounts[9],
            vault_0=accounts[10],
            vault_1=accounts[11],
            init_amount_0=init_coin_amount,
            init_amount_1=init_pc_amount,
            open_time=open_time,
            lp_mint=accounts[7],
            market=accounts[16],
            uses_order_book=True,
        )
