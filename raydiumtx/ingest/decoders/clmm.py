"""
Raydium CLMM (concentrated liquidity, Anchor) instruction decoder.

Swaps carry an explicit is_base_input flag; the v2 variants additionally
list the input and output vault mints. Position changes map to
add/remove liquidity events with `liquidity` reported as lp_amount.
"""

import logging
from typing import Sequence

from raydiumtx.core.exceptions import UnknownDiscriminator
from raydiumtx.core.models import (
    ClmmInstruction,
    DecodedInstruction,
    EventType,
    LiquidityInstruction,
    MarketType,
    PoolInitInstruction,
    SwapInstruction,
)
from raydiumtx.ingest.decoders.base import (
    AccountView,
    InstructionReader,
    anchor_discriminator,
)

logger = logging.getLogger(__name__)

# Raydium CLMM Program ID
RAYDIUM_CLMM = "CAMMCzo5YL8w4VFF8KVHrK22GGUsp5VTaW7grrKgrWqK"

DISCRIMINATORS = {anchor_discriminator(v.value): v for v in ClmmInstruction}

# Account table lengths
ACCOUNT_COUNTS = {
    ClmmInstruction.SWAP: 10,
    ClmmInstruction.SWAP_V2: 13,
    ClmmInstruction.INCREASE_LIQUIDITY: 12,
    ClmmInstruction.INCREASE_LIQUIDITY_V2: 15,
    ClmmInstruction.DECREASE_LIQUIDITY: 12,
    ClmmInstruction.DECREASE_LIQUIDITY_V2: 16,
    ClmmInstruction.CREATE_POOL: 13,
}

_SWAPS = (ClmmInstruction.SWAP, ClmmInstruction.SWAP_V2)
_INCREASES = (ClmmInstruction.INCREASE_LIQUIDITY, ClmmInstruction.INCREASE_LIQUIDITY_V2)
_DECREASES = (ClmmInstruction.DECREASE_LIQUIDITY, ClmmInstruction.DECREASE_LIQUIDITY_V2)


class ClmmDecoder:
    """Decoder for the CLMM program."""

    program_id = RAYDIUM_CLMM
    protocol = MarketType.CLMM
    emits_events = True

    def variant_of(self, data: bytes) -> ClmmInstruction:
        variant = DISCRIMINATORS.get(bytes(data[:8]))
        if variant is None:
            raise UnknownDiscriminator(self.protocol, self.program_id, bytes(data[:8]))
        return variant

    def decode(self, data: bytes, account_keys: Sequence[str]) -> DecodedInstruction:
        variant = self.variant_of(data)
        reader = InstructionReader(data, f"clmm.{variant.value}", offset=8)

        if variant in _SWAPS:
            decoded = self._decode_swap(variant, reader, account_keys)
        elif variant in _INCREASES:
            decoded = self._decode_increase(variant, reader, account_keys)
        elif variant in _DECREASES:
            decoded = self._decode_decrease(variant, reader, account_keys)
        else:
            decoded = self._decode_create_pool(variant, reader, account_keys)

        logger.debug(f"[DECODE] CLMM {variant.value} pool={decoded.pool[:12]}...")
        return decoded

    def _decode_swap(self, variant, reader, account_keys) -> SwapInstruction:
        amount = reader.u64()
        other_amount_threshold = reader.u64()
        sqrt_price_limit_x64 = reader.u128()
        is_base_input = reader.boolean()

        accounts = AccountView(account_keys, reader.variant, ACCOUNT_COUNTS[variant])
        is_v2 = variant == ClmmInstruction.SWAP_V2
        return SwapInstruction(
            protocol=self.protocol,
            variant=variant,
            pool=accounts[2],
            user=accounts[0],
            user_input_account=accounts[3],
            user_output_account=accounts[4],
            amount=amount,
            other_amount_threshold=other_amount_threshold,
            is_base_input=is_base_input,
            input_vault=accounts[5],
            output_vault=accounts[6],
            pool_vaults=(accounts[5], accounts[6]),
            input_mint=accounts[11] if is_v2 else None,
            output_mint=accounts[12] if is_v2 else None,
            sqrt_price_limit_x64=sqrt_price_limit_x64,
        )

    def _decode_increase(self, variant, reader, account_keys) -> LiquidityInstruction:
        liquidity = reader.u128()
        amount_0_max = reader.u64()
        amount_1_max = reader.u64()
        is_v2 = variant == ClmmInstruction.INCREASE_LIQUIDITY_V2
        base_flag = reader.option_boolean() if is_v2 else None

        accounts = AccountView(account_keys, reader.variant, ACCOUNT_COUNTS[variant])
        return LiquidityInstruction(
            protocol=self.protocol,
            variant=variant,
            event_type=EventType.ADD_LIQUIDITY,
            pool=accounts[2],
            user=accounts[0],
            user_token_0_account=accounts[7],
            user_token_1_account=accounts[8],
            vault_0=accounts[9],
            vault_1=accounts[10],
            amount_0_limit=amount_0_max,
            amount_1_limit=amount_1_max,
            lp_amount=liquidity,
            mint_0=accounts[13] if is_v2 else None,
            mint_1=accounts[14] if is_v2 else None,
            base_flag=base_flag,
        )

    def _decode_decrease(self, variant, reader, account_keys) -> LiquidityInstruction:
        liquidity = reader.u128()
        amount_0_min = reader.u64()
        amount_1_min = reader.u64()

        accounts = AccountView(account_keys, reader.variant, ACCOUNT_COUNTS[variant])
        is_v2 = variant == ClmmInstruction.DECREASE_LIQUIDITY_V2
        return LiquidityInstruction(
            protocol=self.protocol,
            variant=variant,
            event_type=EventType.REMOVE_LIQUIDITY,
            pool=accounts[3],
            user=accounts[0],
            user_token_0_account=accounts[9],
            user_token_1_account=accounts[10],
            vault_0=accounts[5],
            vault_1=accounts[6],
            amount_0_limit=amount_0_min,
            amount_1_limit=amount_1_min,
            lp_amount=liquidity,
            mint_0=accounts[14] if is_v2 else None,
            mint_1=accounts[15] if is_v2 else None,
        )

    def _decode_create_pool(self, variant, reader, account_keys) -> PoolInitInstruction:
        sqrt_price_x64 = reader.u128()
        open_time = reader.u64()

        accounts = AccountView(account_keys, reader.variant, ACCOUNT_COUNTS[variant])
        return PoolInitInstruction(
            protocol=self.protocol,
            variant=variant,
            pool=accounts[2],
            creator=accounts[0],
            mint_0=accounts[3],
            mint_1=accounts[4],
            vault_0=accounts[5],
            vault_1=accounts[6],
            open_time=open_time,
            sqrt_price_x64=sqrt_price_x64,
        )
