"""
Raydium CPMM (constant product, Anchor) instruction decoder.

Decodes swap_base_input, swap_base_output, deposit, withdraw and
initialize. Swap account lists carry both vaults and both mints in
input/output order, so no lookup is needed to orient a swap.

CPMM also emits SwapEvent and LpChangeEvent through Anchor self-CPI with
the executed amounts. decode_event() reads those; the pipeline uses them to
confirm or supply the legs of the instruction that emitted them.
"""

import logging
from typing import Sequence

from raydiumtx.core.exceptions import UnknownDiscriminator
from raydiumtx.core.models import (
    CpmmInstruction,
    DecodedInstruction,
    EventType,
    LiquidityInstruction,
    LpChangeLog,
    MarketType,
    PoolInitInstruction,
    ProgramLog,
    SwapInstruction,
    SwapLog,
)
from raydiumtx.ingest.decoders.base import (
    EVENT_IX_TAG,
    AccountView,
    InstructionReader,
    anchor_discriminator,
    anchor_event_discriminator,
)

logger = logging.getLogger(__name__)

# Raydium CPMM Program ID
RAYDIUM_CPMM = "CPMMoo8L3F4NbTegBCKVNunggL7H1ZpdTHKxQB5qKP1C"

DISCRIMINATORS = {anchor_discriminator(v.value): v for v in CpmmInstruction}

SWAP_EVENT = "SwapEvent"
LP_CHANGE_EVENT = "LpChangeEvent"
EVENT_DISCRIMINATORS = {
    anchor_event_discriminator(name): name for name in (SWAP_EVENT, LP_CHANGE_EVENT)
}

# LpChangeEvent.change_type
LP_CHANGE_DEPOSIT = 0

# Account table lengths
SWAP_ACCOUNTS = 13
DEPOSIT_ACCOUNTS = 13
WITHDRAW_ACCOUNTS = 14
INITIALIZE_ACCOUNTS = 20


class CpmmDecoder:
    """Decoder for the CPMM program."""

    program_id = RAYDIUM_CPMM
    protocol = MarketType.CPMM
    emits_events = True

    def variant_of(self, data: bytes) -> CpmmInstruction:
        variant = DISCRIMINATORS.get(bytes(data[:8]))
        if variant is None:
            raise UnknownDiscriminator(self.protocol, self.program_id, bytes(data[:8]))
        return variant

    def decode(self, data: bytes, account_keys: Sequence[str]) -> DecodedInstruction:
        variant = self.variant_of(data)
        reader = InstructionReader(data, f"cpmm.{variant.value}", offset=8)

        if variant in (CpmmInstruction.SWAP_BASE_INPUT, CpmmInstruction.SWAP_BASE_OUTPUT):
            decoded = self._decode_swap(variant, reader, account_keys)
        elif variant in (CpmmInstruction.DEPOSIT, CpmmInstruction.WITHDRAW):
            decoded = self._decode_liquidity(variant, reader, account_keys)
        else:
            decoded = self._decode_initialize(variant, reader, account_keys)

        logger.debug(f"[DECODE] CPMM {variant.value} pool={decoded.pool[:12]}...")
        return decoded

    def _decode_swap(self, variant, reader, account_keys) -> SwapInstruction:
        if variant == CpmmInstruction.SWAP_BASE_INPUT:
            amount_in = reader.u64()
            minimum_amount_out = reader.u64()
            amount, threshold, is_base_input = amount_in, minimum_amount_out, True
        else:
            max_amount_in = reader.u64()
            amount_out = reader.u64()
            amount, threshold, is_base_input = amount_out, max_amount_in, False

        accounts = AccountView(account_keys, reader.variant, SWAP_ACCOUNTS)
        return SwapInstruction(
            protocol=self.protocol,
            variant=variant,
            pool=accounts[3],
            user=accounts[0],
            user_input_account=accounts[4],
            user_output_account=accounts[5],
            amount=amount,
            other_amount_threshold=threshold,
            is_base_input=is_base_input,
            input_vault=accounts[6],
            output_vault=accounts[7],
            pool_vaults=(accounts[6], accounts[7]),
            input_mint=accounts[10],
            output_mint=accounts[11],
        )

    def _decode_liquidity(self, variant, reader, account_keys) -> LiquidityInstruction:
        lp_token_amount = reader.u64()
        amount_0_limit = reader.u64()
        amount_1_limit = reader.u64()

        if variant == CpmmInstruction.DEPOSIT:
            required, event_type = DEPOSIT_ACCOUNTS, EventType.ADD_LIQUIDITY
        else:
            required, event_type = WITHDRAW_ACCOUNTS, EventType.REMOVE_LIQUIDITY

        accounts = AccountView(account_keys, reader.variant, required)
        return LiquidityInstruction(
            protocol=self.protocol,
            variant=variant,
            event_type=event_type,
            pool=accounts[2],
            user=accounts[0],
            user_token_0_account=accounts[4],
            user_token_1_account=accounts[5],
            vault_0=accounts[6],
            vault_1=accounts[7],
            amount_0_limit=amount_0_limit,
            amount_1_limit=amount_1_limit,
            lp_amount=lp_token_amount,
            mint_0=accounts[10],
            mint_1=accounts[11],
            lp_mint=accounts[12],
        )

    def _decode_initialize(self, variant, reader, account_keys) -> PoolInitInstruction:
        init_amount_0 = reader.u64()
        init_amount_1 = reader.u64()
        open_time = reader.u64()

        accounts = AccountView(account_keys, reader.variant, INITIALIZE_ACCOUNTS)
        return PoolInitInstruction(
            protocol=self.protocol,
            variant=variant,
            pool=accounts[3],
            creator=accounts[0],
            mint_0=accounts[4],
            mint_1=accounts[5],
            vault_0=accounts[10],
            vault_1=accounts[11],
            init_amount_0=init_amount_0,
            init_amount_1=init_amount_1,
            open_time=open_time,
            lp_mint=accounts[6],
        )

    def decode_event(self, data: bytes) -> ProgramLog:
        """Decode an Anchor event instruction (EVENT_IX_TAG + event discriminator)."""
        tag = bytes(data[8:16])
        name = EVENT_DISCRIMINATORS.get(tag) if bytes(data[:8]) == EVENT_IX_TAG else None
        if name is None:
            raise UnknownDiscriminator(self.protocol, self.program_id, bytes(data[:16]))

        reader = InstructionReader(data, f"cpmm.{name}", offset=16)
        if name == SWAP_EVENT:
            log = self._decode_swap_event(reader)
        else:
            log = self._decode_lp_change_event(reader)

        logger.debug(f"[DECODE] CPMM {name} pool={log.pool[:12]}...")
        return log

    def _decode_swap_event(self, reader) -> SwapLog:
        pool = reader.pubkey()
        reader.u64()  # input_vault_before
        reader.u64()  # output_vault_before
        input_amount = reader.u64()
        output_amount = reader.u64()
        input_transfer_fee = reader.u64()
        output_transfer_fee = reader.u64()
        base_input = reader.boolean()

        input_mint = output_mint = trade_fee = creator_fee = None
        # Mints and fees were appended in later program versions
        if reader.remaining >= 32 + 32 + 8:
            input_mint = reader.pubkey()
            output_mint = reader.pubkey()
            trade_fee = reader.u64()
            creator_fee = reader.optional_u64()

        return SwapLog(
            protocol=self.protocol,
            program_id=self.program_id,
            pool=pool,
            input_amount=input_amount,
            output_amount=output_amount,
            base_input=base_input,
            input_transfer_fee=input_transfer_fee,
            output_transfer_fee=output_transfer_fee,
            input_mint=input_mint,
            output_mint=output_mint,
            trade_fee=trade_fee,
            creator_fee=creator_fee,
        )

    def _decode_lp_change_event(self, reader) -> LpChangeLog:
        pool = reader.pubkey()
        lp_amount_before = reader.u64()
        reader.u64()  # token_0_vault_before
        reader.u64()  # token_1_vault_before
        token_0_amount = reader.u64()
        token_1_amount = reader.u64()
        token_0_transfer_fee = reader.u64()
        token_1_transfer_fee = reader.u64()
        change_type = reader.u8()

        return LpChangeLog(
            protocol=self.protocol,
            program_id=self.program_id,
            pool=pool,
            token_0_amount=token_0_amount,
            token_1_amount=token_1_amount,
            is_add=change_type == LP_CHANGE_DEPOSIT,
            lp_amount_before=lp_amount_before,
            token_0_transfer_fee=token_0_transfer_fee,
            token_1_transfer_fee=token_1_transfer_fee,
        )
