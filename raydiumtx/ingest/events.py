"""
Build events from decoded instructions and reconciled transfers.

Mints resolve in order: the instruction's own mint account, the
TransferChecked mint, the injected token-account -> mint mapping, else
unresolved (None).
"""

from types import MappingProxyType
from typing import Mapping, Optional

from raydiumtx.core.models import (
    Event,
    LiquidityEvent,
    LiquidityInstruction,
    PoolEvent,
    PoolInitInstruction,
    SwapEvent,
    SwapInstruction,
    SwapLog,
    TokenAmount,
    TransferRecord,
)
from raydiumtx.ingest.reconciler import LiquidityLegs, SwapLegs

_NO_MINTS: Mapping[str, str] = MappingProxyType({})


def resolve_mint(
    instruction_mint: Optional[str],
    transfer: Optional[TransferRecord],
    accounts: tuple,
    vault_mints: Mapping[str, str],
) -> Optional[str]:
    if instruction_mint:
        return instruction_mint
    if transfer is not None and transfer.mint_hint:
        return transfer.mint_hint

    candidates = list(accounts)
    if transfer is not None:
        candidates += [transfer.source, transfer.destination]
    for account in candidates:
        if account and account in vault_mints:
            return vault_mints[account]
    return None


def build_swap_event(
    swap: SwapInstruction,
    legs: SwapLegs,
    signature: str,
    slot: int,
    vault_mints: Mapping[str, str] = _NO_MINTS,
    log: Optional[SwapLog] = None,
) -> SwapEvent:
    """The fee is known only when the program reported it (CPMM SwapEvent)."""
    input_mint = resolve_mint(
        swap.input_mint, legs.input, (swap.user_input_account, swap.input_vault), vault_mints
    )
    output_mint = resolve_mint(
        swap.output_mint, legs.output, (swap.user_output_account, swap.output_vault), vault_mints
    )
    return SwapEvent(
        protocol=swap.protocol,
        signature=signature,
        slot=slot,
        pool=swap.pool,
        maker=swap.user,
        input_token=TokenAmount(input_mint, legs.input.raw_amount, swap.user_input_account),
        output_token=TokenAmount(output_mint, legs.output.raw_amount, swap.user_output_account),
        direction=swap.direction,
        low_confidence=legs.low_confidence,
        fee=log.trade_fee if log is not None else None,
    )


def _liquidity_side(
    mint: Optional[str],
    transfer: Optional[TransferRecord],
    user_account: str,
    vault: str,
    vault_mints: Mapping[str, str],
) -> TokenAmount:
    return TokenAmount(
        mint=resolve_mint(mint, transfer, (vault, user_account), vault_mints),
        amount_raw=transfer.raw_amount if transfer is not None else 0,
        account=user_account,
    )


def build_liquidity_event(
    liquidity: LiquidityInstruction,
    legs: LiquidityLegs,
    signature: str,
    slot: int,
    vault_mints: Mapping[str, str] = _NO_MINTS,
) -> LiquidityEvent:
    return LiquidityEvent(
        event_type=liquidity.event_type,
        protocol=liquidity.protocol,
        signature=signature,
        slot=slot,
        pool=liquidity.pool,
        maker=liquidity.user,
        token_0=_liquidity_side(
            liquidity.mint_0, legs.token_0,
            liquidity.user_token_0_account, liquidity.vault_0, vault_mints,
        ),
        token_1=_liquidity_side(
            liquidity.mint_1, legs.token_1,
            liquidity.user_token_1_account, liquidity.vault_1, vault_mints,
        ),
        lp_amount=liquidity.lp_amount,
        low_confidence=legs.low_confidence,
    )


def build_pool_event(
    pool: PoolInitInstruction,
    signature: str,
    slot: int,
    vault_mints: Mapping[str, str] = _NO_MINTS,
) -> PoolEvent:
    """Pool creation needs no transfers: amounts are the declared initial deposit."""
    return PoolEvent(
        protocol=pool.protocol,
        signature=signature,
        slot=slot,
        pool=pool.pool,
        maker=pool.creator,
        token_0=TokenAmount(
            resolve_mint(pool.mint_0, None, (pool.vault_0,), vault_mints),
            pool.init_amount_0,
            pool.vault_0,
        ),
        token_1=TokenAmount(
            resolve_mint(pool.mint_1, None, (pool.vault_1,), vault_mints),
            pool.init_amount_1,
            pool.vault_1,
        ),
        open_time=pool.open_time,
    )


def build_event(
    decoded,
    legs,
    signature: str,
    slot: int,
    vault_mints: Mapping[str, str] = _NO_MINTS,
    log=None,
) -> Event:
    """
    Build the event for any decoded instruction. legs is None for pool
    creation; log is the program's own report, if it emitted one.
    """
    if isinstance(decoded, SwapInstruction):
        swap_log = log if isinstance(log, SwapLog) else None
        return build_swap_event(decoded, legs, signature, slot, vault_mints, swap_log)
    if isinstance(decoded, LiquidityInstruction):
        return build_liquidity_event(decoded, legs, signature, slot, vault_mints)
    if isinstance(decoded, PoolInitInstruction):
        return build_pool_event(decoded, signature, slot, vault_mints)
    raise TypeError(f"Cannot build an event from {type(decoded).__name__}")
