"""
Match token transfers to the legs of a decoded instruction.

Swaps: the input leg leaves the user's input account (or lands in the
input vault), the output leg lands in the user's output account (or leaves
the output vault). When roles cannot be matched, unused transfers are taken
in execution order and the result is flagged low_confidence.

Order-book AMM V4 swaps settle through market vaults as well as the pool
vaults, so they are matched on the user's accounts only.

Liquidity: leg 0/1 follow vault_0/vault_1, falling back to the user's token
accounts only when no transfer touches the vault. Rewards paid into the
user's accounts on a CLMM decrease therefore never compete with the vault
withdrawal. A side with no transfer at all is single-sided and reported as
zero.

When the program reports the executed amounts itself (CPMM SwapEvent and
LpChangeEvent), the report confirms positional legs that agree with it and
supplies the legs when the transfers cannot be matched.
"""

import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Union

from raydiumtx.core.exceptions import AmbiguousTransfers, InsufficientTransfers, ReconcileError
from raydiumtx.core.models import (
    LiquidityInstruction,
    LpChangeLog,
    ProgramLog,
    SwapInstruction,
    SwapLog,
    TransferRecord,
)

logger = logging.getLogger(__name__)

SWAP_MIN_TRANSFERS = 2
LIQUIDITY_MIN_TRANSFERS = 1


@dataclass(frozen=True)
class SwapLegs:
    input: TransferRecord
    output: TransferRecord
    low_confidence: bool = False


@dataclass(frozen=True)
class LiquidityLegs:
    token_0: Optional[TransferRecord]
    token_1: Optional[TransferRecord]
    low_confidence: bool = False


ReconciledLegs = Union[SwapLegs, LiquidityLegs]


def _find_leg(
    transfers: Sequence[TransferRecord],
    leg: str,
    predicate: Callable[[TransferRecord], bool],
) -> Optional[int]:
    """Index of the single transfer matching predicate, None if none match."""
    found = None
    for i, transfer in enumerate(transfers):
        if not predicate(transfer):
            continue
        if found is None:
            found = i
        elif transfers[found] != transfer:
            count = sum(1 for t in transfers if predicate(t))
            raise AmbiguousTransfers(leg, count)
    return found


def _unused(transfers: Sequence[TransferRecord], used: List[int]) -> List[int]:
    return [i for i in range(len(transfers)) if i not in used]


def _find_side(
    transfers: Sequence[TransferRecord],
    leg: str,
    is_add: bool,
    vault: str,
    user_account: str,
) -> Optional[int]:
    """Liquidity leg: the vault match wins, the user-account match is the fallback."""
    if is_add:
        idx = _find_leg(transfers, leg, lambda t: t.destination == vault)
        if idx is None:
            idx = _find_leg(transfers, leg, lambda t: t.source == user_account)
    else:
        idx = _find_leg(transfers, leg, lambda t: t.source == vault)
        if idx is None:
            idx = _find_leg(transfers, leg, lambda t: t.destination == user_account)
    return idx


def reconcile_swap(swap: SwapInstruction, transfers: Sequence[TransferRecord]) -> SwapLegs:
    if len(transfers) < SWAP_MIN_TRANSFERS:
        raise InsufficientTransfers(SWAP_MIN_TRANSFERS, len(transfers))

    if swap.uses_order_book:
        input_vaults, output_vaults = (), ()
    else:
        input_vaults, output_vaults = swap.input_vaults, swap.output_vaults

    input_idx = _find_leg(
        transfers,
        "input",
        lambda t: t.source == swap.user_input_account or t.destination in input_vaults,
    )
    output_idx = _find_leg(
        transfers,
        "output",
        lambda t: t.destination == swap.user_output_account or t.source in output_vaults,
    )

    if input_idx is not None and input_idx == output_idx:
        raise AmbiguousTransfers("input/output", 1, "one transfer matches both legs")

    low_confidence = False
    if input_idx is None or output_idx is None:
        low_confidence = True
        used = [i for i in (input_idx, output_idx) if i is not None]
        remaining = _unused(transfers, used)
        if input_idx is None:
            input_idx = remaining.pop(0)
        if output_idx is None:
            output_idx = remaining.pop(0)
        logger.debug(
            f"[RECONCILE] Role match inconclusive, positional fallback "
            f"input=#{input_idx} output=#{output_idx}"
        )

    return SwapLegs(
        input=transfers[input_idx],
        output=transfers[output_idx],
        low_confidence=low_confidence,
    )


def reconcile_liquidity(
    liquidity: LiquidityInstruction,
    transfers: Sequence[TransferRecord],
) -> LiquidityLegs:
    if len(transfers) < LIQUIDITY_MIN_TRANSFERS:
        raise InsufficientTransfers(LIQUIDITY_MIN_TRANSFERS, len(transfers))

    idx_0 = _find_side(
        transfers, "token_0", liquidity.is_add,
        liquidity.vault_0, liquidity.user_token_0_account,
    )
    idx_1 = _find_side(
        transfers, "token_1", liquidity.is_add,
        liquidity.vault_1, liquidity.user_token_1_account,
    )

    if idx_0 is not None and idx_0 == idx_1:
        raise AmbiguousTransfers("token_0/token_1", 1, "one transfer matches both legs")

    low_confidence = False
    if idx_0 is None or idx_1 is None:
        used = [i for i in (idx_0, idx_1) if i is not None]
        remaining = _unused(transfers, used)
        if idx_0 is None and remaining:
            idx_0 = remaining.pop(0)
            low_confidence = True
        if idx_1 is None and remaining:
            idx_1 = remaining.pop(0)
            low_confidence = True

    return LiquidityLegs(
        token_0=transfers[idx_0] if idx_0 is not None else None,
        token_1=transfers[idx_1] if idx_1 is not None else None,
        low_confidence=low_confidence,
    )


def log_matches(decoded, log: ProgramLog) -> bool:
    """True if the reported log belongs to the decoded instruction."""
    if log.pool != decoded.pool or log.protocol != decoded.protocol:
        return False
    if isinstance(decoded, SwapInstruction):
        return isinstance(log, SwapLog)
    if isinstance(decoded, LiquidityInstruction):
        return isinstance(log, LpChangeLog) and log.is_add == decoded.is_add
    return False


def swap_legs_from_log(swap: SwapInstruction, log: SwapLog) -> SwapLegs:
    """Legs built from the amounts the program reported."""
    return SwapLegs(
        input=TransferRecord(
            source=swap.user_input_account,
            destination=swap.input_vault or "",
            raw_amount=log.input_amount,
            program_id=log.program_id,
            mint_hint=log.input_mint,
        ),
        output=TransferRecord(
            source=swap.output_vault or "",
            destination=swap.user_output_account,
            raw_amount=log.output_amount,
            program_id=log.program_id,
            mint_hint=log.output_mint,
        ),
    )


def liquidity_legs_from_log(liquidity: LiquidityInstruction, log: LpChangeLog) -> LiquidityLegs:
    amount_0, amount_1 = log.transferred_amounts

    def leg(user_account, vault, amount):
        if liquidity.is_add:
            source, destination = user_account, vault
        else:
            source, destination = vault, user_account
        return TransferRecord(source, destination, amount, log.program_id)

    return LiquidityLegs(
        token_0=leg(liquidity.user_token_0_account, liquidity.vault_0, amount_0),
        token_1=leg(liquidity.user_token_1_account, liquidity.vault_1, amount_1),
    )


def _leg_amount(transfer: Optional[TransferRecord]) -> int:
    return transfer.raw_amount if transfer is not None else 0


def reconcile_with_log(
    decoded,
    transfers: Sequence[TransferRecord],
    log: ProgramLog,
) -> ReconciledLegs:
    """
    Reconcile against the transfers, checked against the program's own report.

    Role-matched legs stand as they are. Positional legs that agree with the
    log are no longer low confidence. If the transfers cannot be reconciled
    at all, the log supplies the legs.
    """
    if isinstance(decoded, SwapInstruction):
        reported = (log.input_amount, log.output_amount)
        from_log = swap_legs_from_log
    else:
        reported = log.transferred_amounts
        from_log = liquidity_legs_from_log

    try:
        legs = reconcile(decoded, transfers)
    except ReconcileError as e:
        logger.debug(
            f"[RECONCILE] {decoded.protocol.label} {decoded.variant.value}: "
            f"{e}, using reported amounts"
        )
        return from_log(decoded, log)

    if not legs.low_confidence:
        return legs

    if isinstance(legs, SwapLegs):
        moved = (legs.input.raw_amount, legs.output.raw_amount)
    else:
        moved = (_leg_amount(legs.token_0), _leg_amount(legs.token_1))

    if moved == reported:
        return replace(legs, low_confidence=False)
    logger.debug(
        f"[RECONCILE] Positional legs {moved} disagree with reported {reported}, "
        f"using reported amounts"
    )
    return from_log(decoded, log)


def reconcile(decoded, transfers: Sequence[TransferRecord]) -> ReconciledLegs:
    """Dispatch on the decoded instruction type."""
    if isinstance(decoded, SwapInstruction):
        return reconcile_swap(decoded, transfers)
    if isinstance(decoded, LiquidityInstruction):
        return reconcile_liquidity(decoded, transfers)
    raise TypeError(f"{type(decoded).__name__} has no transfer legs")
