"""
SPL token transfer extraction.

Reads Transfer and TransferChecked instructions (SPL Token and Token-2022)
out of the inner instructions executed by a Raydium instruction. Any other
instruction, including malformed token instructions, is ignored.
"""

import logging
import struct
from typing import Iterable, List, Optional

from raydiumtx.core.models import RawInstruction, TransferRecord

logger = logging.getLogger(__name__)

# Token program IDs
SPL_TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
TOKEN_2022_PROGRAM = "TokenzQdBNbLqP5VEhdkAS6EPFLC1PHnBqCXEpPxuEb"

TOKEN_PROGRAMS = frozenset({SPL_TOKEN_PROGRAM, TOKEN_2022_PROGRAM})

# Token instruction discriminators
TRANSFER = 3
TRANSFER_CHECKED = 12


def parse_transfer(ix: RawInstruction) -> Optional[TransferRecord]:
    """Parse one instruction as a token transfer, None if it is not one."""
    if ix.program_id not in TOKEN_PROGRAMS or not ix.data:
        return None

    data = ix.data
    accounts = ix.account_keys
    discriminator = data[0]

    # Transfer: [3, amount u64]
    # Accounts: [source, destination, authority]
    if discriminator == TRANSFER:
        if len(data) < 9 or len(accounts) < 2:
            return None
        amount = struct.unpack_from("<Q", data, 1)[0]
        return TransferRecord(
            source=accounts[0],
            destination=accounts[1],
            raw_amount=amount,
            program_id=ix.program_id,
            authority=accounts[2] if len(accounts) > 2 else None,
        )

    # TransferChecked: [12, amount u64, decimals u8]
    # Accounts: [source, mint, destination, authority]
    if discriminator == TRANSFER_CHECKED:
        if len(data) < 10 or len(accounts) < 3:
            return None
        amount = struct.unpack_from("<Q", data, 1)[0]
        return TransferRecord(
            source=accounts[0],
            destination=accounts[2],
            raw_amount=amount,
            program_id=ix.program_id,
            authority=accounts[3] if len(accounts) > 3 else None,
            mint_hint=accounts[1],
            decimals=data[9],
        )

    return None


def extract_transfers(inner_instructions: Iterable[RawInstruction]) -> List[TransferRecord]:
    """Every transfer in the instruction list, in execution order."""
    transfers = []
    for ix in inner_instructions:
        transfer = parse_transfer(ix)
        if transfer is not None:
            transfers.append(transfer)

    for i, t in enumerate(transfers):
        logger.debug(
            f"[TRANSFER] [{i}] {t.source[:8]}... -> {t.destination[:8]}... amount={t.raw_amount}"
        )
    return transfers
