"""
Shared helpers for Raydium instruction decoders.

Instruction arguments are little-endian (Borsh). Anchor programs (CPMM,
CLMM) prefix them with an 8-byte discriminator, AMM V4 with a single byte.

Anchor events emitted through self-CPI carry EVENT_IX_TAG followed by the
event discriminator sha256("event:<Name>")[:8].
"""

import hashlib
import struct
from typing import Optional, Sequence

from solders.pubkey import Pubkey

from raydiumtx.core.exceptions import BadAccountShape, TruncatedData

# Anchor event_cpi instruction tag
EVENT_IX_TAG = bytes.fromhex("e445a52e51cb9a1d")


def anchor_discriminator(name: str) -> bytes:
    """First 8 bytes of sha256("global:<name>")."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


def anchor_event_discriminator(name: str) -> bytes:
    """First 8 bytes of sha256("event:<name>")."""
    return hashlib.sha256(f"event:{name}".encode()).digest()[:8]


def is_event_instruction(data: bytes) -> bool:
    return bytes(data[:8]) == EVENT_IX_TAG


class InstructionReader:
    """Sequential reader over instruction argument bytes."""

    def __init__(self, data: bytes, variant: str, offset: int = 0):
        self.data = data
        self.variant = variant
        self.offset = offset

    @property
    def remaining(self) -> int:
        return len(self.data) - self.offset

    def _take(self, size: int) -> bytes:
        if self.remaining < size:
            raise TruncatedData(self.variant, size, self.remaining)
        chunk = self.data[self.offset:self.offset + size]
        self.offset += size
        return chunk

    def u8(self) -> int:
        return self._take(1)[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def u128(self) -> int:
        return int.from_bytes(self._take(16), "little")

    def boolean(self) -> bool:
        return self._take(1)[0] != 0

    def pubkey(self) -> str:
        return str(Pubkey.from_bytes(self._take(32)))

    def optional_u64(self) -> Optional[int]:
        """Trailing u64 that older clients omit."""
        if self.remaining < 8:
            return None
        return self.u64()

    def option_boolean(self) -> Optional[bool]:
        """Borsh Option<bool>. Absent trailing bytes read as None."""
        if self.remaining == 0:
            return None
        if self.u8() == 0:
            return None
        return self.boolean()


class AccountView:
    """
    Named access to an instruction's account list.

    Raises BadAccountShape up front if fewer than `required` accounts are
    present, so lookups afterwards cannot fail.
    """

    def __init__(self, account_keys: Sequence[str], variant: str, required: int):
        if len(account_keys) < required:
            raise BadAccountShape(variant, f"at least {required}", len(account_keys))
        self.keys = account_keys

    def __getitem__(self, idx: int) -> str:
        return self.keys[idx]

    def get(self, idx: int) -> Optional[str]:
        if idx < len(self.keys):
            return self.keys[idx]
        return None
