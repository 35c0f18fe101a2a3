"""
Raydium instruction decoders.

The registry maps program id -> decoder. It is built once and is read-only
afterwards, so it can be shared freely between worker threads.

Anchor programs also invoke themselves to emit events. Those invocations
are not instructions: is_event() tells them apart and decode_event() reads
the ones a decoder understands.
"""

from types import MappingProxyType
from typing import Iterable, Optional, Sequence

from raydiumtx.core.exceptions import UnsupportedProgram
from raydiumtx.core.models import DecodedInstruction, ProgramLog, RawInstruction
from raydiumtx.ingest.decoders.amm_v4 import RAYDIUM_AMM_V4, AmmV4Decoder
from raydiumtx.ingest.decoders.base import is_event_instruction
from raydiumtx.ingest.decoders.clmm import RAYDIUM_CLMM, ClmmDecoder
from raydiumtx.ingest.decoders.cpmm import RAYDIUM_CPMM, CpmmDecoder


class DecoderRegistry:
    """Immutable program id -> decoder lookup."""

    def __init__(self, decoders: Iterable):
        self._decoders = MappingProxyType({d.program_id: d for d in decoders})

    @property
    def program_ids(self):
        return frozenset(self._decoders)

    def __contains__(self, program_id: str) -> bool:
        return program_id in self._decoders

    def get(self, program_id: str) -> Optional[object]:
        return self._decoders.get(program_id)

    def decode(
        self,
        program_id: str,
        data: bytes,
        account_keys: Sequence[str],
    ) -> DecodedInstruction:
        decoder = self._decoders.get(program_id)
        if decoder is None:
            raise UnsupportedProgram(program_id)
        return decoder.decode(data, account_keys)

    def decode_instruction(self, instruction: RawInstruction) -> DecodedInstruction:
        return self.decode(instruction.program_id, instruction.data, instruction.account_keys)

    def is_event(self, instruction: RawInstruction) -> bool:
        """True for an Anchor event self-CPI of a registered program."""
        decoder = self._decoders.get(instruction.program_id)
        if decoder is None or not getattr(decoder, "emits_events", False):
            return False
        return is_event_instruction(instruction.data)

    def decode_event(self, instruction: RawInstruction) -> Optional[ProgramLog]:
        """
        Decode an event self-CPI.

        Returns None when the program's events are not decoded. Raises
        DecodeError for an unknown or malformed event.
        """
        decoder = self._decoders.get(instruction.program_id)
        if decoder is None or not hasattr(decoder, "decode_event"):
            return None
        return decoder.decode_event(instruction.data)


def build_registry() -> DecoderRegistry:
    """Registry with the CPMM, CLMM and AMM V4 decoders."""
    return DecoderRegistry([CpmmDecoder(), ClmmDecoder(), AmmV4Decoder()])


_default_registry = build_registry()


def decode(program_id: str, data: bytes, account_keys: Sequence[str]) -> DecodedInstruction:
    """Decode one instruction with the default registry."""
    return _default_registry.decode(program_id, data, account_keys)


__all__ = [
    "DecoderRegistry",
    "build_registry",
    "decode",
    "CpmmDecoder",
    "ClmmDecoder",
    "AmmV4Decoder",
    "RAYDIUM_CPMM",
    "RAYDIUM_CLMM",
    "RAYDIUM_AMM_V4",
]
