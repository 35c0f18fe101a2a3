"""
Exception hierarchy for RaydiumTX.

Decode and reconcile errors are expected in a live stream and are counted
by the pipeline. Format errors signal a programming mistake and propagate.
"""

from typing import Optional


class RaydiumTxError(Exception):
    """Base class for all RaydiumTX errors."""


class DecodeError(RaydiumTxError):
    """An instruction could not be decoded."""


class UnsupportedProgram(DecodeError):
    """No decoder is registered for the program id."""

    def __init__(self, program_id: str):
        self.program_id = program_id
        super().__init__(f"No decoder registered for program {program_id}")


class UnknownDiscriminator(DecodeError):
    """
    The instruction data does not start with a known discriminator.

    Carries the protocol, program id and raw discriminator bytes so callers
    can still report which instruction was seen.
    """

    def __init__(self, protocol, program_id: str, discriminator: bytes):
        self.protocol = protocol
        self.program_id = program_id
        self.discriminator = discriminator
        shown = discriminator.hex() if discriminator else "<empty>"
        super().__init__(f"Unknown {protocol.label} discriminator {shown}")

    @property
    def unrecognized(self):
        from raydiumtx.core.models import Unrecognized

        return Unrecognized(
            protocol=self.protocol,
            program_id=self.program_id,
            discriminator=self.discriminator,
        )


class TruncatedData(DecodeError):
    """Fewer argument bytes remain than the variant needs."""

    def __init__(self, variant: str, needed: int, remaining: int):
        self.variant = variant
        self.needed = needed
        self.remaining = remaining
        super().__init__(
            f"{variant}: needed {needed} more bytes, only {remaining} remain"
        )


class BadAccountShape(DecodeError):
    """The account list does not fit the variant's account table."""

    def __init__(self, variant: str, expected: str, actual: int):
        self.variant = variant
        self.expected = expected
        self.actual = actual
        super().__init__(f"{variant}: expected {expected} accounts, got {actual}")


class ReconcileError(RaydiumTxError):
    """Transfers could not be mapped onto the instruction's legs."""


class InsufficientTransfers(ReconcileError):
    def __init__(self, required: int, found: int):
        self.required = required
        self.found = found
        super().__init__(f"Need at least {required} transfers, found {found}")


class AmbiguousTransfers(ReconcileError):
    def __init__(self, leg: str, candidates: int, detail: Optional[str] = None):
        self.leg = leg
        self.candidates = candidates
        message = f"{candidates} transfers match the {leg} leg"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class FormatError(RaydiumTxError):
    """An event could not be rendered."""


class StreamRecordError(RaydiumTxError):
    """A stream record is malformed."""
