"""
Record processing pipeline.

stream record -> decoder (by program id) -> transfer extraction ->
reconciliation -> event -> filter.

Anchor event self-CPIs are not invocations of their own: they stay inside
the scope of the instruction that emitted them, which uses the reported
amounts to confirm or supply its legs.

process() is synchronous and has no side effects, so records can be
processed on a thread pool. run() yields outcomes in arrival order and
stops accepting records once the stop event is set.
"""

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from raydiumtx.core.exceptions import DecodeError, ReconcileError, UnknownDiscriminator
from raydiumtx.core.models import (
    Event,
    PoolInitInstruction,
    ProgramLog,
    RawInstruction,
    StreamRecord,
    Unrecognized,
)
from raydiumtx.filters.matcher import FilterConfig, matches
from raydiumtx.ingest.decoders import DecoderRegistry, build_registry
from raydiumtx.ingest.events import build_event
from raydiumtx.ingest.reconciler import log_matches, reconcile, reconcile_with_log
from raydiumtx.ingest.transfers import extract_transfers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordOutcome:
    """Result of processing one record. Callers aggregate the counters."""
    signature: str
    events: Tuple[Event, ...] = ()
    filtered: int = 0
    decode_errors: int = 0
    reconcile_errors: int = 0
    unrecognized: Tuple[Unrecognized, ...] = ()


def cpi_scope(
    inner: Sequence[RawInstruction],
    position: int,
    registry: DecoderRegistry,
) -> List[RawInstruction]:
    """
    Instructions executed by the nested invocation at inner[position].

    With stack heights, that is every following instruction deeper than the
    invocation. Without them, everything up to the next Raydium invocation.
    Event self-CPIs never end a scope.
    """
    parent = inner[position]
    scope = []
    for ix in inner[position + 1:]:
        if parent.stack_height is not None and ix.stack_height is not None:
            if ix.stack_height <= parent.stack_height:
                break
        elif ix.program_id in registry and not registry.is_event(ix):
            break
        scope.append(ix)
    return scope


class SwapPipeline:
    """Turns stream records into filtered events."""

    def __init__(
        self,
        registry: Optional[DecoderRegistry] = None,
        filter_config: Optional[FilterConfig] = None,
        vault_mints: Optional[Mapping[str, str]] = None,
    ):
        self.registry = registry or build_registry()
        self.filter_config = filter_config or FilterConfig()
        self.vault_mints = MappingProxyType(dict(vault_mints or {}))

    def invocations(self, record: StreamRecord) -> Iterator[Tuple[RawInstruction, Sequence[RawInstruction]]]:
        """Every Raydium invocation in the record with its inner instructions."""
        for index, ix in enumerate(record.top_level_instructions):
            inner = record.inner_for(index)
            if self._is_invocation(ix):
                yield ix, inner
            for position, nested in enumerate(inner):
                if self._is_invocation(nested):
                    yield nested, cpi_scope(inner, position, self.registry)

    def _is_invocation(self, ix: RawInstruction) -> bool:
        return ix.program_id in self.registry and not self.registry.is_event(ix)

    def program_log(self, decoded, scope: Sequence[RawInstruction]) -> Optional[ProgramLog]:
        """The event the decoded instruction emitted within its scope, if any."""
        for ix in scope:
            if not self.registry.is_event(ix):
                continue
            try:
                log = self.registry.decode_event(ix)
            except DecodeError as e:
                logger.debug(f"[DECODE] Event skipped: {e}")
                continue
            if log is not None and log_matches(decoded, log):
                return log
        return None

    def process(self, record: StreamRecord) -> RecordOutcome:
        sig_short = record.signature[:12]
        events = []
        unrecognized = []
        filtered = decode_errors = reconcile_errors = 0

        for ix, scope in self.invocations(record):
            try:
                decoded = self.registry.decode_instruction(ix)
            except UnknownDiscriminator as e:
                decode_errors += 1
                unrecognized.append(e.unrecognized)
                logger.debug(f"[DECODE] {sig_short}... {e}")
                continue
            except DecodeError as e:
                decode_errors += 1
                logger.debug(f"[DECODE] {sig_short}... skipped: {e}")
                continue

            log = None
            if isinstance(decoded, PoolInitInstruction):
                legs = None
            else:
                log = self.program_log(decoded, scope)
                transfers = extract_transfers(scope)
                try:
                    if log is not None:
                        legs = reconcile_with_log(decoded, transfers, log)
                    else:
                        legs = reconcile(decoded, transfers)
                except ReconcileError as e:
                    reconcile_errors += 1
                    logger.info(
                        f"[RECONCILE] {sig_short}... {decoded.protocol.label} "
                        f"{decoded.variant.value} dropped: {e}"
                    )
                    continue

            event = build_event(
                decoded, legs, record.signature, record.slot, self.vault_mints, log
            )

            if matches(event, self.filter_config):
                events.append(event)
            else:
                filtered += 1

        return RecordOutcome(
            signature=record.signature,
            events=tuple(events),
            filtered=filtered,
            decode_errors=decode_errors,
            reconcile_errors=reconcile_errors,
            unrecognized=tuple(unrecognized),
        )

    def run(
        self,
        records: Iterable[StreamRecord],
        workers: int = 1,
        stop_event: Optional[threading.Event] = None,
    ) -> Iterator[RecordOutcome]:
        """
        Process records, yielding outcomes in arrival order.

        Once stop_event is set no further records are taken from the input;
        records already accepted still complete.
        """
        stop_event = stop_event or threading.Event()

        if workers <= 1:
            for record in records:
                if stop_event.is_set():
                    break
                yield self.process(record)
            return

        window = workers * 4
        pending: deque = deque()
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pipeline") as executor:
            for record in records:
                if stop_event.is_set():
                    break
                pending.append(executor.submit(self.process, record))
                if len(pending) >= window:
                    yield pending.popleft().result()

            while pending:
                yield pending.popleft().result()
