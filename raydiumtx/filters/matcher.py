"""
Event filter.

A FilterConfig has three dimensions: markets, tokens and amms. An empty
dimension is unconstrained. When every dimension is empty all events pass;
otherwise an event passes if it satisfies ANY non-empty dimension.
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet

from raydiumtx.core.models import Event, MarketType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FilterConfig:
    markets: FrozenSet[MarketType] = field(default_factory=frozenset)
    tokens: FrozenSet[str] = field(default_factory=frozenset)
    amms: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not (self.markets or self.tokens or self.amms)


def matches(event: Event, config: FilterConfig) -> bool:
    """Return True if the event passes the filter."""
    if config.is_empty:
        return True

    if config.markets and event.protocol in config.markets:
        return True

    if config.tokens:
        for token in event.tokens():
            if token.mint and token.mint in config.tokens:
                return True

    if config.amms and event.pool in config.amms:
        return True

    logger.debug(f"[FILTER] {event.event_type.value} {event.signature[:12]}... filtered out")
    return False
