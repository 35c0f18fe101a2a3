"""
Render events as text or JSON.

Text:
    SWAP [CPMM]
    SOL 11988000000
    4k3Dyjzv 11500700000
    Maker: 7xKXtg...gAsU
    https://solscan.io/tx/<signature>
"""

import json

from raydiumtx.core.exceptions import FormatError
from raydiumtx.core.models import Event, OutputFormat
from raydiumtx.core.utils import shorten_address, token_label

SOLSCAN_TX_URL = "https://solscan.io/tx/"


def format_text(event: Event) -> str:
    lines = [f"{event.event_type.header} [{event.protocol.label}]"]

    for token in event.tokens():
        lines.append(f"{token_label(token.mint)} {token.amount_raw}")

    fee = getattr(event, "fee", None)
    if fee is not None:
        lines.append(f"Fee: {fee}")

    lines.append(f"Maker: {shorten_address(event.maker)}")

    if event.low_confidence:
        lines.append("Confidence: positional")

    lines.append(f"{SOLSCAN_TX_URL}{event.signature}")
    return "\n".join(lines)


def format_json(event: Event, pretty: bool = False) -> str:
    try:
        payload = event.to_dict()
    except AttributeError as e:
        raise FormatError(f"Not an event: {type(event).__name__}") from e

    if pretty:
        return json.dumps(payload, indent=2)
    return json.dumps(payload, separators=(",", ":"))


def format_event(event: Event, fmt: OutputFormat) -> str:
    """Render an event in the requested format."""
    if fmt == OutputFormat.TEXT:
        return format_text(event)
    if fmt == OutputFormat.JSON:
        return format_json(event)
    if fmt == OutputFormat.JSON_PRETTY:
        return format_json(event, pretty=True)
    raise FormatError(f"Unsupported output format: {fmt!r}")
