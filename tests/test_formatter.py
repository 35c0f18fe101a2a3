"""
Unit tests for event output formatting.
"""

import json

import pytest

from raydiumtx.core.exceptions import FormatError
from raydiumtx.core.models import (
    EventType,
    LiquidityEvent,
    MarketType,
    OutputFormat,
    PoolEvent,
    SwapDirection,
    SwapEvent,
    TokenAmount,
)
from raydiumtx.core.utils import WSOL_MINT, shorten_address, token_label
from raydiumtx.notify.formatter import format_event

MAKER = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
MINT = "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R"
SIGNATURE = "5VERv8NMvzbJMEkV8xnrLkEaWRtSz9CosKDYjCJjBRnbJLgp8uirBgmQpjKhoR4tjF3ZpRzrFmBV6UjKdiSZkQUW"


def _swap(low_confidence=False, input_mint=WSOL_MINT, fee=None):
    return SwapEvent(
        protocol=MarketType.CPMM,
        signature=SIGNATURE,
        slot=250_000_000,
        pool="pool",
        maker=MAKER,
        input_token=TokenAmount(input_mint, 11_988_000_000, "in"),
        output_token=TokenAmount(MINT, 11_500_700_000, "out"),
        direction=SwapDirection.EXACT_INPUT,
        low_confidence=low_confidence,
        fee=fee,
    )


class TestTextFormat:
    """Test human-readable output."""

    def test_swap_layout(self):
        text = format_event(_swap(), OutputFormat.TEXT)
        assert text.splitlines() == [
            "SWAP [CPMM]",
            "SOL 11988000000",
            "4k3Dyjzv 11500700000",
            "Maker: 7xKXtg...gAsU",
            f"https://solscan.io/tx/{SIGNATURE}",
        ]

    def test_unresolved_mint(self):
        text = format_event(_swap(input_mint=None), OutputFormat.TEXT)
        assert "UNKNOWN 11988000000" in text.splitlines()

    def test_reported_fee(self):
        lines = format_event(_swap(fee=30_000), OutputFormat.TEXT).splitlines()
        assert lines[3] == "Fee: 30000"
        assert lines[4] == "Maker: 7xKXtg...gAsU"

    def test_low_confidence_marker(self):
        text = format_event(_swap(low_confidence=True), OutputFormat.TEXT)
        assert "Confidence: positional" in text

    def test_liquidity_headers(self):
        for event_type, header in (
            (EventType.ADD_LIQUIDITY, "ADD_LP [AMM-V4]"),
            (EventType.REMOVE_LIQUIDITY, "REMOVE_LP [AMM-V4]"),
        ):
            event = LiquidityEvent(
                event_type=event_type,
                protocol=MarketType.AMM_V4,
                signature=SIGNATURE,
                slot=1,
                pool="pool",
                maker=MAKER,
                token_0=TokenAmount(MINT, 1),
                token_1=TokenAmount(WSOL_MINT, 0),
            )
            assert format_event(event, OutputFormat.TEXT).splitlines()[0] == header

    def test_pool_header(self):
        event = PoolEvent(
            protocol=MarketType.CLMM,
            signature=SIGNATURE,
            slot=1,
            pool="pool",
            maker=MAKER,
            token_0=TokenAmount(MINT, 0),
            token_1=TokenAmount(WSOL_MINT, 0),
        )
        assert format_event(event, OutputFormat.TEXT).startswith("CREATE_POOL [CLMM]")


class TestJsonFormat:
    """Test machine-readable output."""

    def test_json_fields(self):
        payload = json.loads(format_event(_swap(), OutputFormat.JSON))

        assert payload["event_type"] == "swap"
        assert payload["protocol"] == "cpmm"
        assert payload["signature"] == SIGNATURE
        assert payload["direction"] == "exact_input"
        assert payload["input_token"] == {
            "mint": WSOL_MINT,
            "amount_raw": 11_988_000_000,
            "account": "in",
        }
        assert payload["output_token"]["amount_raw"] == 11_500_700_000
        assert payload["maker"] == MAKER
        assert payload["slot"] == 250_000_000
        assert payload["low_confidence"] is False
        assert payload["fee"] is None

    def test_json_fee(self):
        payload = json.loads(format_event(_swap(fee=30_000), OutputFormat.JSON))
        assert payload["fee"] == 30_000

    def test_json_is_single_line(self):
        assert "\n" not in format_event(_swap(), OutputFormat.JSON)

    def test_pretty_differs_only_in_whitespace(self):
        compact = format_event(_swap(), OutputFormat.JSON)
        pretty = format_event(_swap(), OutputFormat.JSON_PRETTY)
        assert "\n" in pretty
        assert json.loads(compact) == json.loads(pretty)

    def test_non_event_raises_format_error(self):
        with pytest.raises(FormatError):
            format_event(object(), OutputFormat.JSON)


class TestDisplayHelpers:
    def test_shorten_address(self):
        assert shorten_address(MAKER) == "7xKXtg...gAsU"
        assert shorten_address("short") == "short"

    def test_token_label(self):
        assert token_label(WSOL_MINT) == "SOL"
        assert token_label(MINT) == "4k3Dyjzv"
        assert token_label(None) == "UNKNOWN"


class TestOutputFormatParsing:
    def test_aliases(self):
        assert OutputFormat.parse("txt") == OutputFormat.TEXT
        assert OutputFormat.parse("JSON") == OutputFormat.JSON
        for alias in ("json_pretty", "json-pretty", "jsonpretty"):
            assert OutputFormat.parse(alias) == OutputFormat.JSON_PRETTY

    def test_invalid(self):
        with pytest.raises(ValueError):
            OutputFormat.parse("xml")
