"""
Utility functions for RaydiumTX.
"""

from typing import Optional

WSOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
USDT_MINT = "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB"

# Mints rendered by symbol. Everything else is shown by address prefix.
KNOWN_SYMBOLS = {
    WSOL_MINT: "SOL",
    USDC_MINT: "USDC",
    USDT_MINT: "USDT",
}


def shorten_address(address: str, head: int = 6, tail: int = 4) -> str:
    """
    Shorten an address for display.

    Examples:
        "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU" -> "7xKXtg...gAsU"
        "short" -> "short"
    """
    if len(address) <= head + tail + 2:
        return address
    return f"{address[:head]}...{address[-tail:]}"


def token_label(mint: Optional[str]) -> str:
    """Symbol for well-known mints, first 8 characters otherwise."""
    if not mint:
        return "UNKNOWN"
    symbol = KNOWN_SYMBOLS.get(mint)
    if symbol:
        return symbol
    return mint[:8]


def mask_url(url: Optional[str]) -> str:
    """Mask the path and query of a URL for safe logging."""
    if not url:
        return "Not configured"

    from urllib.parse import urlparse

    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return "***MASKED***"
    return f"{parsed.scheme}://{parsed.netloc}/***MASKED***"
