"""
RaydiumTX - Raydium swap and liquidity event decoder

Decodes CPMM, CLMM and AMM V4 instructions from Solana transactions and
reports the amounts that actually moved, taken from the SPL token transfers
executed inside each instruction.
"""

__version__ = "0.1.0"
