"""
Domain models for RaydiumTX.

Models: RawInstruction, decoded instructions (SwapInstruction,
LiquidityInstruction, PoolInitInstruction, Unrecognized), program event
logs (SwapLog, LpChangeLog), TransferRecord,
TokenAmount, events (SwapEvent, LiquidityEvent, PoolEvent), StreamRecord.

Every model is a frozen dataclass. Amounts are raw integer base units.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class MarketType(str, Enum):
    """Raydium program family."""
    CPMM = "cpmm"
    CLMM = "clmm"
    AMM_V4 = "amm_v4"

    @property
    def label(self) -> str:
        return _MARKET_LABELS[self]

    @classmethod
    def parse(cls, value: str) -> "MarketType":
        """Parse a market name, case-insensitive. Accepts amm_v4 aliases."""
        key = value.strip().lower()
        market = _MARKET_ALIASES.get(key)
        if market is None:
            raise ValueError(
                f"Unknown market type: '{value}'. Valid options: cpmm, clmm, amm_v4"
            )
        return market


_MARKET_LABELS = {
    MarketType.CPMM: "CPMM",
    MarketType.CLMM: "CLMM",
    MarketType.AMM_V4: "AMM-V4",
}

_MARKET_ALIASES = {
    "cpmm": MarketType.CPMM,
    "clmm": MarketType.CLMM,
    "amm_v4": MarketType.AMM_V4,
    "ammv4": MarketType.AMM_V4,
    "amm-v4": MarketType.AMM_V4,
    "v4": MarketType.AMM_V4,
}


class EventType(str, Enum):
    """Kind of reconstructed event."""
    SWAP = "swap"
    ADD_LIQUIDITY = "add_liquidity"
    REMOVE_LIQUIDITY = "remove_liquidity"
    CREATE_POOL = "create_pool"

    @property
    def header(self) -> str:
        return _EVENT_HEADERS[self]


_EVENT_HEADERS = {
    EventType.SWAP: "SWAP",
    EventType.ADD_LIQUIDITY: "ADD_LP",
    EventType.REMOVE_LIQUIDITY: "REMOVE_LP",
    EventType.CREATE_POOL: "CREATE_POOL",
}


class SwapDirection(str, Enum):
    """Which side of a swap the user fixed."""
    EXACT_INPUT = "exact_input"
    EXACT_OUTPUT = "exact_output"


class OutputFormat(str, Enum):
    TEXT = "text"
    JSON = "json"
    JSON_PRETTY = "json_pretty"

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        key = value.strip().lower()
        fmt = _FORMAT_ALIASES.get(key)
        if fmt is None:
            raise ValueError(
                f"Unknown output format: '{value}'. Valid options: text, json, json_pretty"
            )
        return fmt


_FORMAT_ALIASES = {
    "text": OutputFormat.TEXT,
    "txt": OutputFormat.TEXT,
    "json": OutputFormat.JSON,
    "json_pretty": OutputFormat.JSON_PRETTY,
    "json-pretty": OutputFormat.JSON_PRETTY,
    "jsonpretty": OutputFormat.JSON_PRETTY,
}


# Instruction variants, one enum per protocol. Values are the on-chain
# instruction names (Anchor discriminators are derived from them).

class CpmmInstruction(str, Enum):
    SWAP_BASE_INPUT = "swap_base_input"
    SWAP_BASE_OUTPUT = "swap_base_output"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    INITIALIZE = "initialize"


class ClmmInstruction(str, Enum):
    SWAP = "swap"
    SWAP_V2 = "swap_v2"
    INCREASE_LIQUIDITY = "increase_liquidity"
    INCREASE_LIQUIDITY_V2 = "increase_liquidity_v2"
    DECREASE_LIQUIDITY = "decrease_liquidity"
    DECREASE_LIQUIDITY_V2 = "decrease_liquidity_v2"
    CREATE_POOL = "create_pool"


class AmmV4Instruction(str, Enum):
    INITIALIZE = "initialize"
    INITIALIZE2 = "initialize2"
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    SWAP_BASE_IN = "swap_base_in"
    SWAP_BASE_OUT = "swap_base_out"
    SWAP_BASE_IN_V2 = "swap_base_in_v2"
    SWAP_BASE_OUT_V2 = "swap_base_out_v2"


Variant = Union[CpmmInstruction, ClmmInstruction, AmmV4Instruction]


@dataclass(frozen=True)
class RawInstruction:
    """One program invocation as it appears in a transaction."""
    program_id: str
    account_keys: Tuple[str, ...]
    data: bytes
    stack_height: Optional[int] = None


@dataclass(frozen=True)
class SwapInstruction:
    """
    A decoded swap.

    `amount` is the side the user fixed (input for exact-input swaps, output
    for exact-output swaps); `other_amount_threshold` is the slippage bound
    on the other side. Neither is the executed amount.
    """
    protocol: MarketType
    variant: Variant
    pool: str
    user: str
    user_input_account: str
    user_output_account: str
    amount: int
    other_amount_threshold: int
    is_base_input: bool
    input_vault: Optional[str] = None
    output_vault: Optional[str] = None
    pool_vaults: Tuple[str, ...] = ()
    input_mint: Optional[str] = None
    output_mint: Optional[str] = None
    sqrt_price_limit_x64: Optional[int] = None
    market: Optional[str] = None
    uses_order_book: bool = False

    @property
    def direction(self) -> SwapDirection:
        if self.is_base_input:
            return SwapDirection.EXACT_INPUT
        return SwapDirection.EXACT_OUTPUT

    @property
    def min_amount_out(self) -> Optional[int]:
        return self.other_amount_threshold if self.is_base_input else None

    @property
    def max_amount_in(self) -> Optional[int]:
        return None if self.is_base_input else self.other_amount_threshold

    @property
    def input_vaults(self) -> Tuple[str, ...]:
        """Vaults that may receive the input leg."""
        if self.input_vault:
            return (self.input_vault,)
        return self.pool_vaults

    @property
    def output_vaults(self) -> Tuple[str, ...]:
        """Vaults that may send the output leg."""
        if self.output_vault:
            return (self.output_vault,)
        return self.pool_vaults


@dataclass(frozen=True)
class LiquidityInstruction:
    """A decoded deposit/withdraw (CPMM, AMM V4) or position change (CLMM)."""
    protocol: MarketType
    variant: Variant
    event_type: EventType
    pool: str
    user: str
    user_token_0_account: str
    user_token_1_account: str
    vault_0: str
    vault_1: str
    amount_0_limit: int
    amount_1_limit: int
    lp_amount: Optional[int] = None
    mint_0: Optional[str] = None
    mint_1: Optional[str] = None
    lp_mint: Optional[str] = None
    base_flag: Optional[bool] = None
    market: Optional[str] = None
    uses_order_book: bool = False

    @property
    def is_add(self) -> bool:
        return self.event_type == EventType.ADD_LIQUIDITY


@dataclass(frozen=True)
class PoolInitInstruction:
    """A decoded pool creation."""
    protocol: MarketType
    variant: Variant
    pool: str
    creator: str
    mint_0: Optional[str]
    mint_1: Optional[str]
    vault_0: Optional[str]
    vault_1: Optional[str]
    init_amount_0: int = 0
    init_amount_1: int = 0
    open_time: int = 0
    sqrt_price_x64: Optional[int] = None
    lp_mint: Optional[str] = None
    market: Optional[str] = None
    uses_order_book: bool = False


@dataclass(frozen=True)
class Unrecognized:
    """An instruction of a known program whose discriminator is not supported."""
    protocol: MarketType
    program_id: str
    discriminator: bytes


@dataclass(frozen=True)
class SwapLog:
    """
    Executed amounts a program reports for a swap (CPMM SwapEvent).

    Older program versions omit the mints and fees, which are then None.
    """
    protocol: MarketType
    program_id: str
    pool: str
    input_amount: int
    output_amount: int
    base_input: bool
    input_transfer_fee: int = 0
    output_transfer_fee: int = 0
    input_mint: Optional[str] = None
    output_mint: Optional[str] = None
    trade_fee: Optional[int] = None
    creator_fee: Optional[int] = None


@dataclass(frozen=True)
class LpChangeLog:
    """Executed amounts a program reports for a deposit or withdrawal (CPMM LpChangeEvent)."""
    protocol: MarketType
    program_id: str
    pool: str
    token_0_amount: int
    token_1_amount: int
    is_add: bool
    lp_amount_before: int = 0
    token_0_transfer_fee: int = 0
    token_1_transfer_fee: int = 0

    @property
    def transferred_amounts(self) -> Tuple[int, int]:
        """Amounts the token transfers moved. Deposits pay the transfer fee on top."""
        if self.is_add:
            return (
                self.token_0_amount + self.token_0_transfer_fee,
                self.token_1_amount + self.token_1_transfer_fee,
            )
        return (self.token_0_amount, self.token_1_amount)


ProgramLog = Union[SwapLog, LpChangeLog]

DecodedInstruction = Union[SwapInstruction, LiquidityInstruction, PoolInitInstruction]


@dataclass(frozen=True)
class TransferRecord:
    """An SPL token transfer executed inside an instruction."""
    source: str
    destination: str
    raw_amount: int
    program_id: str
    authority: Optional[str] = None
    mint_hint: Optional[str] = None
    decimals: Optional[int] = None


@dataclass(frozen=True)
class TokenAmount:
    mint: Optional[str]
    amount_raw: int
    account: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mint": self.mint,
            "amount_raw": self.amount_raw,
            "account": self.account,
        }


@dataclass(frozen=True)
class SwapEvent:
    """A swap with the amounts that actually moved."""
    protocol: MarketType
    signature: str
    slot: int
    pool: str
    maker: str
    input_token: TokenAmount
    output_token: TokenAmount
    direction: SwapDirection
    low_confidence: bool = False
    fee: Optional[int] = None

    @property
    def event_type(self) -> EventType:
        return EventType.SWAP

    def tokens(self) -> Tuple[TokenAmount, TokenAmount]:
        return (self.input_token, self.output_token)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "protocol": self.protocol.value,
            "signature": self.signature,
            "slot": self.slot,
            "pool": self.pool,
            "maker": self.maker,
            "direction": self.direction.value,
            "input_token": self.input_token.to_dict(),
            "output_token": self.output_token.to_dict(),
            "fee": self.fee,
            "low_confidence": self.low_confidence,
        }


@dataclass(frozen=True)
class LiquidityEvent:
    event_type: EventType
    protocol: MarketType
    signature: str
    slot: int
    pool: str
    maker: str
    token_0: TokenAmount
    token_1: TokenAmount
    lp_amount: Optional[int] = None
    low_confidence: bool = False

    def tokens(self) -> Tuple[TokenAmount, TokenAmount]:
        return (self.token_0, self.token_1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "protocol": self.protocol.value,
            "signature": self.signature,
            "slot": self.slot,
            "pool": self.pool,
            "maker": self.maker,
            "token_0": self.token_0.to_dict(),
            "token_1": self.token_1.to_dict(),
            "lp_amount": self.lp_amount,
            "low_confidence": self.low_confidence,
        }


@dataclass(frozen=True)
class PoolEvent:
    protocol: MarketType
    signature: str
    slot: int
    pool: str
    maker: str
    token_0: TokenAmount
    token_1: TokenAmount
    open_time: int = 0

    @property
    def event_type(self) -> EventType:
        return EventType.CREATE_POOL

    @property
    def low_confidence(self) -> bool:
        return False

    def tokens(self) -> Tuple[TokenAmount, TokenAmount]:
        return (self.token_0, self.token_1)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type.value,
            "protocol": self.protocol.value,
            "signature": self.signature,
            "slot": self.slot,
            "pool": self.pool,
            "maker": self.maker,
            "token_0": self.token_0.to_dict(),
            "token_1": self.token_1.to_dict(),
            "open_time": self.open_time,
            "low_confidence": False,
        }


Event = Union[SwapEvent, LiquidityEvent, PoolEvent]


@dataclass(frozen=True)
class StreamRecord:
    """
    One transaction from the upstream stream.

    inner_instructions maps a top-level instruction index to the
    instructions it invoked, in execution order.
    """
    signature: str
    slot: int
    top_level_instructions: Tuple[RawInstruction, ...]
    inner_instructions: Dict[int, Tuple[RawInstruction, ...]] = field(default_factory=dict)

    def inner_for(self, index: int) -> Tuple[RawInstruction, ...]:
        return self.inner_instructions.get(index, ())
