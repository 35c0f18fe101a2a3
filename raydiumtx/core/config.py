"""
Configuration management for RaydiumTX.

Loads settings from environment variables (scripts call load_dotenv first)
and an optional JSON file mapping token accounts to mints.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from solders.pubkey import Pubkey

from raydiumtx.core.models import MarketType, OutputFormat
from raydiumtx.filters.matcher import FilterConfig

logger = logging.getLogger(__name__)


def _split_csv(raw: Optional[str]) -> list:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def parse_market_filter(raw: Optional[str]) -> FrozenSet[MarketType]:
    """
    Parse a comma-separated market list.

    Unknown names are logged and skipped. An empty or unset value leaves the
    market dimension unconstrained.
    """
    markets = set()
    for name in _split_csv(raw):
        try:
            markets.add(MarketType.parse(name))
        except ValueError as e:
            logger.warning(f"[CONFIG] Skipping market filter entry: {e}")
    return frozenset(markets)


def parse_pubkey_filter(raw: Optional[str], name: str = "filter") -> FrozenSet[str]:
    """Parse a comma-separated address list, skipping invalid entries."""
    keys = set()
    for value in _split_csv(raw):
        try:
            keys.add(str(Pubkey.from_string(value)))
        except ValueError:
            logger.warning(f"[CONFIG] Invalid pubkey in {name}: '{value}', skipping")
    return frozenset(keys)


def parse_output_format(raw: Optional[str]) -> OutputFormat:
    if not raw:
        return OutputFormat.TEXT
    try:
        return OutputFormat.parse(raw)
    except ValueError as e:
        logger.warning(f"[CONFIG] {e}. Falling back to text")
        return OutputFormat.TEXT


@dataclass
class Config:
    """Application configuration."""

    # Filters (empty = unconstrained)
    filter_markets: FrozenSet[MarketType] = field(default_factory=frozenset)
    filter_tokens: FrozenSet[str] = field(default_factory=frozenset)
    filter_amms: FrozenSet[str] = field(default_factory=frozenset)

    # Output
    output_format: OutputFormat = OutputFormat.TEXT

    # Webhook delivery
    webhook_url: Optional[str] = None
    webhook_timeout_secs: float = 10.0
    webhook_max_retries: int = 3
    webhook_retry_backoff_ms: int = 500
    webhook_queue_size: int = 1000

    # Telegram
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None

    # RPC (used by decode_tx to fetch single transactions)
    rpc_http_url: Optional[str] = None

    # Processing
    pipeline_workers: int = 1

    # JSON object of token account -> mint
    vault_mints_path: Optional[str] = None

    @classmethod
    def _load_json(cls, json_path: Path) -> Dict[str, str]:
        """Load a JSON mapping file."""
        if not json_path.exists():
            raise FileNotFoundError(f"Config file not found: {json_path}")

        with open(json_path, 'r') as f:
            return json.load(f)

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        return cls(
            filter_markets=parse_market_filter(os.getenv("FILTER_MARKETS")),
            filter_tokens=parse_pubkey_filter(os.getenv("FILTER_TOKENS"), "FILTER_TOKENS"),
            filter_amms=parse_pubkey_filter(os.getenv("FILTER_AMMS"), "FILTER_AMMS"),
            output_format=parse_output_format(os.getenv("OUTPUT_FORMAT")),

            webhook_url=os.getenv("WEBHOOK_URL") or None,
            webhook_timeout_secs=float(os.getenv("WEBHOOK_TIMEOUT_SECS", "10")),
            webhook_max_retries=int(os.getenv("WEBHOOK_MAX_RETRIES", "3")),
            webhook_retry_backoff_ms=int(os.getenv("WEBHOOK_RETRY_BACKOFF_MS", "500")),
            webhook_queue_size=int(os.getenv("WEBHOOK_QUEUE_SIZE", "1000")),

            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
            telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID") or None,

            rpc_http_url=os.getenv("RPC_HTTP_URL") or None,
            pipeline_workers=max(1, int(os.getenv("PIPELINE_WORKERS", "1"))),
            vault_mints_path=os.getenv("VAULT_MINTS_PATH") or None,
        )

    def filter_config(self) -> FilterConfig:
        return FilterConfig(
            markets=self.filter_markets,
            tokens=self.filter_tokens,
            amms=self.filter_amms,
        )

    def load_vault_mints(self) -> Dict[str, str]:
        """Token account -> mint mapping, empty when no file is configured."""
        if not self.vault_mints_path:
            return {}
        data = self._load_json(Path(self.vault_mints_path))
        if not isinstance(data, dict):
            raise ValueError(f"{self.vault_mints_path} must contain a JSON object")
        return {str(k): str(v) for k, v in data.items()}

    def get_filter_summary(self) -> str:
        """Get a summary of current filter settings."""
        markets = ", ".join(sorted(m.label for m in self.filter_markets)) or "All"
        return f"""Output: {self.output_format.value}

Filters (OR across dimensions):
  Markets: {markets}
  Tokens: {len(self.filter_tokens) or "All"}
  AMMs: {len(self.filter_amms) or "All"}

Delivery:
  Webhook: {"enabled" if self.webhook_url else "disabled"}
  Telegram: {"enabled" if self.telegram_bot_token and self.telegram_chat_id else "disabled"}
"""
