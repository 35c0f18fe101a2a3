"""
Telegram notification module.

Sends the text rendering of each event to a Telegram chat.
"""

import html
import logging
from typing import Optional

import requests

from raydiumtx.core.config import Config
from raydiumtx.core.models import Event
from raydiumtx.notify.base import QueuedNotifier
from raydiumtx.notify.formatter import format_text

logger = logging.getLogger(__name__)


class TelegramNotifier(QueuedNotifier):
    """Sends events to a Telegram bot chat."""

    name = "telegram"

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        max_retries: int = 3,
        retry_backoff_ms: int = 500,
        queue_size: int = 1000,
    ):
        super().__init__(max_retries, retry_backoff_ms, queue_size)
        self.bot_token = bot_token
        self.chat_id = chat_id

    @classmethod
    def from_config(cls, config: Config) -> Optional["TelegramNotifier"]:
        if not config.telegram_bot_token or not config.telegram_chat_id:
            return None
        return cls(
            bot_token=config.telegram_bot_token,
            chat_id=config.telegram_chat_id,
            max_retries=config.webhook_max_retries,
            retry_backoff_ms=config.webhook_retry_backoff_ms,
            queue_size=config.webhook_queue_size,
        )

    def deliver(self, event: Event) -> bool:
        return self.send_message(f"<pre>{html.escape(format_text(event))}</pre>")

    def send_message(self, text: str) -> bool:
        """
        Send arbitrary message to Telegram.

        Supports HTML formatting.
        """
        url = f"https://api.telegram.org/bot{self.bot_token}/sendMessage"

        try:
            response = requests.post(
                url,
                json={
                    "chat_id": self.chat_id,
                    "text": text,
                    "parse_mode": "HTML",
                    "disable_web_page_preview": True,
                },
                timeout=10,
            )
            response.raise_for_status()

            logger.debug("[TELEGRAM] Message sent")
            return True

        except requests.RequestException as e:
            logger.error(f"[TELEGRAM] Message failed: {e}")
            return False
