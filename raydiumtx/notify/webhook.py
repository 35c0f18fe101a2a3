"""
Webhook notification module.

POSTs each event as JSON to a configured URL.
"""

import logging
from typing import Optional

import requests

from raydiumtx.core.config import Config
from raydiumtx.core.models import Event
from raydiumtx.notify.base import QueuedNotifier

logger = logging.getLogger(__name__)


class WebhookNotifier(QueuedNotifier):
    """Delivers events to an HTTP endpoint."""

    name = "webhook"

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        max_retries: int = 3,
        retry_backoff_ms: int = 500,
        queue_size: int = 1000,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(max_retries, retry_backoff_ms, queue_size)
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Config) -> Optional["WebhookNotifier"]:
        if not config.webhook_url:
            return None
        return cls(
            url=config.webhook_url,
            timeout=config.webhook_timeout_secs,
            max_retries=config.webhook_max_retries,
            retry_backoff_ms=config.webhook_retry_backoff_ms,
            queue_size=config.webhook_queue_size,
        )

    def deliver(self, event: Event) -> bool:
        try:
            response = self.session.post(
                self.url,
                json=event.to_dict(),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            logger.debug(
                f"[WEBHOOK] Delivered sig={event.signature[:12]}... status={response.status_code}"
            )
            return True

        except requests.RequestException as e:
            logger.warning(f"[WEBHOOK] Failed sig={event.signature[:12]}...: {e}")
            return False
