"""
Queued, non-blocking event delivery.

Events are handed to a bounded queue and delivered by a background thread
with retry and exponential backoff, so a slow endpoint never stalls
decoding. When the queue is full, or once shutdown has begun, new events are
dropped, logged and counted.
"""

import logging
import queue
import threading
from typing import Optional

from raydiumtx.core.models import Event

logger = logging.getLogger(__name__)

_STOP = object()


class QueuedNotifier:
    """
    Base class for notifiers. Subclasses implement `deliver(event) -> bool`
    as a single attempt.
    """

    name = "notifier"

    def __init__(
        self,
        max_retries: int = 3,
        retry_backoff_ms: int = 500,
        queue_size: int = 1000,
    ):
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff_ms / 1000
        self._queue: "queue.Queue" = queue.Queue(maxsize=queue_size)
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.delivered = 0
        self.failed = 0
        self.dropped = 0

    def deliver(self, event: Event) -> bool:
        raise NotImplementedError

    def start(self) -> "QueuedNotifier":
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._worker, name=f"{self.name}-delivery", daemon=True
            )
            self._thread.start()
        return self

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def try_send(self, event: Event) -> bool:
        """Queue an event without blocking. Returns False if it was dropped."""
        # Held across check and put so nothing lands behind the stop marker
        with self._lock:
            if self._closed.is_set():
                self.dropped += 1
                logger.warning(
                    f"[{self.name.upper()}] Shutting down, dropping {event.signature[:12]}..."
                )
                return False
            try:
                self._queue.put_nowait(event)
                return True
            except queue.Full:
                self.dropped += 1
                logger.warning(
                    f"[{self.name.upper()}] Queue full, dropping {event.signature[:12]}..."
                )
                return False

    def shutdown(self, timeout: float = 5.0) -> None:
        """Stop accepting events, deliver what is queued, then stop the worker."""
        with self._lock:
            self._closed.set()
        if self._thread is None:
            return
        self._queue.put(_STOP)
        self._thread.join(timeout)
        self._stopping.set()
        self._thread = None

    def send_with_retry(self, event: Event) -> bool:
        """Deliver one event, retrying with exponential backoff."""
        backoff = self.retry_backoff
        attempts = self.max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                if self.deliver(event):
                    return True
            except Exception as e:
                logger.warning(
                    f"[{self.name.upper()}] Error: sig={event.signature[:12]}... "
                    f"err={e}, attempt={attempt}/{attempts}"
                )

            if attempt == attempts:
                break
            if self._stopping.wait(backoff):
                break
            backoff *= 2

        logger.error(
            f"[{self.name.upper()}] Delivery failed after {attempt} attempts: "
            f"sig={event.signature[:12]}..."
        )
        return False

    def _worker(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            if self.send_with_retry(item):
                self.delivered += 1
            else:
                self.failed += 1
