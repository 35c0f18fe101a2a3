"""
Fetch single transactions over Solana JSON-RPC.

Used by scripts/decode_tx.py to decode a transaction by signature. This is
a one-shot fetch, not a subscription.
"""

import logging
import time
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)

RETRY_DELAY_SECS = 0.5


class SolanaRpcClient:
    """Minimal JSON-RPC client for getTransaction."""

    def __init__(self, http_rpc_url: str, session: Optional[requests.Session] = None):
        self.http_rpc_url = http_rpc_url
        self.session = session or requests.Session()

    def get_transaction(self, signature: str, retries: int = 3) -> Optional[Dict[str, Any]]:
        """
        Fetch a transaction in `json` encoding.

        Args:
            signature: Transaction signature
            retries: Number of attempts

        Returns:
            The getTransaction result, or None if unavailable
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getTransaction",
            "params": [
                signature,
                {
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                    "commitment": "confirmed",
                },
            ],
        }

        for attempt in range(retries):
            last_attempt = attempt == retries - 1
            try:
                response = self.session.post(self.http_rpc_url, json=payload, timeout=15)
                response.raise_for_status()
                data = response.json()

            except (requests.RequestException, ValueError) as e:
                logger.error(f"[FETCH] Error fetching transaction {signature[:12]}...: {e}")
                if not last_attempt:
                    time.sleep(RETRY_DELAY_SECS)
                    continue
                return None

            if data.get("error"):
                logger.info(f"[FETCH] RPC error (attempt {attempt + 1}): {data['error']}")
                if not last_attempt:
                    time.sleep(RETRY_DELAY_SECS)
                    continue
                return None

            if data.get("result"):
                logger.info(f"[FETCH] Transaction {signature[:12]}... fetched")
                return data["result"]

            # Result is null - transaction not yet available
            if not last_attempt:
                logger.info(
                    f"[FETCH] Transaction not available yet (attempt {attempt + 1}), retrying..."
                )
                time.sleep(RETRY_DELAY_SECS)
                continue

            logger.info(f"[FETCH] Transaction still not available after {retries} attempts")
            return None

        return None


def fetch_transaction(http_rpc_url: str, signature: str, retries: int = 3) -> Optional[Dict[str, Any]]:
    return SolanaRpcClient(http_rpc_url).get_transaction(signature, retries=retries)
