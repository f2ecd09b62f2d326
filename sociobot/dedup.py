"""
Recently-seen inbound message ids, so webhook retries are handled once.
"""
import logging
import time
from typing import Callable, Dict

from . import config

logger = logging.getLogger(__name__)


class RecentMessages:
    """Set of message keys that expire `ttl_seconds` after insertion.

    Expired keys are purged lazily on every access. Only the message handler
    writes to it, on the single event loop, so no lock is needed.
    """

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._expires_at: Dict[str, float] = {}

    def _purge(self) -> None:
        now = self._clock()
        expired = [k for k, exp in self._expires_at.items() if exp <= now]
        for key in expired:
            del self._expires_at[key]
        if expired:
            logger.debug(f"[DEDUP] Purged {len(expired)} expired keys")

    def seen(self, key: str) -> bool:
        self._purge()
        return key in self._expires_at

    def mark(self, key: str) -> None:
        self._purge()
        self._expires_at[key] = self._clock() + self.ttl_seconds

    def check_and_mark(self, key: str) -> bool:
        """Return True if `key` was already seen; otherwise record it and return False."""
        if self.seen(key):
            return True
        self.mark(key)
        return False

    def __len__(self) -> int:
        self._purge()
        return len(self._expires_at)


recent_messages = RecentMessages(ttl_seconds=config.DEDUP_TTL_SECONDS)
