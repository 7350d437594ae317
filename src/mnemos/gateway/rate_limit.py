"""Per-user throttle on inbound message events."""

import logging
import math
import time
from typing import Literal

from limits import RateLimitItemPerSecond
from limits.storage import MemoryStorage
from limits.strategies import FixedWindowRateLimiter, MovingWindowRateLimiter

from mnemos.errors import RateLimitError

logger = logging.getLogger(__name__)


class RateLimiter:
    """Admits at most ``max_messages`` per user per window.

    Counters live in process memory, keyed by user id, so every
    connection of the same user shares one budget.
    """

    def __init__(
        self,
        max_messages: int = 10,
        window_ms: int = 60000,
        strategy: Literal["fixed-window", "moving-window"] = "fixed-window",
    ):
        """Initialize the limiter.

        Args:
            max_messages: Messages allowed per window
            window_ms: Window length in milliseconds, a whole number of seconds
            strategy: Fixed or moving window accounting

        Raises:
            ValueError: If the window is not a positive whole number of seconds
        """
        if window_ms < 1000 or window_ms % 1000:
            raise ValueError(f"window_ms must be a whole number of seconds, got {window_ms}")
        self.item = RateLimitItemPerSecond(max_messages, window_ms // 1000)
        self.storage = MemoryStorage()
        if strategy == "moving-window":
            self._limiter = MovingWindowRateLimiter(self.storage)
        else:
            self._limiter = FixedWindowRateLimiter(self.storage)

    def check(self, user_id: str) -> None:
        """Count one message for ``user_id``.

        Raises:
            RateLimitError: If the user is over the limit; carries a retry-after hint
        """
        if self._limiter.hit(self.item, "messages", user_id):
            return

        stats = self._limiter.get_window_stats(self.item, "messages", user_id)
        retry_after_ms = max(1, math.ceil((stats.reset_time - time.time()) * 1000))
        logger.debug("Rate limited user %s for %dms", user_id, retry_after_ms)
        raise RateLimitError(retry_after_ms)

    def reset(self) -> None:
        self.storage.reset()
