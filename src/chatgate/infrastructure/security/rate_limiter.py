"""Fixed-window per-minute rate limiting."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable

WINDOW_MS = 60_000


@dataclass
class _Window:
    started_at: int
    count: int


class SenderRateLimiter:
    """Counts calls per key in one-minute windows.

    A window opens at the first call for a key and closes 60 seconds
    later. The check and the increment happen under one lock, so
    concurrent callers can never both take the last slot.

    One instance keyed ``<channel>:<account>:<sender>`` limits individual
    senders; a second instance keyed per account provides the global
    account limit.
    """

    def __init__(self, *, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock or (lambda: int(time.time() * 1000))
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def allow(self, key: str, limit_per_minute: int | None) -> bool:
        """Consume one slot for ``key``; ``False`` means the call is over limit.

        A missing or non-positive limit disables limiting.
        """
        if not limit_per_minute or limit_per_minute <= 0:
            return True
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now - window.started_at >= WINDOW_MS:
                self._windows[key] = _Window(started_at=now, count=1)
                return True
            if window.count + 1 > limit_per_minute:
                return False
            window.count += 1
            return True

    def retry_after_ms(self, key: str) -> int:
        """Milliseconds until the current window for ``key`` closes."""
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None:
                return 0
            return max(0, WINDOW_MS - (now - window.started_at))

    def reset(self, key: str | None = None) -> None:
        with self._lock:
            if key is None:
                self._windows.clear()
            else:
                self._windows.pop(key, None)


def sender_rate_key(channel: str, account_id: str, sender_id: str) -> str:
    return f"{channel}:{account_id}:{sender_id}"


def account_rate_key(channel: str, account_id: str) -> str:
    return f"{channel}:{account_id}"
