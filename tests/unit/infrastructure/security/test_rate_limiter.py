"""Tests for SenderRateLimiter."""

import threading

from chatgate.infrastructure.security.rate_limiter import (
    SenderRateLimiter,
    account_rate_key,
    sender_rate_key,
)


class FakeClock:
    def __init__(self, now: int = 1_000_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now


def test_allows_up_to_limit_then_rejects() -> None:
    limiter = SenderRateLimiter(clock=FakeClock())
    assert [limiter.allow("k", 3) for _ in range(4)] == [True, True, True, False]


def test_window_rolls_over_after_a_minute() -> None:
    clock = FakeClock()
    limiter = SenderRateLimiter(clock=clock)
    assert limiter.allow("k", 1) is True
    clock.now += 59_999
    assert limiter.allow("k", 1) is False
    assert limiter.retry_after_ms("k") == 1
    clock.now += 1
    assert limiter.allow("k", 1) is True


def test_keys_are_independent() -> None:
    limiter = SenderRateLimiter(clock=FakeClock())
    assert limiter.allow("a", 1) is True
    assert limiter.allow("b", 1) is True
    assert limiter.allow("a", 1) is False


def test_non_positive_limit_is_unlimited() -> None:
    limiter = SenderRateLimiter(clock=FakeClock())
    assert all(limiter.allow("k", 0) for _ in range(500))
    assert all(limiter.allow("k", None) for _ in range(5))


def test_reset_clears_window() -> None:
    limiter = SenderRateLimiter(clock=FakeClock())
    limiter.allow("k", 1)
    limiter.reset("k")
    assert limiter.allow("k", 1) is True


def test_concurrent_callers_never_exceed_limit() -> None:
    limiter = SenderRateLimiter(clock=FakeClock())
    results: list[bool] = []
    lock = threading.Lock()

    def worker() -> None:
        for _ in range(50):
            allowed = limiter.allow("shared", 60)
            with lock:
                results.append(allowed)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert results.count(True) == 60


def test_rate_keys() -> None:
    assert sender_rate_key("vimalinx", "default", "u-1") == "vimalinx:default:u-1"
    assert account_rate_key("vimalinx", "default") == "vimalinx:default"
