from __future__ import annotations

from speciesresolver.rate_limiter import TokenBucketRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_burst_is_free_then_waits() -> None:
    clock = FakeClock()
    limiter = TokenBucketRateLimiter(rate=2.0, burst=3, clock=clock, sleep=clock.sleep)

    for _ in range(3):
        limiter.acquire()
    assert clock.sleeps == []

    limiter.acquire()
    assert clock.sleeps == [0.5]


def test_tokens_refill_over_time() -> None:
    clock = FakeClock()
    limiter = TokenBucketRateLimiter(rate=1.0, burst=1, clock=clock, sleep=clock.sleep)

    limiter.acquire()
    clock.now += 5.0
    limiter.acquire()

    assert clock.sleeps == []


def test_zero_rate_disables_limiting() -> None:
    clock = FakeClock()
    limiter = TokenBucketRateLimiter(rate=0, burst=1, clock=clock, sleep=clock.sleep)

    for _ in range(10):
        limiter.acquire()

    assert not limiter.enabled
    assert clock.sleeps == []
