import threading

from repoimport.services import FixedWindowRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_fixed_window_allows_five_then_denies_then_resets() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_per_window=5, window_seconds=60, clock=clock)
    results = [limiter.check("10.0.0.1") for _ in range(6)]
    assert results == [True, True, True, True, True, False]

    clock.now += 61
    assert limiter.check("10.0.0.1") is True


def test_window_does_not_slide() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_per_window=2, window_seconds=60, clock=clock)
    assert limiter.check("a")
    clock.now += 59
    assert limiter.check("a")
    assert not limiter.check("a")
    clock.now += 2
    assert limiter.check("a")


def test_clients_are_counted_separately() -> None:
    limiter = FixedWindowRateLimiter(max_per_window=1, window_seconds=60, clock=FakeClock())
    assert limiter.check("a")
    assert limiter.check("b")
    assert not limiter.check("a")


def test_sweep_removes_only_expired_entries() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_per_window=5, window_seconds=60, clock=clock)
    limiter.check("old")
    clock.now += 30
    limiter.check("fresh")
    clock.now += 31
    assert limiter.sweep() == 1
    assert len(limiter) == 1
    assert limiter.sweep() == 0


def test_concurrent_checks_never_exceed_limit() -> None:
    limiter = FixedWindowRateLimiter(max_per_window=50, window_seconds=60, clock=FakeClock())
    allowed = []
    lock = threading.Lock()

    def worker() -> None:
        for _ in range(20):
            ok = limiter.check("shared")
            with lock:
                allowed.append(ok)
            limiter.sweep()

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert allowed.count(True) == 50


def test_background_sweep_lifecycle() -> None:
    clock = FakeClock()
    limiter = FixedWindowRateLimiter(max_per_window=1, window_seconds=1, sweep_interval=0.01, clock=clock)
    limiter.check("a")
    clock.now += 5
    limiter.start()
    try:
        for _ in range(200):
            if len(limiter) == 0:
                break
            threading.Event().wait(0.01)
        assert len(limiter) == 0
    finally:
        limiter.stop()
    assert limiter._thread is None
