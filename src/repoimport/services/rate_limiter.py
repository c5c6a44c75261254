"""
Fixed-window request limiter keyed by client identity.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ..logger import get_logger
from ..settings import settings

log = get_logger(__name__)


@dataclass
class RateLimitEntry:
    count: int
    window_reset_at: float


class FixedWindowRateLimiter:
    """Thread-safe counter map with an optional background sweep."""

    def __init__(
        self,
        max_per_window: Optional[int] = None,
        window_seconds: Optional[float] = None,
        sweep_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_per_window = max_per_window or settings.rate_limit_max
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self.sweep_interval = sweep_interval or settings.rate_limit_sweep_seconds
        self._clock = clock
        self._entries: Dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def check(self, client_id: str) -> bool:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(client_id)
            if entry is None or now > entry.window_reset_at:
                self._entries[client_id] = RateLimitEntry(1, now + self.window_seconds)
                return True
            if entry.count < self.max_per_window:
                entry.count += 1
                return True
            return False

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, entry in self._entries.items() if now > entry.window_reset_at]
            for key in expired:
                del self._entries[key]
        if expired:
            log.debug("rate_limit_swept", removed=len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _run(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            self.sweep()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="rate-limit-sweep", daemon=True
        )
        self._thread.start()
        log.info("rate_limit_sweep_started", interval=self.sweep_interval)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
