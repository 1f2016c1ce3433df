import time
import threading
from typing import Callable


class RequestThrottle:
    """Thread-safe fixed-delay throttle: every acquire sleeps `delay_sec` first.

    CoinGecko's free tier allows ~30 requests/minute, so a 2s pause before each
    call keeps a single caller under the limit without tracking a window.
    """
    def __init__(self, delay_sec: float, sleep: Callable[[float], None] = time.sleep):
        if delay_sec < 0:
            raise ValueError("delay_sec must be >= 0")
        self.delay = delay_sec
        self._sleep = sleep
        self._lock = threading.Lock()
        self.calls = 0

    def wait(self) -> None:
        """Block for the configured delay before the caller issues a request."""
        # Holding the lock serializes concurrent callers behind each other's delay.
        with self._lock:
            if self.delay > 0:
                self._sleep(self.delay)
            self.calls += 1
