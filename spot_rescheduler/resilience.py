"""
Resilience Patterns
Client-side rate limiting for Kubernetes API calls
"""

import time
import logging
from threading import Lock
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """Rate limiter for API calls"""
    
    def __init__(self, max_calls: int, time_window: float = 1.0,
                 on_delay: Optional[Callable[[float], None]] = None):
        self.max_calls = max_calls
        self.time_window = time_window
        self.on_delay = on_delay
        self.calls: List[float] = []
        self.lock = Lock()
    
    def acquire(self):
        """Acquire rate limit permission, blocking if necessary"""
        with self.lock:
            now = time.monotonic()
            # Remove old calls outside time window
            self.calls = [c for c in self.calls if now - c < self.time_window]
            
            if len(self.calls) >= self.max_calls:
                # Sleep until the oldest call leaves the window
                oldest_call = min(self.calls)
                sleep_time = self.time_window - (now - oldest_call)
                if sleep_time > 0:
                    logger.debug(f"Rate limit reached, sleeping {sleep_time:.2f}s")
                    if self.on_delay:
                        self.on_delay(sleep_time)
                    time.sleep(sleep_time)
                    now = time.monotonic()
                    self.calls = [c for c in self.calls if now - c < self.time_window]
            
            self.calls.append(time.monotonic())
