"""Rate limiting for admin login attempts."""
import time
from typing import Dict
from collections import defaultdict
import threading

from agenda import config


class RateLimitExceeded(Exception):
    """Raised when rate limit is exceeded."""
    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


class RateLimiter:
    """
    In-memory rate limiter using sliding window algorithm.

    Pattern: Sliding window with a default limit and per-key overrides.
    Good for: Single-server deployments.
    NOT for: Multi-server production (use a shared store instead).
    """

    def __init__(
        self,
        default_requests: int = config.LOGIN_ATTEMPTS_PER_MINUTE,
        default_window_seconds: int = 60
    ):
        self.default_limit = {
            "requests": default_requests,
            "window_seconds": default_window_seconds
        }

        # {key: {"requests": int, "window_seconds": int}}
        self.limits: Dict[str, Dict] = {}

        # {key: [timestamp1, timestamp2, ...]}
        self.request_log: Dict[str, list] = defaultdict(list)

        self.lock = threading.Lock()

    def set_limit(self, key: str, requests: int, window_seconds: int):
        """Configure rate limit for one key."""
        self.limits[key] = {
            "requests": requests,
            "window_seconds": window_seconds
        }

    def check_rate_limit(self, key: str):
        """
        Record an attempt for ``key`` if within the limit.

        Raises:
            RateLimitExceeded: If limit exceeded
        """
        with self.lock:
            limit_config = self.limits.get(key, self.default_limit)
            max_requests = limit_config["requests"]
            window_seconds = limit_config["window_seconds"]

            now = time.time()
            cutoff = now - window_seconds

            # Remove old attempts outside window
            self.request_log[key] = [
                ts for ts in self.request_log[key]
                if ts > cutoff
            ]

            if len(self.request_log[key]) >= max_requests:
                oldest_request = min(self.request_log[key])
                retry_after = int(window_seconds - (now - oldest_request)) + 1

                raise RateLimitExceeded(
                    f"Too many attempts: {max_requests} per {window_seconds}s",
                    retry_after=retry_after
                )

            self.request_log[key].append(now)

    def reset(self, key: str):
        """Forget recorded attempts for ``key`` (e.g. after a successful login)."""
        with self.lock:
            self.request_log.pop(key, None)
