"""
Rate limiting utilities for the Binance REST API.

Two layers protect the account from throttling and IP bans:
- A fixed pause before every call (the hard sequencing rule of a sync pass)
- A request-weight token bucket mirroring Binance's per-minute weight budget

Usage:
    limiter = SyncRateLimiter(max_weight=6000, decay_rate=100.0, min_delay=0.5)
    limiter.acquire(cost=20)  # Blocks for min_delay plus any weight wait
    response = make_api_call()
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Rate limiter configuration."""

    max_weight: int = 6000  # Weight budget per window
    decay_rate: float = 100.0  # Weight recovered per second
    min_delay: float = 0.5  # Fixed pause before every call
    buffer: float = 0.8  # Use this fraction of capacity


class SyncRateLimiter:
    """
    Blocking rate limiter for the synchronous sync engine.

    Tracks a virtual "used weight" counter that decays over time, waits
    when the next call would overshoot the budget, then always sleeps
    min_delay before letting the call through.
    """

    def __init__(
        self,
        max_weight: int = 6000,
        decay_rate: float = 100.0,
        min_delay: float = 0.5,
        buffer: float = 0.8,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize synchronous rate limiter.

        Args:
            max_weight: Maximum weight before the exchange rejects calls
            decay_rate: Weight decay per second
            min_delay: Fixed delay inserted before every call
            buffer: Use this fraction of capacity (0.8 = 80%)
            sleep: Sleep function (injectable for tests)
        """
        self._max_weight = max_weight * buffer
        self._decay_rate = decay_rate
        self._min_delay = min_delay
        self._sleep = sleep

        self._counter = 0.0
        self._last_update = time.monotonic()
        # Note: This is not thread-safe. A sync pass is single-flight.

    @classmethod
    def from_config(
        cls,
        config: RateLimitConfig,
        sleep: Callable[[float], None] = time.sleep,
    ) -> "SyncRateLimiter":
        """Create from a RateLimitConfig."""
        return cls(
            max_weight=config.max_weight,
            decay_rate=config.decay_rate,
            min_delay=config.min_delay,
            buffer=config.buffer,
            sleep=sleep,
        )

    @property
    def min_delay(self) -> float:
        """Fixed delay applied before every call."""
        return self._min_delay

    def acquire(self, cost: int = 1) -> float:
        """
        Acquire permission to make an API call.

        Blocks until the weight budget allows the call, then for min_delay.

        Args:
            cost: Request weight of the API call

        Returns:
            Budget wait time in seconds (excluding min_delay)
        """
        now = time.monotonic()
        elapsed = now - self._last_update

        self._counter = max(0.0, self._counter - (elapsed * self._decay_rate))
        self._last_update = now

        wait_time = 0.0
        if self._counter + cost > self._max_weight:
            excess = (self._counter + cost) - self._max_weight
            wait_time = excess / self._decay_rate

            logger.debug(
                f"Rate limiting: weight={self._counter:.2f}, "
                f"cost={cost}, waiting {wait_time:.2f}s"
            )

            self._sleep(wait_time)

            self._counter = max(
                0.0,
                self._counter - (wait_time * self._decay_rate)
            )
            self._last_update = time.monotonic()

        self._counter += cost

        if self._min_delay > 0:
            self._sleep(self._min_delay)

        return wait_time

    @property
    def current_weight(self) -> float:
        """Get current used weight (for monitoring)."""
        elapsed = time.monotonic() - self._last_update
        return max(0.0, self._counter - (elapsed * self._decay_rate))

    @property
    def available_capacity(self) -> float:
        """Get remaining weight before rate limiting kicks in."""
        return self._max_weight - self.current_weight

    def reset(self) -> None:
        """Reset the rate limiter (e.g., after long pause)."""
        self._counter = 0.0
        self._last_update = time.monotonic()
