"""
Crypto Bunker — Pacing
────────────────────────
Minimum-interval pacer per external service. Jobs are strictly
sequential, so what we need is not throughput control but etiquette:
a guaranteed gap between consecutive calls to the same upstream.

Pacing enforced:
  quote API (CoinMarketCap)   10s between coins in the refresh job
  article scraping            30s between articles of a feed

The first call goes through immediately; later calls wait only for
whatever is left of the interval (time spent doing work counts).
Waiting goes through the CancelToken, so shutdown interrupts it, and
both the clock and the sleep are injectable so tests never block.
"""

import logging
import time
from typing import Awaitable, Callable, Optional

from market_engine.orchestrator.cancellation import CancelToken

log = logging.getLogger("cb.rate_limiter")

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class Pacer:
    """Enforces `interval` seconds between successive `wait()` returns."""

    def __init__(self, interval: float, name: str = "pacer",
                 clock: Clock = time.monotonic, sleep: Optional[Sleeper] = None):
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.interval = interval
        self.name     = name
        self._clock   = clock
        self._sleep   = sleep
        self._last: Optional[float] = None

    def remaining(self) -> float:
        if self._last is None:
            return 0.0
        return max(0.0, self.interval - (self._clock() - self._last))

    async def wait(self, token: Optional[CancelToken] = None) -> float:
        """Block until the interval has elapsed. Returns seconds waited."""
        if token is not None:
            token.raise_if_cancelled()
        delay = self.remaining()
        if delay > 0:
            log.debug(f"[{self.name}] pacing: sleeping {delay:.1f}s")
            if self._sleep is not None:
                await self._sleep(delay)
                if token is not None:
                    token.raise_if_cancelled()
            else:
                await (token or CancelToken()).sleep(delay)
        self._last = self._clock()
        return delay

    def reset(self) -> None:
        self._last = None

