"""
Crypto Bunker — Analytics
───────────────────────────
Read-only views over the store. No upstream calls, no writes.

  percent_change_24h          change between the two latest observations
  sentiment_score             sum of sentiments inside a trailing window
  historical_window           bounded sample window for the forecast oracle
  recent_non_neutral_sources  what has been moving sentiment lately

Window policy: a record counts when created_at > now - window
(strict), so a record exactly at the edge is outside.

A store failure is logged and answered with the "no signal" value
(0 / empty list); the jobs using these views degrade, they don't stop.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List

from market_engine.cache.ttl_config import CHATTER_LIMIT, FORECAST_MAX_SAMPLES
from market_engine.errors import InvalidInput, StoreUnavailable
from market_engine.models import Observation, utcnow

log = logging.getLogger("cb.analytics")


class Analytics:

    def __init__(self, store, clock: Callable[[], datetime] = utcnow):
        self.store  = store
        self._clock = clock

    async def percent_change_24h(self, symbol: str) -> float:
        """(latest - previous) / previous * 100 over the two newest observations; 0.0 = no signal."""
        try:
            latest_two = await self.store.latest_observations(symbol, limit=2)
        except StoreUnavailable as e:
            log.error(f"[{symbol}] percent_change_24h: {e}")
            return 0.0
        if len(latest_two) < 2:
            return 0.0
        latest, previous = latest_two[0].value, latest_two[1].value
        if previous == 0:
            return 0.0
        return (latest - previous) / previous * 100

    async def sentiment_score(self, symbol: str, window_hours: float) -> int:
        if window_hours <= 0:
            raise InvalidInput(f"window_hours must be positive, got {window_hours}")
        since = self._clock() - timedelta(hours=window_hours)
        try:
            records = await self.store.sentiments_since(symbol, since)
        except StoreUnavailable as e:
            log.error(f"[{symbol}] sentiment_score: {e}")
            return 0
        return sum(r.sentiment for r in records)

    async def historical_window(self, symbol: str, since_unix: float,
                                limit: int = FORECAST_MAX_SAMPLES) -> List[Observation]:
        """Observations newer than `since_unix`, newest first, at most `limit` of them."""
        if limit <= 0:
            raise InvalidInput("limit must be positive")
        since = datetime.fromtimestamp(since_unix, tz=timezone.utc)
        try:
            return await self.store.observations_since(symbol, since, limit=limit)
        except StoreUnavailable as e:
            log.error(f"[{symbol}] historical_window: {e}")
            return []

    async def recent_non_neutral_sources(self, limit: int = CHATTER_LIMIT) -> List[str]:
        if limit <= 0:
            raise InvalidInput("limit must be positive")
        try:
            return await self.store.recent_non_neutral_sources(limit)
        except StoreUnavailable as e:
            log.error(f"recent_non_neutral_sources: {e}")
            return []
