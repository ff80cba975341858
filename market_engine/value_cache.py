"""
Crypto Bunker — Value Cache
─────────────────────────────
Per request, decides whether the latest stored observation for a coin
can be trusted or must be refreshed from the quote API.

    latest row age <= freshness window   → HIT        (no upstream call)
    stale or no row, upstream answers    → REFRESHED  (new row appended)
    stale, upstream fails                → STALE      (last value, nothing written)
    no row, upstream fails               → MISSING
    store unreadable                     → MISSING    (upstream not called)

The store is re-read on every call; nothing is held in memory, so
restarts and overlapping jobs always see the same answer.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from market_engine.cache.ttl_config import FRESHNESS_WINDOW, REQUEST_TIMEOUT
from market_engine.errors import (
    InvalidInput, MalformedResponse, StoreUnavailable, UpstreamUnavailable,
)
from market_engine.models import LookupStatus, Observation, ValueLookup, utcnow
from market_engine.orchestrator.cancellation import CancelToken

log = logging.getLogger("cb.value_cache")


class ValueCache:

    def __init__(self, store, quotes, freshness_window: timedelta = FRESHNESS_WINDOW,
                 clock: Callable[[], datetime] = utcnow, timeout: float = REQUEST_TIMEOUT):
        self.store            = store
        self.quotes           = quotes
        self.freshness_window = freshness_window
        self._clock           = clock
        self.timeout          = timeout

    def is_fresh(self, obs: Observation, now: Optional[datetime] = None) -> bool:
        return (now or self._clock()) - obs.created_at <= self.freshness_window

    async def get_value(self, symbol: str, token: Optional[CancelToken] = None) -> ValueLookup:
        if not symbol or not symbol.strip():
            raise InvalidInput("symbol must be a non-empty string")
        symbol = symbol.strip().upper()
        token = token or CancelToken()

        # ── 1. Latest stored observation ─────────────────────
        try:
            latest = await token.guard(self.store.latest_observation(symbol),
                                       timeout=self.timeout, what="store.latest_observation")
        except (StoreUnavailable, UpstreamUnavailable) as e:
            log.error(f"[{symbol}] store read failed: {e}")
            return ValueLookup.missing(symbol, f"store unavailable: {e}")

        now = self._clock()
        if latest is not None and self.is_fresh(latest, now):
            log.debug(f"[{symbol}] cache hit ({latest.age_seconds(now):.0f}s old)")
            return ValueLookup(symbol=symbol, status=LookupStatus.HIT,
                               value=latest.value, observed_at=latest.created_at)

        # ── 2. Stale or missing → ask upstream ───────────────
        try:
            quote = await token.guard(self.quotes.fetch_quote(symbol),
                                      timeout=self.timeout, what="quote")
        except (UpstreamUnavailable, MalformedResponse) as e:
            if latest is None:
                log.warning(f"[{symbol}] no stored value and quote failed: {e}")
                return ValueLookup.missing(symbol, f"quote failed: {e}")
            log.warning(f"[{symbol}] quote failed, serving stale value "
                        f"({latest.age_seconds(now) / 3600:.1f}h old): {e}")
            return ValueLookup(symbol=symbol, status=LookupStatus.STALE, value=latest.value,
                               observed_at=latest.created_at, error=str(e))

        # ── 3. Persist the fresh observation ─────────────────
        obs = Observation(coin=symbol, value=quote.price, created_at=self._clock())
        try:
            await token.guard(self.store.insert_observation(obs),
                              timeout=self.timeout, what="store.insert_observation")
        except (StoreUnavailable, UpstreamUnavailable) as e:
            # the caller still gets the live price; the next call will refetch
            log.error(f"[{symbol}] refreshed value not persisted: {e}")

        log.info(f"[{symbol}] refreshed → {quote.price}")
        return ValueLookup(symbol=symbol, status=LookupStatus.REFRESHED,
                           value=quote.price, observed_at=obs.created_at)
