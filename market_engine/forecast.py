"""
Crypto Bunker — Weekly Forecast
─────────────────────────────────
For each forecast coin:

  current price      ← ValueCache.get_value
  1w / 1m / 3m       ← forecast oracle, fed the last 1000h of samples
  24h change         ← Analytics.percent_change_24h
  chatter            ← Analytics.recent_non_neutral_sources(10)

rendered to HTML and posted as a featured post "Weekly <COIN>".

A coin without any price is skipped. A horizon whose reply can't be
parsed is shown as "unavailable", never as 0.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from jinja2 import Environment, FileSystemLoader

from market_engine.cache.ttl_config import (
    CHATTER_LIMIT, FORECAST_HISTORY_H, FORECAST_HORIZONS, FORECAST_MAX_SAMPLES, REQUEST_TIMEOUT,
)
from market_engine.errors import JobCancelled, MalformedResponse, UpstreamUnavailable
from market_engine.models import LookupStatus, utcnow
from market_engine.orchestrator.cancellation import CancelToken
from oracles.base import Post

log = logging.getLogger("cb.forecast")

TEMPLATE_DIR = Path(__file__).parent / "templates"

DISCLAIMER = (
    "This is not financial advice. This is for entertainment purposes only. "
    "Do your own research before making any investment. The author is not "
    "responsible for any losses incurred. The information on this page is "
    "simply opinion based on publicly available data."
)

IMAGE_QUERY = "cryptocurrency"


def _usd(value: float) -> str:
    return f"{value:,.2f}"


def get_jinja_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(TEMPLATE_DIR)),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["usd"] = _usd
    return env


@dataclass
class MarketForecast:
    coin:        str
    price:       float
    change_24h:  float
    horizons:    List[Tuple[str, Optional[float]]]
    chatter:     List[str] = field(default_factory=list)
    description: str = DISCLAIMER
    price_stale: bool = False

    def to_dict(self) -> Dict:
        return {
            "coin":        self.coin,
            "price":       self.price,
            "change_24h":  self.change_24h,
            "horizons":    {label: value for label, value in self.horizons},
            "chatter":     list(self.chatter),
            "description": self.description,
            "price_stale": self.price_stale,
        }


class ForecastAssembler:

    def __init__(self, value_cache, analytics, oracle, images, publisher,
                 horizons: Sequence[str] = FORECAST_HORIZONS, describe: bool = False,
                 clock: Callable[[], datetime] = utcnow, timeout: float = REQUEST_TIMEOUT):
        self.value_cache = value_cache
        self.analytics   = analytics
        self.oracle      = oracle
        self.images      = images
        self.publisher   = publisher
        self.horizons    = tuple(horizons)
        self.describe    = describe
        self._clock      = clock
        self.timeout     = timeout
        self._env        = get_jinja_env()

    async def _horizon(self, coin: str, horizon: str, samples: List[float],
                       token: CancelToken) -> Optional[float]:
        try:
            return await token.guard(self.oracle.forecast(coin, horizon, samples),
                                     timeout=self.timeout, what=f"forecast {horizon}")
        except (UpstreamUnavailable, MalformedResponse) as e:
            log.error(f"[{coin}] {horizon} forecast unavailable: {e}")
            return None

    async def assemble(self, coin: str, token: Optional[CancelToken] = None) -> Optional[MarketForecast]:
        token = token or CancelToken()
        coin = coin.strip().upper()

        lookup = await self.value_cache.get_value(coin, token)
        if not lookup.ok:
            log.warning(f"[{coin}] no price available ({lookup.error}), skipping forecast")
            return None

        since = self._clock() - timedelta(hours=FORECAST_HISTORY_H)
        window = await self.analytics.historical_window(coin, since.timestamp(),
                                                        limit=FORECAST_MAX_SAMPLES)
        samples = [o.value for o in window]

        horizons = []
        for horizon in self.horizons:
            horizons.append((horizon, await self._horizon(coin, horizon, samples, token)))

        forecast = MarketForecast(
            coin=coin,
            price=lookup.value,
            change_24h=await self.analytics.percent_change_24h(coin),
            horizons=horizons,
            chatter=await self.analytics.recent_non_neutral_sources(CHATTER_LIMIT),
            price_stale=lookup.status == LookupStatus.STALE,
        )

        if self.describe:
            try:
                summary = await token.guard(
                    self.oracle.describe_forecast(coin, lookup.value, horizons),
                    timeout=self.timeout, what="describe_forecast",
                )
                if summary:
                    forecast.description = f"{summary}\n\n{DISCLAIMER}"
            except (UpstreamUnavailable, MalformedResponse) as e:
                log.warning(f"[{coin}] forecast description unavailable: {e}")
        return forecast

    def render(self, forecast: MarketForecast) -> str:
        return self._env.get_template("forecast.html.j2").render(forecast=forecast)

    async def publish(self, forecast: MarketForecast, token: Optional[CancelToken] = None) -> dict:
        token = token or CancelToken()
        feature_image = None
        try:
            feature_image = await token.guard(self.images.image_url(IMAGE_QUERY),
                                              timeout=self.timeout, what="image")
        except (UpstreamUnavailable, MalformedResponse) as e:
            log.warning(f"[{forecast.coin}] no feature image: {e}")

        post = Post(title=f"Weekly {forecast.coin}", html=self.render(forecast),
                    feature_image=feature_image, featured=True)
        return await token.guard(self.publisher.publish(post), timeout=self.timeout,
                                 what="publish")

    async def run(self, coins: Sequence[str], token: Optional[CancelToken] = None) -> Dict:
        """Assemble and publish every coin in order. Per-coin failures are counted, not raised."""
        token = token or CancelToken()
        stats = {"coins": len(coins), "published": 0, "skipped": 0, "errors": 0}
        for coin in coins:
            token.raise_if_cancelled()
            try:
                forecast = await self.assemble(coin, token)
                if forecast is None:
                    stats["skipped"] += 1
                    continue
                await self.publish(forecast, token)
                stats["published"] += 1
            except JobCancelled:
                raise
            except Exception as e:
                log.error(f"[{coin}] forecast post failed: {e}")
                stats["errors"] += 1
        log.info(f"Weekly forecast done — published={stats['published']} "
                 f"skipped={stats['skipped']} errors={stats['errors']}")
        return stats
