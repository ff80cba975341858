"""
Crypto Bunker — Service Wiring
────────────────────────────────
Builds every component from a Settings instance, once per process
(or once per test). Components get their collaborators through their
constructors; nothing here is a module-level singleton.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from ingestion.database import Store
from ingestion.fetchers import ArticleScraper, FeedFetcher, QuoteFetcher
from ingestion.pipeline import IngestionPipeline
from market_engine.analytics import Analytics
from market_engine.config import Settings
from market_engine.forecast import ForecastAssembler
from market_engine.orchestrator.cancellation import CancelToken
from market_engine.orchestrator.rate_limiter import Pacer
from market_engine.value_cache import ValueCache
from oracles.images import UnsplashImages
from oracles.llm import AnthropicOracle
from oracles.publisher import GhostPublisher

log = logging.getLogger("cb.services")


@dataclass
class Services:
    settings:    Settings
    store:       Store
    http:        Optional[httpx.AsyncClient]
    value_cache: ValueCache
    analytics:   Analytics
    pipeline:    IngestionPipeline
    forecaster:  ForecastAssembler
    coin_pacer:  Pacer
    token:       CancelToken = field(default_factory=CancelToken)

    async def close(self) -> None:
        self.token.cancel("shutdown")
        if self.http is not None:
            await self.http.aclose()
        await self.store.dispose()
        log.info("Services closed")


def build_services(settings: Settings, store: Optional[Store] = None,
                   http: Optional[httpx.AsyncClient] = None,
                   oracle: Optional[AnthropicOracle] = None) -> Services:
    store = store or Store.from_url(settings.database_url)
    http  = http or httpx.AsyncClient(timeout=settings.request_timeout_s)
    oracle = oracle or AnthropicOracle(api_key=settings.anthropic_api_key,
                                       model=settings.anthropic_model)
    images    = UnsplashImages(http, settings.unsplash_access_key)
    publisher = GhostPublisher(http, settings.ghost_admin_url, settings.ghost_admin_key)

    value_cache = ValueCache(
        store, QuoteFetcher(http, settings.coinmarketcap_key),
        freshness_window=settings.freshness_window,
        timeout=settings.request_timeout_s,
    )
    analytics = Analytics(store)
    pipeline = IngestionPipeline(
        store=store,
        feeds=FeedFetcher(http),
        scraper=ArticleScraper(http),
        paraphraser=oracle,
        sentiment=oracle,
        images=images,
        publisher=publisher,
        coin=settings.sentiment_coin,
        pacer=Pacer(settings.feed_item_pacing_s, name="feed_item"),
        timeout=settings.request_timeout_s,
    )
    forecaster = ForecastAssembler(
        value_cache, analytics, oracle, images, publisher,
        describe=settings.forecast_describe,
        timeout=settings.request_timeout_s,
    )
    return Services(
        settings=settings,
        store=store,
        http=http,
        value_cache=value_cache,
        analytics=analytics,
        pipeline=pipeline,
        forecaster=forecaster,
        coin_pacer=Pacer(settings.coin_pacing_s, name="coin_refresh"),
    )
