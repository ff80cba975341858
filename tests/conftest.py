"""Shared fixtures and in-process fakes for every external collaborator."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from ingestion.database import Store
from market_engine.errors import UpstreamUnavailable
from market_engine.orchestrator.rate_limiter import Pacer
from oracles.base import Feed, FeedItem, Paraphrase, Post, Quote

T0 = datetime(2024, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Wall clock for components that take `clock=`; advance it by hand."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeMonotonic:
    """Monotonic clock + sleeper pair for Pacer: sleeping advances the clock instantly."""

    def __init__(self):
        self.t = 1000.0
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.t

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds


# ── Oracles ────────────────────────────────────────────────────

class FakeQuotes:
    def __init__(self, prices: Optional[Dict[str, float]] = None, error: Optional[Exception] = None):
        self.prices = prices or {}
        self.error  = error
        self.calls: List[str] = []

    async def fetch_quote(self, symbol: str) -> Quote:
        self.calls.append(symbol)
        if self.error is not None:
            raise self.error
        if symbol not in self.prices:
            raise UpstreamUnavailable(f"no quote for {symbol}", service="fake")
        return Quote(symbol=symbol, price=self.prices[symbol])


class FakeFeeds:
    def __init__(self, feeds: Dict[str, object]):
        self.feeds = feeds
        self.calls: List[str] = []

    async def fetch_feed(self, url: str) -> Feed:
        self.calls.append(url)
        feed = self.feeds[url]
        if isinstance(feed, Exception):
            raise feed
        return feed


class FakeScraper:
    def __init__(self, pages: Optional[Dict[str, List[str]]] = None,
                 errors: Optional[Dict[str, Exception]] = None):
        self.pages  = pages or {}
        self.errors = errors or {}
        self.calls: List[str] = []

    async def fetch_paragraphs(self, url: str) -> List[str]:
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        return self.pages.get(url, ["Some article text."])


class FakeOracle:
    """Paraphraser, sentiment and forecast oracle in one, like AnthropicOracle."""

    def __init__(self):
        self.paraphrase_errors: Dict[str, Exception] = {}
        self.sentiments: Dict[str, object] = {}
        self.forecasts: Dict[str, object] = {}
        self.paraphrase_calls: List[tuple] = []
        self.sentiment_calls: List[tuple] = []
        self.forecast_calls: List[tuple] = []
        self.description = "Prices look steady."

    async def paraphrase(self, text: str, headline: str, attribution: str) -> Paraphrase:
        self.paraphrase_calls.append((text, headline, attribution))
        if headline in self.paraphrase_errors:
            raise self.paraphrase_errors[headline]
        return Paraphrase(body=f"<p>Rewritten: {headline}</p>", title=f"New {headline}")

    async def headline_sentiment(self, headline: str, coin: str) -> int:
        self.sentiment_calls.append((headline, coin))
        value = self.sentiments.get(headline, 1)
        if isinstance(value, Exception):
            raise value
        return value

    async def forecast(self, coin: str, horizon: str, samples) -> float:
        self.forecast_calls.append((coin, horizon, list(samples)))
        value = self.forecasts.get(horizon, 100.0)
        if isinstance(value, Exception):
            raise value
        return value

    async def describe_forecast(self, coin: str, current: float, horizons) -> str:
        return self.description


class FakeImages:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error

    async def image_url(self, query: str) -> str:
        if self.error is not None:
            raise self.error
        return f"https://images.example/{query}.jpg"


class FakePublisher:
    def __init__(self):
        self.posts: List[Post] = []
        self.fail_titles: Dict[str, Exception] = {}

    async def publish(self, post: Post) -> dict:
        if post.title in self.fail_titles:
            raise self.fail_titles[post.title]
        self.posts.append(post)
        return {"id": str(len(self.posts)), "title": post.title}


def feed_of(*items, url: str = "https://news.example/feed", title: str = "Example News") -> Feed:
    return Feed(url=url, title=title, items=[FeedItem(title=t, link=l) for t, l in items])


# ── Fixtures ───────────────────────────────────────────────────

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mono():
    return FakeMonotonic()


@pytest.fixture
def pacer(mono):
    return Pacer(30, name="feed_item", clock=mono, sleep=mono.sleep)


@pytest.fixture
async def store(clock):
    s = Store.from_url("sqlite+aiosqlite:///:memory:", clock=clock)
    await s.init_db()
    yield s
    await s.dispose()


@pytest.fixture
def oracle():
    return FakeOracle()


@pytest.fixture
def publisher():
    return FakePublisher()

