"""
Crypto Bunker — Collaborator Contracts
────────────────────────────────────────
Every external service the core talks to, reduced to one async call
with a request/response contract. The core depends on these Protocols
only; the concrete clients live next to them (llm.py, images.py,
publisher.py) and in ingestion/fetchers.py.

Failure contract, shared by all of them:
  raise UpstreamUnavailable  — the service could not be reached / errored
  raise MalformedResponse    — it answered, but not with the contract type
Nothing here ever returns 0 or "" to mean "failed".
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol, Sequence

from market_engine.models import utcnow


# ══════════════════════════════════════════════════════════════
# PAYLOADS
# ══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Quote:
    symbol:     str
    price:      float
    name:       Optional[str] = None
    fetched_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class FeedItem:
    title: str
    link:  str


@dataclass(frozen=True)
class Feed:
    url:   str
    title: str
    items: List[FeedItem]


@dataclass(frozen=True)
class Paraphrase:
    body:  str
    title: str


@dataclass
class Post:
    title:         str
    html:          str
    feature_image: Optional[str] = None
    featured:      bool = False
    status:        str = "published"
    visibility:    str = "public"

    def to_dict(self) -> dict:
        return {
            "title":         self.title,
            "html":          self.html,
            "feature_image": self.feature_image,
            "featured":      self.featured,
            "status":        self.status,
            "visibility":    self.visibility,
        }


# ══════════════════════════════════════════════════════════════
# PROTOCOLS
# ══════════════════════════════════════════════════════════════

class QuoteSource(Protocol):
    async def fetch_quote(self, symbol: str) -> Quote: ...


class FeedSource(Protocol):
    async def fetch_feed(self, url: str) -> Feed: ...


class ArticleSource(Protocol):
    async def fetch_paragraphs(self, url: str) -> List[str]: ...


class Paraphraser(Protocol):
    async def paraphrase(self, text: str, headline: str, attribution: str) -> Paraphrase: ...


class SentimentOracle(Protocol):
    async def headline_sentiment(self, headline: str, coin: str) -> int: ...


class ForecastOracle(Protocol):
    async def forecast(self, coin: str, horizon: str, samples: Sequence[float]) -> float: ...


class ImageOracle(Protocol):
    async def image_url(self, query: str) -> str: ...


class Publisher(Protocol):
    async def publish(self, post: Post) -> dict: ...
