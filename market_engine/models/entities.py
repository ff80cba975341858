"""
Crypto Bunker — Persisted Entities
────────────────────────────────────
Plain records mirroring the three store tables. They are created once
and never mutated; the store is the only source of truth.

  Observation      exchange_rates(coin, value, created_at)
  SentimentRecord  sentiments(id, created_at, coin, sentiment, source)
  SeenArticle      rss_posts(url, created_at)
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

SENTIMENT_VALUES = (-1, 0, 1)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Observation:
    coin:       str
    value:      float
    created_at: datetime

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or utcnow()) - self.created_at).total_seconds()


@dataclass(frozen=True)
class SentimentRecord:
    coin:       str
    sentiment:  int        # -1 | 0 | 1
    source:     str        # article URL
    created_at: datetime
    id:         Optional[int] = None

    def __post_init__(self):
        if self.sentiment not in SENTIMENT_VALUES:
            raise ValueError(f"sentiment must be one of {SENTIMENT_VALUES}, got {self.sentiment!r}")


@dataclass(frozen=True)
class SeenArticle:
    url:        str
    created_at: Optional[datetime] = None
