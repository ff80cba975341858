"""
Crypto Bunker — News Ingestion Pipeline
─────────────────────────────────────────
Turns feed items into scored, paraphrased, published posts.

Per item, first terminal state wins:

    dedup ── seen ─────────────────────────────────→ SKIPPED
      └─ scrape ─ error ───────────────────────────→ ABORTED (scrape)
           └─ transform ─ error ───────────────────→ ABORTED (transform)
                └─ score ─ error ──────────────────→ ABORTED (score)
                     └─ persist sentiment + seen ──→ ABORTED (persist)
                          └─ publish ─ error ──────→ ABORTED (publish)
                                └──────────────────→ PUBLISHED

Rules:
  * one bad item never stops the batch; only JobCancelled does
  * feeds one at a time, items in feed order, 30s between scrapes
  * the URL is marked seen right after scoring, before publishing:
    a publish failure is not retried (at most one post per URL), a
    crash before scoring means the item is simply tried again
"""

import html
import logging
import time
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from ingestion.classifiers import source_text
from ingestion.fetchers import attribution_name
from market_engine.cache.ttl_config import REQUEST_TIMEOUT
from market_engine.errors import (
    JobCancelled, MalformedResponse, StoreUnavailable, UpstreamUnavailable,
)
from market_engine.models import SentimentRecord, utcnow
from market_engine.orchestrator.cancellation import CancelToken
from market_engine.orchestrator.rate_limiter import Pacer
from oracles.base import FeedItem, Post

log = logging.getLogger("cb.ingestion.pipeline")

IMAGE_QUERY = "cryptocurrency"


class ItemState(str, Enum):
    SKIPPED   = "skipped"
    ABORTED   = "aborted"
    PUBLISHED = "published"


class Stage(str, Enum):
    DEDUP     = "dedup"
    SCRAPE    = "scrape"
    TRANSFORM = "transform"
    SCORE     = "score"
    PERSIST   = "persist"
    PUBLISH   = "publish"


@dataclass(frozen=True)
class ItemReport:
    url:       str
    title:     str
    state:     ItemState
    stage:     Stage
    reason:    Optional[str] = None
    sentiment: Optional[int] = None

    def to_dict(self) -> dict:
        d = asdict(self)
        d["state"] = self.state.value
        d["stage"] = self.stage.value
        return d


def source_link_html(body: str, link: str) -> str:
    return f"{body}<br><br><a href='{html.escape(link, quote=True)}'>Source</a>"


class IngestionPipeline:

    def __init__(self, store, feeds, scraper, paraphraser, sentiment, images, publisher,
                 coin: str = "BTC", pacer: Optional[Pacer] = None,
                 timeout: float = REQUEST_TIMEOUT, clock: Callable[[], datetime] = utcnow,
                 image_query: str = IMAGE_QUERY):
        self.store       = store
        self.feeds       = feeds
        self.scraper     = scraper
        self.paraphraser = paraphraser
        self.sentiment   = sentiment
        self.images      = images
        self.publisher   = publisher
        self.coin        = coin
        self.pacer       = pacer or Pacer(0, name="feed_item")
        self.timeout     = timeout
        self._clock      = clock
        self.image_query = image_query

    def _abort(self, item: FeedItem, stage: Stage, error: Exception,
               sentiment: Optional[int] = None) -> ItemReport:
        log.warning(f"ABORTED at {stage.value}: {item.link} — {error}")
        return ItemReport(url=item.link, title=item.title, state=ItemState.ABORTED,
                          stage=stage, reason=str(error), sentiment=sentiment)

    # ══════════════════════════════════════════════════════════
    # ONE ITEM
    # ══════════════════════════════════════════════════════════
    async def process_item(self, item: FeedItem, feed_title: str = "",
                           token: Optional[CancelToken] = None) -> ItemReport:
        token = token or CancelToken()
        token.raise_if_cancelled()
        reached = {"stage": Stage.DEDUP, "sentiment": None}
        try:
            return await self._run_stages(item, feed_title, token, reached)
        except JobCancelled:
            raise
        except Exception as e:
            log.error(f"Unexpected {type(e).__name__} at {reached['stage'].value} for {item.link}")
            return self._abort(item, reached["stage"], e, sentiment=reached["sentiment"])

    async def _run_stages(self, item: FeedItem, feed_title: str, token: CancelToken,
                          reached: Dict) -> ItemReport:
        # ── Dedup ────────────────────────────────────────────
        try:
            seen = await token.guard(self.store.is_seen(item.link),
                                     timeout=self.timeout, what="store.is_seen")
        except (StoreUnavailable, UpstreamUnavailable) as e:
            return self._abort(item, Stage.DEDUP, e)
        if seen:
            log.debug(f"SKIPPED (seen): {item.link}")
            return ItemReport(url=item.link, title=item.title,
                              state=ItemState.SKIPPED, stage=Stage.DEDUP)

        # ── Scrape ───────────────────────────────────────────
        reached["stage"] = Stage.SCRAPE
        await self.pacer.wait(token)
        try:
            paragraphs = await token.guard(self.scraper.fetch_paragraphs(item.link),
                                           timeout=self.timeout, what="scrape")
        except (UpstreamUnavailable, MalformedResponse) as e:
            return self._abort(item, Stage.SCRAPE, e)
        text = source_text(paragraphs)
        if not text:
            log.warning(f"No article text extracted from {item.link}, continuing with headline only")

        # ── Transform ────────────────────────────────────────
        reached["stage"] = Stage.TRANSFORM
        attribution = attribution_name(feed_title, item.link)
        try:
            rewritten = await token.guard(
                self.paraphraser.paraphrase(text, item.title, attribution),
                timeout=self.timeout, what="paraphrase",
            )
        except (UpstreamUnavailable, MalformedResponse) as e:
            return self._abort(item, Stage.TRANSFORM, e)

        # ── Score (original headline, not the paraphrase) ────
        reached["stage"] = Stage.SCORE
        try:
            score = await token.guard(self.sentiment.headline_sentiment(item.title, self.coin),
                                      timeout=self.timeout, what="sentiment")
            record = SentimentRecord(coin=self.coin, sentiment=score,
                                     source=item.link, created_at=self._clock())
        except (UpstreamUnavailable, MalformedResponse) as e:
            return self._abort(item, Stage.SCORE, e)
        except ValueError as e:
            return self._abort(item, Stage.SCORE, MalformedResponse(str(e)))

        # ── Persist sentiment, then mark seen ────────────────
        reached.update(stage=Stage.PERSIST, sentiment=score)
        try:
            await token.guard(self.store.insert_sentiment(record),
                              timeout=self.timeout, what="store.insert_sentiment")
            await token.guard(self.store.mark_seen(item.link),
                              timeout=self.timeout, what="store.mark_seen")
        except (StoreUnavailable, UpstreamUnavailable) as e:
            return self._abort(item, Stage.PERSIST, e, sentiment=score)

        # ── Publish ──────────────────────────────────────────
        reached["stage"] = Stage.PUBLISH
        feature_image = None
        try:
            feature_image = await token.guard(self.images.image_url(self.image_query),
                                              timeout=self.timeout, what="image")
        except (UpstreamUnavailable, MalformedResponse) as e:
            log.warning(f"No feature image for {item.link}: {e}")

        post = Post(title=rewritten.title, html=source_link_html(rewritten.body, item.link),
                    feature_image=feature_image, featured=False)
        try:
            await token.guard(self.publisher.publish(post), timeout=self.timeout, what="publish")
        except (UpstreamUnavailable, MalformedResponse) as e:
            return self._abort(item, Stage.PUBLISH, e, sentiment=score)

        log.info(f"PUBLISHED {item.link} (sentiment {score:+d})")
        return ItemReport(url=item.link, title=item.title, state=ItemState.PUBLISHED,
                          stage=Stage.PUBLISH, sentiment=score)

    # ══════════════════════════════════════════════════════════
    # FEEDS
    # ══════════════════════════════════════════════════════════
    async def run_feed(self, feed_url: str, token: Optional[CancelToken] = None) -> List[ItemReport]:
        """All items of one feed, in feed order. Raises if the feed itself can't be read."""
        token = token or CancelToken()
        feed = await token.guard(self.feeds.fetch_feed(feed_url), timeout=self.timeout, what="feed")
        log.info(f"Feed {feed.title}: {len(feed.items)} items")
        reports = []
        for item in feed.items:
            reports.append(await self.process_item(item, feed.title, token))
        return reports

    async def run_all(self, feed_urls: Sequence[str],
                      token: Optional[CancelToken] = None) -> Dict:
        token = token or CancelToken()
        start = time.time()
        stats = {
            "feeds":       0,
            "feed_errors": 0,
            "items":       0,
            "skipped":     0,
            "aborted":     0,
            "published":   0,
            "reports":     [],
        }
        for url in feed_urls:
            token.raise_if_cancelled()
            try:
                reports = await self.run_feed(url, token)
            except JobCancelled:
                raise
            except Exception as e:
                log.warning(f"Feed {url} unavailable: {e}")
                stats["feed_errors"] += 1
                continue
            stats["feeds"] += 1
            for r in reports:
                stats["items"] += 1
                stats[r.state.value] += 1
                stats["reports"].append(r)

        stats["elapsed_seconds"] = round(time.time() - start, 1)
        log.info(
            f"Feed check done in {stats['elapsed_seconds']}s — feeds={stats['feeds']} "
            f"errors={stats['feed_errors']} published={stats['published']} "
            f"skipped={stats['skipped']} aborted={stats['aborted']}"
        )
        return stats
