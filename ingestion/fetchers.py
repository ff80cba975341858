"""
Crypto Bunker — Data Fetchers
───────────────────────────────
Fetchers pull raw data from third-party HTTP endpoints.
They return normalised payloads. They do NOT write to the database.

Sources:
  - CoinMarketCap  (latest USD quote per symbol, API key required)
  - RSS / Atom     (crypto news feeds, parsed with feedparser)
  - Article pages  (body text = every <p>, extracted with BeautifulSoup)

Failures are raised, never returned as None / 0:
  transport error, timeout, non-200   → UpstreamUnavailable
  200 but the payload is unusable     → MalformedResponse
"""

import asyncio
import logging
from typing import List, Optional
from urllib.parse import urlparse

import feedparser
import httpx
from bs4 import BeautifulSoup

from market_engine.errors import InvalidInput, MalformedResponse, UpstreamUnavailable
from oracles.base import Feed, FeedItem, Quote

log = logging.getLogger("cb.ingestion.fetchers")

REQUEST_TIMEOUT = 12
RETRY_ATTEMPTS  = 3
RETRY_DELAY     = 2.0

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
                  "(KHTML, like Gecko) Chrome/118.0.0.0 Safari/537.36",
    "Accept-Language": "en-US,en;q=0.9",
}


# ══════════════════════════════════════════════════════════════
# HTTP CLIENT
# ══════════════════════════════════════════════════════════════
async def _get(client: httpx.AsyncClient, url: str, params: dict = None,
               headers: dict = None, service: str = "http",
               retry_delay: float = RETRY_DELAY) -> httpx.Response:
    last_error = "no attempt made"
    for attempt in range(RETRY_ATTEMPTS):
        try:
            r = await client.get(url, params=params,
                                 headers=headers or BROWSER_HEADERS,
                                 timeout=REQUEST_TIMEOUT,
                                 follow_redirects=True)
            if r.status_code == 200:
                return r
            if r.status_code == 429:
                wait = retry_delay * (attempt + 1) * 2
                log.warning(f"[{service}] Rate limited — waiting {wait}s")
                last_error = "HTTP 429"
                await asyncio.sleep(wait)
                continue
            if r.status_code in (401, 403, 404):
                # retrying will not change the answer
                raise UpstreamUnavailable(f"HTTP {r.status_code} from {url[:60]}", service=service)
            last_error = f"HTTP {r.status_code}"
            log.warning(f"[{service}] HTTP {r.status_code} from {url[:60]}")
        except httpx.TimeoutException:
            last_error = "timeout"
            log.warning(f"[{service}] Timeout (attempt {attempt+1}): {url[:60]}")
        except httpx.HTTPError as e:
            last_error = str(e) or type(e).__name__
            log.warning(f"[{service}] Error (attempt {attempt+1}): {last_error}")
        if attempt < RETRY_ATTEMPTS - 1:
            await asyncio.sleep(retry_delay)
    raise UpstreamUnavailable(f"{url[:60]} failed after {RETRY_ATTEMPTS} attempts: {last_error}",
                              service=service)


# ══════════════════════════════════════════════════════════════
# COINMARKETCAP FETCHER
# ══════════════════════════════════════════════════════════════
class QuoteFetcher:
    """Latest USD price for one symbol from CoinMarketCap."""

    BASE_QUOTE = "https://pro-api.coinmarketcap.com/v2/cryptocurrency/quotes/latest"

    def __init__(self, client: httpx.AsyncClient, api_key: str, convert: str = "USD",
                 retry_delay: float = RETRY_DELAY):
        self.client      = client
        self.api_key     = api_key
        self.convert     = convert
        self.retry_delay = retry_delay

    async def fetch_quote(self, symbol: str) -> Quote:
        if not symbol or not symbol.strip():
            raise InvalidInput("symbol must be non-empty")
        if not self.api_key:
            raise UpstreamUnavailable("COINMARKETCAP_KEY not configured", service="coinmarketcap")
        symbol = symbol.strip().upper()

        r = await _get(
            self.client, self.BASE_QUOTE,
            params={"symbol": symbol, "convert": self.convert},
            headers={"Accepts": "application/json", "X-CMC_PRO_API_KEY": self.api_key},
            service="coinmarketcap", retry_delay=self.retry_delay,
        )
        try:
            payload = r.json()
        except ValueError as e:
            raise MalformedResponse(f"coinmarketcap: non-JSON body for {symbol}", raw=r.text[:200]) from e
        return self.parse_quote(symbol, payload, self.convert)

    @staticmethod
    def parse_quote(symbol: str, payload: dict, convert: str = "USD") -> Quote:
        """
        v2 shape: {"status": {...}, "data": {"BTC": [{"name": ..., "quote": {"USD": {"price": ...}}}]}}
        A symbol can map to several listings; the first is the ranked one.
        """
        if not isinstance(payload, dict):
            raise MalformedResponse(f"coinmarketcap: unexpected body for {symbol}", raw=str(payload)[:200])
        status = payload.get("status")
        if isinstance(status, dict) and status.get("error_code"):
            raise UpstreamUnavailable(
                f"coinmarketcap error {status.get('error_code')}: {status.get('error_message')}",
                service="coinmarketcap",
            )
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            raise MalformedResponse(f"coinmarketcap: data is not an object for {symbol}", raw=str(payload)[:200])
        listings = data.get(symbol) or []
        if isinstance(listings, dict):
            listings = [listings]
        if not isinstance(listings, list) or not listings:
            raise MalformedResponse(f"coinmarketcap: no listing for {symbol}", raw=str(payload)[:200])

        first = listings[0]
        quote = first.get("quote") if isinstance(first, dict) else None
        converted = quote.get(convert) if isinstance(quote, dict) else None
        price = converted.get("price") if isinstance(converted, dict) else None
        try:
            price = float(price)
        except (TypeError, ValueError):
            raise MalformedResponse(f"coinmarketcap: no {convert} price for {symbol}", raw=str(first)[:200])
        if price <= 0:
            raise MalformedResponse(f"coinmarketcap: non-positive price {price} for {symbol}")
        return Quote(symbol=symbol, price=price, name=first.get("name"))


# ══════════════════════════════════════════════════════════════
# FEED FETCHER
# ══════════════════════════════════════════════════════════════
class FeedFetcher:
    """RSS / Atom feed → ordered (title, link) items, in feed order."""

    def __init__(self, client: httpx.AsyncClient, retry_delay: float = RETRY_DELAY):
        self.client      = client
        self.retry_delay = retry_delay

    async def fetch_feed(self, url: str) -> Feed:
        r = await _get(self.client, url, service="feed", retry_delay=self.retry_delay)
        return self.parse_feed(url, r.content)

    @staticmethod
    def parse_feed(url: str, body: bytes) -> Feed:
        parsed = feedparser.parse(body)
        if parsed.bozo and not parsed.entries:
            raise MalformedResponse(f"feed {url[:60]} could not be parsed: {parsed.get('bozo_exception')}")

        items: List[FeedItem] = []
        for entry in parsed.entries:
            link = (entry.get("link") or "").strip()
            if not link:
                continue
            items.append(FeedItem(title=(entry.get("title") or "").strip(), link=link))

        title = (parsed.feed.get("title") or "").strip() or urlparse(url).netloc
        log.debug(f"Feed {title}: {len(items)} items")
        return Feed(url=url, title=title, items=items)


# ══════════════════════════════════════════════════════════════
# ARTICLE SCRAPER
# ══════════════════════════════════════════════════════════════
class ArticleScraper:
    """Downloads an article page and returns the text of every <p>."""

    def __init__(self, client: httpx.AsyncClient, retry_delay: float = RETRY_DELAY):
        self.client      = client
        self.retry_delay = retry_delay

    async def fetch_paragraphs(self, url: str) -> List[str]:
        log.info(f"Visiting {url}")
        r = await _get(self.client, url, service="scrape", retry_delay=self.retry_delay)
        paragraphs = self.extract_paragraphs(r.text)
        log.info(f"Finished {url} ({len(paragraphs)} paragraphs)")
        return paragraphs

    @staticmethod
    def extract_paragraphs(html: str) -> List[str]:
        soup = BeautifulSoup(html, "html.parser")
        out = []
        for p in soup.find_all("p"):
            text = p.get_text(" ", strip=True)
            if text:
                out.append(text)
        return out


def attribution_name(feed_title: Optional[str], link: str) -> str:
    """Who the paraphraser should credit: the feed's title, else the link's host."""
    if feed_title and feed_title.strip():
        return feed_title.strip()
    host = urlparse(link).netloc
    return host[4:] if host.startswith("www.") else host
