"""
Crypto Bunker — Image Oracle
──────────────────────────────
Random illustrative photo from Unsplash for a search query.
Only ever decorative: callers publish without an image on failure.
"""

import logging

import httpx

from market_engine.errors import MalformedResponse, UpstreamUnavailable

log = logging.getLogger("cb.oracles.images")


class UnsplashImages:

    RANDOM_URL = "https://api.unsplash.com/photos/random"

    def __init__(self, client: httpx.AsyncClient, access_key: str, size: str = "small"):
        self.client     = client
        self.access_key = access_key
        self.size       = size

    async def image_url(self, query: str) -> str:
        if not self.access_key:
            raise UpstreamUnavailable("UNSPLASH_ACCESS_KEY not configured", service="unsplash")
        try:
            r = await self.client.get(
                self.RANDOM_URL,
                params={"query": query},
                headers={"Authorization": f"Client-ID {self.access_key}", "Accept-Version": "v1"},
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"unsplash: {e}", service="unsplash") from e
        if r.status_code != 200:
            raise UpstreamUnavailable(f"unsplash: HTTP {r.status_code}", service="unsplash")

        try:
            url = r.json()["urls"][self.size]
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedResponse(f"unsplash: no {self.size} url in reply", raw=r.text[:200]) from e
        if not url:
            raise MalformedResponse("unsplash: empty image url")
        log.debug(f"Unsplash image for {query!r}: {url}")
        return url
