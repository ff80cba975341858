"""
Crypto Bunker — Ghost Publisher
─────────────────────────────────
Creates posts through the Ghost Admin API.

Auth: the admin key is "<id>:<hex secret>". Every request carries a
freshly minted HS256 JWT (kid = id, aud = /admin/, 5 minute expiry),
so there is no token state to refresh or leak between calls.
"""

import logging
import time
from typing import Callable, Optional

import httpx
import jwt

from market_engine.errors import InvalidInput, UpstreamUnavailable
from oracles.base import Post

log = logging.getLogger("cb.oracles.publisher")

TOKEN_TTL_S = 5 * 60


def mint_admin_token(admin_key: str, now: Optional[float] = None) -> str:
    try:
        key_id, secret = admin_key.split(":", 1)
        secret_bytes = bytes.fromhex(secret)
    except ValueError as e:
        raise InvalidInput("GHOST_ADMIN_KEY must look like '<id>:<hex secret>'") from e

    iat = int(now if now is not None else time.time())
    return jwt.encode(
        {"iat": iat, "exp": iat + TOKEN_TTL_S, "aud": "/admin/"},
        secret_bytes,
        algorithm="HS256",
        headers={"kid": key_id},
    )


class GhostPublisher:

    def __init__(self, client: httpx.AsyncClient, admin_url: str, admin_key: str,
                 clock: Callable[[], float] = time.time):
        self.client    = client
        self.admin_url = admin_url.rstrip("/")
        self.admin_key = admin_key
        self._clock    = clock

    @property
    def posts_url(self) -> str:
        return f"{self.admin_url}/ghost/api/admin/posts/?source=html"

    async def publish(self, post: Post) -> dict:
        if not self.admin_key:
            raise UpstreamUnavailable("GHOST_ADMIN_KEY not configured", service="ghost")
        token = mint_admin_token(self.admin_key, now=self._clock())
        try:
            r = await self.client.post(
                self.posts_url,
                json={"posts": [post.to_dict()]},
                headers={"Authorization": f"Ghost {token}", "Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"ghost: {e}", service="ghost") from e

        if r.status_code not in (200, 201):
            raise UpstreamUnavailable(f"ghost: HTTP {r.status_code} {r.text[:120]}", service="ghost")
        try:
            created = r.json()["posts"][0]
        except (ValueError, KeyError, IndexError, TypeError):
            created = {}
        log.info(f"Published '{post.title[:60]}' (featured={post.featured}) → {created.get('url', '?')}")
        return created
