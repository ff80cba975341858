"""
Crypto Bunker — Configuration
───────────────────────────────
Everything deployment-specific comes from the environment (or a .env
file next to the process). Components never read os.environ themselves;
they receive the values they need from a Settings instance.

Environment variables:
  DATABASE_URL        — sqlalchemy async URL (postgresql+asyncpg://… in prod)
  COINMARKETCAP_KEY   — quote API key
  ANTHROPIC_API_KEY   — text-generation oracle
  ANTHROPIC_MODEL     — model name for the oracle
  UNSPLASH_ACCESS_KEY — image oracle
  GHOST_ADMIN_URL     — blog base URL
  GHOST_ADMIN_KEY     — Ghost admin key, "<id>:<hex secret>"
  TRACKED_COINS       — comma-separated symbols refreshed every 15 min
  FORECAST_COINS      — comma-separated symbols for the weekly forecast
  FORECAST_DESCRIBE   — add an LLM-written summary to forecast posts (off)
  SENTIMENT_COIN      — coin every headline is scored against
  FEED_URLS           — comma-separated RSS/Atom feeds
  FRESHNESS_HOURS     — value cache window
  COIN_PACING_S       — delay between coins in the refresh job
  FEED_ITEM_PACING_S  — delay between article scrapes
  REQUEST_TIMEOUT_S   — per external call
  SCHEDULER_ENABLED   — start the periodic jobs with the web service
  PORT, LOG_LEVEL
"""

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import List, Mapping, Optional, Tuple

from dotenv import load_dotenv

from market_engine.cache.ttl_config import FRESHNESS_WINDOW, PACING, REQUEST_TIMEOUT

log = logging.getLogger("cb.config")

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///cryptobunker.db"
DEFAULT_MODEL        = "claude-sonnet-4-20250514"
DEFAULT_GHOST_URL    = "https://cryptobunker.org"

DEFAULT_TRACKED_COINS = (
    "BTC", "ETH", "LTC", "DOGE", "SHIB", "LINK", "XMR", "SOL", "USDT", "XTZ",
)
DEFAULT_FORECAST_COINS = ("BTC", "ETH", "LTC")

DEFAULT_FEEDS = (
    "https://www.coindesk.com/feed",
    "https://cointelegraph.com/rss",
    "https://cryptopotato.com/feed",
    "https://cryptoslate.com/feed",
    "https://cryptonews.com/feed",
    "https://cryptobriefing.com/feed",
    "https://cryptocurrencynews.com/feed",
)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _csv(raw: Optional[str], default: Tuple[str, ...], upper: bool = False) -> Tuple[str, ...]:
    if not raw:
        return default
    items = [s.strip() for s in raw.split(",") if s.strip()]
    if upper:
        items = [s.upper() for s in items]
    # order-preserving dedup
    return tuple(dict.fromkeys(items)) or default


def _bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url:        str = DEFAULT_DATABASE_URL
    coinmarketcap_key:   str = ""
    anthropic_api_key:   str = ""
    anthropic_model:     str = DEFAULT_MODEL
    unsplash_access_key: str = ""
    ghost_admin_url:     str = DEFAULT_GHOST_URL
    ghost_admin_key:     str = ""
    tracked_coins:       Tuple[str, ...] = DEFAULT_TRACKED_COINS
    forecast_coins:      Tuple[str, ...] = DEFAULT_FORECAST_COINS
    forecast_describe:   bool = False
    sentiment_coin:      str = "BTC"
    feed_urls:           Tuple[str, ...] = DEFAULT_FEEDS
    freshness_window:    timedelta = FRESHNESS_WINDOW
    coin_pacing_s:       float = float(PACING["coin_refresh"])
    feed_item_pacing_s:  float = float(PACING["feed_item"])
    request_timeout_s:   float = float(REQUEST_TIMEOUT)
    scheduler_enabled:   bool = True
    port:                int = 8080
    log_level:           str = "INFO"

    def missing_credentials(self) -> List[str]:
        """Names of credentials that are unset — the matching oracle will refuse calls."""
        pairs = [
            ("COINMARKETCAP_KEY",   self.coinmarketcap_key),
            ("ANTHROPIC_API_KEY",   self.anthropic_api_key),
            ("UNSPLASH_ACCESS_KEY", self.unsplash_access_key),
            ("GHOST_ADMIN_KEY",     self.ghost_admin_key),
        ]
        return [name for name, value in pairs if not value]


def load_settings(env: Optional[Mapping[str, str]] = None, dotenv: bool = True) -> Settings:
    """
    Build Settings from the environment.
    Pass `env` to read from a plain mapping instead (tests).
    """
    if env is None:
        if dotenv:
            load_dotenv()
        env = os.environ

    settings = Settings(
        database_url        = env.get("DATABASE_URL", DEFAULT_DATABASE_URL),
        coinmarketcap_key   = env.get("COINMARKETCAP_KEY", ""),
        anthropic_api_key   = env.get("ANTHROPIC_API_KEY", ""),
        anthropic_model     = env.get("ANTHROPIC_MODEL", DEFAULT_MODEL),
        unsplash_access_key = env.get("UNSPLASH_ACCESS_KEY", ""),
        ghost_admin_url     = env.get("GHOST_ADMIN_URL", DEFAULT_GHOST_URL).rstrip("/"),
        ghost_admin_key     = env.get("GHOST_ADMIN_KEY", ""),
        tracked_coins       = _csv(env.get("TRACKED_COINS"), DEFAULT_TRACKED_COINS, upper=True),
        forecast_coins      = _csv(env.get("FORECAST_COINS"), DEFAULT_FORECAST_COINS, upper=True),
        forecast_describe   = _bool(env.get("FORECAST_DESCRIBE"), False),
        sentiment_coin      = (env.get("SENTIMENT_COIN") or "BTC").strip().upper(),
        feed_urls           = _csv(env.get("FEED_URLS"), DEFAULT_FEEDS),
        freshness_window    = timedelta(hours=float(env.get("FRESHNESS_HOURS", "4"))),
        coin_pacing_s       = float(env.get("COIN_PACING_S", PACING["coin_refresh"])),
        feed_item_pacing_s  = float(env.get("FEED_ITEM_PACING_S", PACING["feed_item"])),
        request_timeout_s   = float(env.get("REQUEST_TIMEOUT_S", REQUEST_TIMEOUT)),
        scheduler_enabled   = _bool(env.get("SCHEDULER_ENABLED"), True),
        port                = int(env.get("PORT", "8080")),
        log_level           = env.get("LOG_LEVEL", "INFO").upper(),
    )

    missing = settings.missing_credentials()
    if missing:
        log.warning(f"Credentials not set: {', '.join(missing)} — those services will be unavailable")
    return settings


def configure_logging(level: str = "INFO") -> None:
    """Root format for bare processes; the cb.* level applies even under uvicorn's own config."""
    numeric = getattr(logging, level, logging.INFO)
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger("cb").setLevel(numeric)
