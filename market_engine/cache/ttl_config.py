"""
Crypto Bunker — Durations & Windows
─────────────────────────────────────
Single source of truth for every duration the jobs rely on.
Organised by what the number protects: upstream quota, scraping
etiquette, or the size of the context handed to an oracle.
"""

from datetime import timedelta

# ── Value cache ───────────────────────────────────────────────
# An observation younger than this is served without calling the
# quote API (CoinMarketCap charges credits per call).
FRESHNESS_WINDOW = timedelta(hours=4)

# ── Pacing (seconds between consecutive calls) ───────────────
PACING = {
    "coin_refresh": 10,   # between coins in the value refresh job
    "feed_item":    30,   # between article scrapes of the same feed
}

# ── Per-call timeout (seconds) ───────────────────────────────
REQUEST_TIMEOUT = 30

# ── Ingestion ─────────────────────────────────────────────────
SOURCE_TEXT_LIMIT = 2048   # chars of article text sent to the paraphraser

# ── Analytics ─────────────────────────────────────────────────
DEFAULT_SENTIMENT_WINDOW_H = 24
CHATTER_LIMIT              = 10

# ── Forecast ──────────────────────────────────────────────────
# Hours of history sent to the forecast oracle, and a hard cap on how
# many samples that may be.
FORECAST_HISTORY_H   = 1000
FORECAST_MAX_SAMPLES = 1000
FORECAST_HORIZONS    = ("1 week", "1 month", "3 months")

# ── Scheduler intervals ──────────────────────────────────────
JOB_INTERVALS = {
    "value_refresh": timedelta(minutes=15),
    "feed_check":    timedelta(minutes=1),
}
WEEKLY_FORECAST_CRON = {"day_of_week": "sun", "hour": 9, "minute": 0}
