"""
Crypto Bunker — Job Bodies
────────────────────────────
The three periodic jobs, each one strictly sequential:

  refresh_all_values    every tracked coin through the value cache, 10s apart
  check_feeds_and_post  every feed through the ingestion pipeline
  post_predictions      weekly forecast post per forecast coin

Each returns a stats dict and never raises for upstream or store
trouble; JobCancelled is the only way out mid-run.
"""

import logging
import time
from typing import Dict, Optional

from market_engine.models import LookupStatus
from market_engine.orchestrator.cancellation import CancelToken

log = logging.getLogger("cb.jobs")


async def refresh_all_values(services, token: Optional[CancelToken] = None) -> Dict:
    token = token or services.token
    coins = services.settings.tracked_coins
    t0 = time.monotonic()
    stats = {status.value: 0 for status in LookupStatus}
    stats["coins"] = len(coins)

    log.info(f"[value_refresh] Starting — {len(coins)} coins")
    for coin in coins:
        await services.coin_pacer.wait(token)
        lookup = await services.value_cache.get_value(coin, token)
        stats[lookup.status.value] += 1

    stats["elapsed_seconds"] = round(time.monotonic() - t0, 1)
    log.info(
        f"[value_refresh] Done — hit={stats['hit']} refreshed={stats['refreshed']} "
        f"stale={stats['stale']} missing={stats['missing']} {stats['elapsed_seconds']}s"
    )
    return stats


async def check_feeds_and_post(services, token: Optional[CancelToken] = None) -> Dict:
    token = token or services.token
    stats = await services.pipeline.run_all(services.settings.feed_urls, token)
    stats["reports"] = [r.to_dict() for r in stats["reports"]]
    return stats


async def post_predictions(services, token: Optional[CancelToken] = None) -> Dict:
    token = token or services.token
    return await services.forecaster.run(services.settings.forecast_coins, token)
