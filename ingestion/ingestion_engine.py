"""
Crypto Bunker — Ingestion Engine
──────────────────────────────────
One-shot and long-running entry point for the background jobs:

  python -m ingestion.ingestion_engine --mode init-db
  python -m ingestion.ingestion_engine --mode values     # refresh tracked coins once
  python -m ingestion.ingestion_engine --mode feeds      # one pass over every feed
  python -m ingestion.ingestion_engine --mode forecast   # weekly forecast posts now
  python -m ingestion.ingestion_engine --mode schedule   # run all jobs forever

Ctrl-C cancels the running job at its current step.
"""

import argparse
import asyncio
import json
import logging
import signal
from typing import Dict, Optional

from market_engine.config import Settings, configure_logging, load_settings
from market_engine.errors import JobCancelled, StoreUnavailable
from market_engine.orchestrator.jobs import (
    check_feeds_and_post, post_predictions, refresh_all_values,
)
from market_engine.orchestrator.scheduler import JobScheduler
from market_engine.services import Services, build_services

log = logging.getLogger("cb.ingestion.engine")

MODES = {
    "values":   refresh_all_values,
    "feeds":    check_feeds_and_post,
    "forecast": post_predictions,
}


def _install_signal_handlers(services: Services) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, services.token.cancel, f"signal {sig.name}")
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl-C still interrupts
            log.debug(f"No handler for {sig.name} on this event loop")


async def run_scheduled(services: Services) -> None:
    """Run every job on its schedule until cancelled."""
    scheduler = JobScheduler(services)
    scheduler.start()
    try:
        await services.token.wait()
        log.info(f"Shutting down scheduler: {services.token.reason}")
    finally:
        scheduler.stop()


async def run_mode(mode: str, settings: Optional[Settings] = None,
                   services: Optional[Services] = None) -> Dict:
    settings = settings or load_settings()
    services = services or build_services(settings)
    _install_signal_handlers(services)

    log.info(f"═══ Starting mode={mode} ═══")
    try:
        await services.store.init_db()
        if mode == "init-db":
            return {"mode": mode, "status": "completed"}
        if mode == "schedule":
            await run_scheduled(services)
            return {"mode": mode, "status": "stopped"}

        stats = await MODES[mode](services, services.token)
        stats.update(mode=mode, status="completed")
        return stats
    except JobCancelled as e:
        log.warning(f"Run cancelled: {e}")
        return {"mode": mode, "status": "cancelled", "notes": str(e)}
    except StoreUnavailable as e:
        log.error(f"Store unavailable: {e}")
        return {"mode": mode, "status": "failed", "notes": str(e)}
    finally:
        await services.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Crypto Bunker background jobs")
    parser.add_argument(
        "--mode",
        choices=["feeds", "values", "forecast", "schedule", "init-db"],
        default="feeds",
        help=(
            "feeds=one pass over every feed  "
            "values=refresh tracked coins  "
            "forecast=post weekly forecasts now  "
            "schedule=run forever  "
            "init-db=create tables"
        )
    )
    args = parser.parse_args(argv)

    settings = load_settings()
    configure_logging(settings.log_level)

    result = asyncio.run(run_mode(args.mode, settings))
    print(f"\nResult: {json.dumps(result, indent=2, default=str)}")
    return 0 if result.get("status") != "failed" else 1


if __name__ == "__main__":
    raise SystemExit(main())
