"""
Crypto Bunker — Job Scheduler
═══════════════════════════════════════════════════════════════════════

Three independent jobs on APScheduler's asyncio scheduler:

  every 15 min   VALUE REFRESH
                 ├─ Why:  keeps every tracked coin inside the 4h freshness
                 │        window so readers rarely pay for a quote call
                 └─ Pace: 10s between coins

  every 1 min    FEED CHECK
                 ├─ Why:  new articles get posted within minutes
                 └─ Pace: 30s between article scrapes

  Sun 09:00 UTC  WEEKLY FORECAST
                 └─ featured "Weekly <COIN>" post per forecast coin

Overlap: the same job never runs twice at once. APScheduler enforces
it for scheduled ticks (max_instances=1, coalesce), and a per-job lock
covers manual triggers: a run that finds its job busy is skipped, not
queued. Different jobs may interleave freely.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from market_engine.cache.ttl_config import JOB_INTERVALS, WEEKLY_FORECAST_CRON
from market_engine.errors import JobCancelled
from market_engine.orchestrator.jobs import (
    check_feeds_and_post, post_predictions, refresh_all_values,
)

log = logging.getLogger("cb.scheduler")

GRACE_S = 300   # 5-minute misfire grace window

JobFunc = Callable[..., Awaitable[Dict]]

# ═════════════════════════════════════════════════════════════
# JOB REGISTRY
# (func, trigger, job_id, display_name)
# ═════════════════════════════════════════════════════════════

_JOBS = [
    (refresh_all_values,
     IntervalTrigger(seconds=JOB_INTERVALS["value_refresh"].total_seconds()),
     "value_refresh", "every 15 min  Value refresh — tracked coins"),
    (check_feeds_and_post,
     IntervalTrigger(seconds=JOB_INTERVALS["feed_check"].total_seconds()),
     "feed_check", "every 1 min   Feed check — paraphrase, score, post"),
    (post_predictions,
     CronTrigger(timezone="UTC", **WEEKLY_FORECAST_CRON),
     "weekly_forecast", "Sun 09:00 UTC Weekly forecast — featured posts"),
]


class JobScheduler:

    def __init__(self, services, jobs=None):
        self.services   = services
        self.jobs       = list(jobs if jobs is not None else _JOBS)
        self._funcs: Dict[str, JobFunc] = {job_id: func for func, _, job_id, _ in self.jobs}
        self._locks: Dict[str, asyncio.Lock] = {job_id: asyncio.Lock() for job_id in self._funcs}
        self._last: Dict[str, dict] = {}
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._is_running = False

    @property
    def running(self) -> bool:
        return self._is_running

    def has_job(self, job_id: str) -> bool:
        return job_id in self._funcs

    def is_busy(self, job_id: str) -> bool:
        return self._locks[job_id].locked()

    # ─────────────────────────────────────────────────────────
    # GUARDED RUN
    # ─────────────────────────────────────────────────────────
    async def run_job(self, job_id: str) -> Optional[Dict]:
        """Run one job now unless it is already running. Returns its stats, or None if skipped."""
        if not self.has_job(job_id):
            raise KeyError(f"unknown job {job_id!r}")
        lock = self._locks[job_id]
        if lock.locked():
            log.warning(f"[{job_id}] previous run still in progress — skipped")
            self._last[job_id] = {"status": "skipped", "at": time.time()}
            return None

        async with lock:
            t0 = time.monotonic()
            try:
                stats = await self._funcs[job_id](self.services, self.services.token)
            except JobCancelled as e:
                log.info(f"[{job_id}] cancelled: {e}")
                self._last[job_id] = {"status": "cancelled", "at": time.time()}
                return None
            self._last[job_id] = {
                "status":  "completed",
                "at":      time.time(),
                "elapsed": round(time.monotonic() - t0, 1),
            }
            return stats

    # ─────────────────────────────────────────────────────────
    # SCHEDULER CONTROL
    # ─────────────────────────────────────────────────────────
    def start(self):
        if self._is_running:
            log.warning("Scheduler already running — ignoring start call")
            return

        self._scheduler = AsyncIOScheduler(timezone="UTC")
        log.info("Job scheduler — registering jobs:")
        for (_, trigger, job_id, name) in self.jobs:
            self._scheduler.add_job(
                self.run_job,
                trigger,
                args                = [job_id],
                id                  = job_id,
                name                = name,
                max_instances       = 1,
                coalesce            = True,
                misfire_grace_time  = GRACE_S,
                replace_existing    = True,
            )
            log.info(f"  {name}")

        self._scheduler.start()
        self._is_running = True
        log.info(f"Scheduler live — {len(self.jobs)} jobs registered")

    def stop(self):
        if self._scheduler and self._is_running:
            self._scheduler.shutdown(wait=False)
            self._is_running = False
            log.info("Scheduler stopped")

    def status(self) -> dict:
        if not self._scheduler or not self._is_running:
            return {"running": False, "jobs": []}

        jobs = []
        for job in self._scheduler.get_jobs():
            nxt = job.next_run_time
            jobs.append({
                "id":       job.id,
                "name":     job.name,
                "next_run": nxt.isoformat() if nxt else None,
                "busy":     self.is_busy(job.id),
                "last":     self._last.get(job.id),
            })
        jobs.sort(key=lambda j: j["next_run"] or "9999")
        return {"running": True, "job_count": len(jobs), "jobs": jobs}
