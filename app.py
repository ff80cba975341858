import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware

from market_engine.cache.ttl_config import DEFAULT_SENTIMENT_WINDOW_H
from market_engine.config import Settings, configure_logging, load_settings
from market_engine.errors import InvalidInput, StoreUnavailable
from market_engine.orchestrator.scheduler import JobScheduler
from market_engine.services import Services, build_services

log = logging.getLogger("cb.app")


def create_app(settings: Optional[Settings] = None,
               services_factory: Optional[Callable[[Settings], Services]] = None) -> FastAPI:
    """
    Build the web service. The scheduler starts with the app when
    SCHEDULER_ENABLED is set; otherwise the jobs only run on demand.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or load_settings()
        configure_logging(cfg.log_level)
        services = (services_factory or build_services)(cfg)
        try:
            await services.store.init_db()
        except StoreUnavailable as e:
            log.error(f"Database not ready at startup: {e}")
        scheduler = JobScheduler(services)
        if cfg.scheduler_enabled:
            scheduler.start()
        app.state.services  = services
        app.state.scheduler = scheduler
        app.state.tasks     = set()
        yield
        scheduler.stop()
        await services.close()

    app = FastAPI(
        title="Crypto Bunker",
        description="Cached crypto prices, sentiment analytics and the news/forecast jobs behind cryptobunker.org.",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        return {"status": "ok", "docs": "/docs", "api": "/api/value/BTC"}

    @app.get("/health")
    async def health(request: Request):
        db_ok = await request.app.state.services.store.ping()
        return {
            "status": "ok",
            "database": "connected" if db_ok else "unavailable",
            "timestamp": int(time.time()),
        }

    @app.get("/api/value/{symbol}", tags=["Values"])
    async def get_value(symbol: str, request: Request):
        services = request.app.state.services
        try:
            lookup = await services.value_cache.get_value(symbol)
        except InvalidInput as e:
            raise HTTPException(400, str(e))
        return lookup.to_dict()

    @app.get("/api/analytics/{symbol}", tags=["Analytics"])
    async def get_analytics(
        symbol: str,
        request: Request,
        window_hours: float = Query(DEFAULT_SENTIMENT_WINDOW_H, description="Sentiment window in hours"),
        chatter: int = Query(10, description="How many recent non-neutral sources to list"),
    ):
        analytics = request.app.state.services.analytics
        symbol = symbol.strip().upper()
        try:
            return {
                "symbol":          symbol,
                "change_24h":      await analytics.percent_change_24h(symbol),
                "sentiment":       await analytics.sentiment_score(symbol, window_hours),
                "window_hours":    window_hours,
                "chatter":         await analytics.recent_non_neutral_sources(chatter),
                "timestamp":       int(time.time()),
            }
        except InvalidInput as e:
            raise HTTPException(400, str(e))

    @app.get("/api/scheduler", tags=["Jobs"])
    async def scheduler_status(request: Request):
        return request.app.state.scheduler.status()

    @app.post("/api/jobs/{job_id}", tags=["Jobs"])
    async def trigger_job(job_id: str, request: Request):
        """Manually trigger an out-of-schedule run (skipped if that job is already running)."""
        scheduler = request.app.state.scheduler
        if not scheduler.has_job(job_id):
            raise HTTPException(404, f"Unknown job {job_id}")
        if scheduler.is_busy(job_id):
            return {"triggered": False, "job": job_id, "reason": "already running"}
        task = asyncio.create_task(scheduler.run_job(job_id))
        request.app.state.tasks.add(task)
        task.add_done_callback(request.app.state.tasks.discard)
        return {"triggered": True, "job": job_id}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = load_settings()
    uvicorn.run("app:app", host="0.0.0.0", port=settings.port, reload=False, log_level="info")
