"""Tests for the FastAPI service."""
import logging

import httpx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from ingestion.database import Store
from market_engine.config import Settings
from market_engine.services import build_services
from oracles.llm import AnthropicOracle

CMC = {
    "status": {"error_code": 0},
    "data": {"BTC": [{"name": "Bitcoin", "quote": {"USD": {"price": 50000.0}}}]},
}


def cmc_handler(request: httpx.Request) -> httpx.Response:
    if "coinmarketcap" in request.url.host:
        symbol = request.url.params["symbol"]
        if symbol in CMC["data"]:
            return httpx.Response(200, json=CMC)
        return httpx.Response(200, json={"status": {"error_code": 0}, "data": {}})
    return httpx.Response(404)


@pytest.fixture
def client():
    settings = Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        coinmarketcap_key="test-key",
        scheduler_enabled=False,
    )

    def factory(cfg):
        return build_services(
            cfg,
            store=Store.from_url(cfg.database_url),
            http=httpx.AsyncClient(transport=httpx.MockTransport(cmc_handler)),
            oracle=AnthropicOracle(api_key=""),
        )

    with TestClient(create_app(settings, services_factory=factory)) as c:
        yield c


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert r.json()["database"] == "connected"


def test_value_refreshed_then_cached(client):
    first = client.get("/api/value/btc").json()
    assert first["status"] == "refreshed"
    assert first["value"] == 50000.0

    second = client.get("/api/value/BTC").json()
    assert second["status"] == "hit"
    assert second["value"] == 50000.0


def test_unknown_symbol_is_missing_not_zero(client):
    body = client.get("/api/value/NOPE").json()
    assert body["status"] == "missing"
    assert body["value"] is None
    assert body["error"]


def test_analytics(client):
    client.get("/api/value/BTC")
    body = client.get("/api/analytics/btc").json()
    assert body["symbol"] == "BTC"
    assert body["change_24h"] == 0.0
    assert body["sentiment"] == 0
    assert body["chatter"] == []


def test_analytics_rejects_non_positive_window(client):
    r = client.get("/api/analytics/BTC", params={"window_hours": 0})
    assert r.status_code == 400


def test_scheduler_status_when_disabled(client):
    assert client.get("/api/scheduler").json() == {"running": False, "jobs": []}


def test_trigger_unknown_job(client):
    assert client.post("/api/jobs/nope").status_code == 404


def test_startup_configures_job_logging():
    cb = logging.getLogger("cb")
    previous = cb.level
    settings = Settings(database_url="sqlite+aiosqlite:///:memory:",
                        scheduler_enabled=False, log_level="DEBUG")

    def factory(cfg):
        return build_services(cfg, store=Store.from_url(cfg.database_url),
                              http=httpx.AsyncClient(transport=httpx.MockTransport(cmc_handler)),
                              oracle=AnthropicOracle(api_key=""))

    try:
        with TestClient(create_app(settings, services_factory=factory)):
            assert cb.getEffectiveLevel() == logging.DEBUG
    finally:
        cb.setLevel(previous)
