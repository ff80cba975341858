"""Tests for the one-shot CLI runner."""
import httpx
import pytest

from ingestion.database import Store
from ingestion.ingestion_engine import run_mode
from market_engine.config import Settings
from market_engine.services import build_services
from oracles.llm import AnthropicOracle


def cmc(request: httpx.Request) -> httpx.Response:
    if "coinmarketcap" not in request.url.host:
        return httpx.Response(404)
    symbol = request.url.params["symbol"]
    return httpx.Response(200, json={
        "status": {"error_code": 0},
        "data": {symbol: [{"name": symbol, "quote": {"USD": {"price": 10.0}}}]},
    })


def make_services(settings):
    return build_services(
        settings,
        store=Store.from_url("sqlite+aiosqlite:///:memory:"),
        http=httpx.AsyncClient(transport=httpx.MockTransport(cmc)),
        oracle=AnthropicOracle(api_key=""),
    )


@pytest.mark.asyncio
async def test_values_mode_refreshes_tracked_coins():
    settings = Settings(coinmarketcap_key="k", tracked_coins=("BTC", "ETH"), coin_pacing_s=0)
    result = await run_mode("values", settings, services=make_services(settings))

    assert result["status"] == "completed"
    assert result["mode"] == "values"
    assert result["refreshed"] == 2


@pytest.mark.asyncio
async def test_init_db_mode():
    settings = Settings()
    result = await run_mode("init-db", settings, services=make_services(settings))
    assert result == {"mode": "init-db", "status": "completed"}


@pytest.mark.asyncio
async def test_feeds_mode_survives_unreachable_feeds():
    settings = Settings(feed_urls=("https://feeds.example/rss",), feed_item_pacing_s=0)
    result = await run_mode("feeds", settings, services=make_services(settings))

    assert result["status"] == "completed"
    assert result["feed_errors"] == 1
    assert result["published"] == 0
