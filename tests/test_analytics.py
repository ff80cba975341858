"""Tests for read-only analytics views."""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import T0
from market_engine.analytics import Analytics
from market_engine.errors import InvalidInput, StoreUnavailable
from market_engine.models import Observation, SentimentRecord


async def _obs(store, coin, value, at):
    await store.insert_observation(Observation(coin=coin, value=value, created_at=at))


async def _sent(store, coin, sentiment, source, at):
    await store.insert_sentiment(SentimentRecord(coin=coin, sentiment=sentiment, source=source, created_at=at))


# ── percent_change_24h ─────────────────────────────────────────

@pytest.mark.asyncio
async def test_percent_change_of_two_observations(store, clock):
    await _obs(store, "BTC", 100.0, T0 - timedelta(hours=2))
    await _obs(store, "BTC", 110.0, T0 - timedelta(hours=1))
    assert await Analytics(store, clock).percent_change_24h("BTC") == pytest.approx(10.0)


@pytest.mark.asyncio
async def test_percent_change_uses_only_two_newest(store, clock):
    await _obs(store, "ETH", 1.0, T0 - timedelta(hours=3))
    await _obs(store, "ETH", 200.0, T0 - timedelta(hours=2))
    await _obs(store, "ETH", 150.0, T0 - timedelta(hours=1))
    assert await Analytics(store, clock).percent_change_24h("ETH") == pytest.approx(-25.0)


@pytest.mark.asyncio
async def test_percent_change_needs_two_observations(store, clock):
    analytics = Analytics(store, clock)
    assert await analytics.percent_change_24h("BTC") == 0.0
    await _obs(store, "BTC", 100.0, T0)
    assert await analytics.percent_change_24h("BTC") == 0.0


@pytest.mark.asyncio
async def test_percent_change_previous_zero_is_no_signal(clock):
    store = AsyncMock()
    store.latest_observations.return_value = [
        Observation(coin="BTC", value=5.0, created_at=T0),
        Observation(coin="BTC", value=0.0, created_at=T0 - timedelta(hours=1)),
    ]
    assert await Analytics(store, clock).percent_change_24h("BTC") == 0.0


@pytest.mark.asyncio
async def test_percent_change_store_failure_is_zero(clock):
    store = AsyncMock()
    store.latest_observations.side_effect = StoreUnavailable("down")
    assert await Analytics(store, clock).percent_change_24h("BTC") == 0.0


# ── sentiment_score ────────────────────────────────────────────

@pytest.mark.asyncio
async def test_sentiment_score_sums_window(store, clock):
    for i, s in enumerate([1, -1, 1]):
        await _sent(store, "BTC", s, f"https://a.example/{i}", T0 - timedelta(hours=i + 1))
    await _sent(store, "BTC", -1, "https://a.example/old", T0 - timedelta(hours=30))
    await _sent(store, "ETH", -1, "https://a.example/eth", T0 - timedelta(hours=1))

    assert await Analytics(store, clock).sentiment_score("BTC", 24) == 1


@pytest.mark.asyncio
async def test_sentiment_window_edge_is_exclusive(store, clock):
    await _sent(store, "BTC", 1, "https://a.example/edge", T0 - timedelta(hours=24))
    await _sent(store, "BTC", 1, "https://a.example/inside", T0 - timedelta(hours=24) + timedelta(seconds=1))

    assert await Analytics(store, clock).sentiment_score("BTC", 24) == 1


@pytest.mark.asyncio
async def test_sentiment_empty_window_is_zero(store, clock):
    assert await Analytics(store, clock).sentiment_score("BTC", 24) == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("window", [0, -5])
async def test_sentiment_non_positive_window_fails_fast(store, clock, window):
    with pytest.raises(InvalidInput):
        await Analytics(store, clock).sentiment_score("BTC", window)


@pytest.mark.asyncio
async def test_sentiment_empty_symbol_fails_fast(store, clock):
    with pytest.raises(InvalidInput):
        await Analytics(store, clock).sentiment_score("", 24)


# ── historical_window ──────────────────────────────────────────

@pytest.mark.asyncio
async def test_historical_window_is_newest_first_and_strict(store, clock):
    since = T0 - timedelta(hours=10)
    await _obs(store, "BTC", 1.0, since)
    await _obs(store, "BTC", 2.0, since + timedelta(hours=1))
    await _obs(store, "BTC", 3.0, since + timedelta(hours=2))

    window = await Analytics(store, clock).historical_window("BTC", since.timestamp())
    assert [o.value for o in window] == [3.0, 2.0]


@pytest.mark.asyncio
async def test_historical_window_is_bounded(store, clock):
    for i in range(5):
        await _obs(store, "BTC", float(i + 1), T0 - timedelta(hours=i))
    window = await Analytics(store, clock).historical_window(
        "BTC", (T0 - timedelta(days=1)).timestamp(), limit=3)
    assert [o.value for o in window] == [1.0, 2.0, 3.0]


# ── recent_non_neutral_sources ─────────────────────────────────

@pytest.mark.asyncio
async def test_recent_non_neutral_sources(store, clock):
    for i in range(15):
        s = 0 if i % 3 == 0 else (1 if i % 2 else -1)
        await _sent(store, "BTC", s, f"https://a.example/{i}", T0 + timedelta(minutes=i))

    sources = await Analytics(store, clock).recent_non_neutral_sources(limit=10)
    assert len(sources) == 10
    expected = [f"https://a.example/{i}" for i in range(14, -1, -1) if i % 3 != 0][:10]
    assert sources == expected


@pytest.mark.asyncio
async def test_recent_non_neutral_sources_store_failure(clock):
    store = AsyncMock()
    store.recent_non_neutral_sources.side_effect = StoreUnavailable("down")
    assert await Analytics(store, clock).recent_non_neutral_sources() == []
