"""Tests for the SQL store on in-memory SQLite."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import inspect

from conftest import T0
from ingestion.database import Store, exchange_rates, rss_posts, sentiments
from market_engine.errors import InvalidInput, StoreUnavailable
from market_engine.models import Observation, SeenArticle, SentimentRecord


def test_table_columns_match_persisted_schema():
    assert [c.name for c in exchange_rates.columns] == ["coin", "value", "created_at"]
    assert [c.name for c in sentiments.columns] == ["id", "created_at", "coin", "sentiment", "source"]
    assert [c.name for c in rss_posts.columns] == ["url", "created_at"]


@pytest.mark.asyncio
async def test_init_db_is_repeatable(store):
    await store.init_db()
    async with store.engine.connect() as conn:
        names = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    assert {"exchange_rates", "sentiments", "rss_posts"} <= set(names)
    assert await store.ping()


@pytest.mark.asyncio
async def test_latest_observations_newest_first(store):
    for i, v in enumerate([10.0, 20.0, 30.0]):
        await store.insert_observation(Observation("btc", v, T0 + timedelta(minutes=i)))
    rows = await store.latest_observations("BTC", limit=2)
    assert [r.value for r in rows] == [30.0, 20.0]
    assert all(r.coin == "BTC" for r in rows)
    assert rows[0].created_at.tzinfo is not None


@pytest.mark.asyncio
async def test_naive_timestamps_are_read_as_utc(store):
    naive = datetime(2024, 3, 10, 8, 30)
    await store.insert_observation(Observation("ETH", 1.5, naive))
    obs = await store.latest_observation("ETH")
    assert obs.created_at == naive.replace(tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_insert_observation_rejects_bad_input(store):
    with pytest.raises(InvalidInput):
        await store.insert_observation(Observation("BTC", 0.0, T0))
    with pytest.raises(InvalidInput):
        await store.insert_observation(Observation("", 1.0, T0))


@pytest.mark.asyncio
async def test_mark_seen_is_idempotent(store):
    assert not await store.is_seen("https://a.example/1")
    assert await store.mark_seen("https://a.example/1") is True
    assert await store.mark_seen("https://a.example/1") is False
    assert await store.is_seen("https://a.example/1")


@pytest.mark.asyncio
async def test_sentiments_since_filters_coin_and_time(store):
    await store.insert_sentiment(SentimentRecord("BTC", 1, "https://a/1", T0 - timedelta(hours=2)))
    await store.insert_sentiment(SentimentRecord("BTC", -1, "https://a/2", T0 - timedelta(hours=30)))
    await store.insert_sentiment(SentimentRecord("ETH", 1, "https://a/3", T0 - timedelta(hours=1)))

    rows = await store.sentiments_since("BTC", T0 - timedelta(hours=24))
    assert [r.source for r in rows] == ["https://a/1"]
    assert rows[0].id is not None


def test_sentiment_record_rejects_out_of_range():
    with pytest.raises(ValueError):
        SentimentRecord("BTC", 2, "https://a/1", T0)


@pytest.mark.asyncio
async def test_unreachable_database_raises_store_unavailable(tmp_path):
    missing_dir = tmp_path / "does-not-exist" / "db.sqlite"
    store = Store.from_url(f"sqlite+aiosqlite:///{missing_dir}")
    with pytest.raises(StoreUnavailable):
        await store.latest_observations("BTC")
    assert not await store.ping()
    await store.dispose()


@pytest.mark.asyncio
async def test_seen_article_carries_when_it_was_marked(store):
    assert await store.seen_article("https://a.example/2") is None
    await store.mark_seen("https://a.example/2", at=T0)
    assert await store.seen_article("https://a.example/2") == SeenArticle("https://a.example/2", T0)
