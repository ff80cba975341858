"""Tests for oracle reply parsing."""
import pytest

from ingestion.classifiers import clean_reply, parse_price_reply, parse_sentiment_reply, source_text
from market_engine.errors import MalformedResponse


@pytest.mark.parametrize("reply,expected", [
    ("1", 1), ("-1", -1), ("0", 0), (" 1\n", 1), ("+1", 1), ("'-1'", -1), ("**0**", 0), ("1.", 1),
])
def test_sentiment_accepts_bare_integers(reply, expected):
    assert parse_sentiment_reply(reply) == expected


@pytest.mark.parametrize("reply", ["2", "-3", "positive", "", "1 or 0", "0.5", None])
def test_sentiment_rejects_anything_else(reply):
    with pytest.raises(MalformedResponse):
        parse_sentiment_reply(reply)


@pytest.mark.parametrize("reply,expected", [
    ("64250", 64250.0),
    ("64250.75", 64250.75),
    ("$64,250.10", 64250.10),
    ("64250 USD", 64250.0),
    ("  71000\n", 71000.0),
    ("~70000", 70000.0),
])
def test_price_reply_parsed(reply, expected):
    assert parse_price_reply(reply) == pytest.approx(expected)


@pytest.mark.parametrize("reply", ["", "I cannot predict prices", "between 60000 and 70000", "-5", "0"])
def test_price_reply_rejected(reply):
    with pytest.raises(MalformedResponse):
        parse_price_reply(reply)


def test_source_text_joins_and_caps():
    text = source_text(["First.", "  ", "Second."])
    assert text == "First.\n\nSecond."
    assert len(source_text(["a" * 5000])) == 2048
    assert source_text([]) == ""


def test_clean_reply_strips_wrapping_quotes():
    assert clean_reply('  "Bitcoin Surges Past $70k"  ') == "Bitcoin Surges Past $70k"
    assert clean_reply(None) == ""
