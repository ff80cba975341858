"""
Crypto Bunker — Reply Classifiers
───────────────────────────────────
Pure functions. No side effects. No network.
Turn free-text oracle replies and scraped text into typed values.

A reply that does not fit its contract raises MalformedResponse.
Nothing is coerced: "0" is a real (neutral) sentiment, so an
unreadable reply must never collapse into it.
"""

import re
from typing import Iterable

from market_engine.cache.ttl_config import SOURCE_TEXT_LIMIT
from market_engine.errors import MalformedResponse
from market_engine.models import SENTIMENT_VALUES


# ── Sentiment ──────────────────────────────────────────────────
# Accept the bare integer, optionally wrapped in whitespace, quotes,
# a trailing period or markdown emphasis. Anything else is malformed.
_SENTIMENT_RE = re.compile(r"^[\s\"'`*]*([+-]?\d+)[\s\"'`*.]*$")

def parse_sentiment_reply(reply: str) -> int:
    if reply is None:
        raise MalformedResponse("empty sentiment reply")
    m = _SENTIMENT_RE.match(reply)
    if not m:
        raise MalformedResponse(f"sentiment reply is not an integer: {reply[:80]!r}", raw=reply)
    value = int(m.group(1))
    if value not in SENTIMENT_VALUES:
        raise MalformedResponse(f"sentiment {value} outside {SENTIMENT_VALUES}", raw=reply)
    return value


# ── Price estimate ─────────────────────────────────────────────
# The forecast prompt asks for "just numbers", but replies like
# "$64,250.10" or "64250 USD" still turn up. Strip currency noise and
# thousands separators; refuse anything with more than one number.
_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")

def parse_price_reply(reply: str) -> float:
    if reply is None or not reply.strip():
        raise MalformedResponse("empty price reply")
    cleaned = reply.strip().replace(",", "")
    cleaned = re.sub(r"(?i)\b(usd|us\$|dollars?)\b", "", cleaned)
    cleaned = cleaned.replace("$", "").strip().rstrip(".")
    numbers = _NUMBER_RE.findall(cleaned)
    if len(numbers) != 1 or cleaned.lstrip("~≈ ").strip() != numbers[0]:
        raise MalformedResponse(f"price reply is not a single number: {reply[:80]!r}", raw=reply)
    value = float(numbers[0])
    if value <= 0:
        raise MalformedResponse(f"price reply is not positive: {reply[:80]!r}", raw=reply)
    return value


# ── Source text ────────────────────────────────────────────────
def source_text(paragraphs: Iterable[str], limit: int = SOURCE_TEXT_LIMIT) -> str:
    """Article paragraphs joined and capped at `limit` characters."""
    text = "\n\n".join(p.strip() for p in paragraphs if p and p.strip())
    return text[:limit]


def clean_reply(reply: str) -> str:
    """Trim an oracle reply and drop wrapping quotes the model sometimes adds."""
    text = (reply or "").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1].strip()
    return text
