"""
Crypto Bunker — Text-Generation Oracle
────────────────────────────────────────
One Claude client behind four prompts:

  paraphrase          article text + headline → (body, headline)
  headline_sentiment  headline + coin         → -1 | 0 | 1
  forecast            coin + horizon + recent samples → USD estimate
  describe_forecast   current + three horizons → plain-text summary

The anthropic SDK client is synchronous; calls run in the default
executor so the event loop (and the cancel token) stay responsive.
"""

import asyncio
import logging
from typing import Optional, Sequence

from anthropic import Anthropic, APIError

from ingestion.classifiers import clean_reply, parse_price_reply, parse_sentiment_reply
from market_engine.errors import MalformedResponse, UpstreamUnavailable
from oracles.base import Paraphrase

log = logging.getLogger("cb.oracles.llm")

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicOracle:

    def __init__(self, api_key: str = "", model: str = DEFAULT_MODEL,
                 client: Optional[Anthropic] = None, max_tokens: int = 1024):
        self.model      = model
        self.max_tokens = max_tokens
        if client is not None:
            self.client = client
        else:
            self.client = Anthropic(api_key=api_key) if api_key else None

    async def _complete(self, prompt: str, max_tokens: Optional[int] = None) -> str:
        if self.client is None:
            raise UpstreamUnavailable("ANTHROPIC_API_KEY not configured", service="anthropic")
        loop = asyncio.get_event_loop()
        try:
            response = await loop.run_in_executor(None, lambda: self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens or self.max_tokens,
                messages=[{"role": "user", "content": prompt}]
            ))
        except APIError as e:
            log.error(f"Claude API error: {e}")
            raise UpstreamUnavailable(f"anthropic: {e}", service="anthropic") from e

        if not response.content or not getattr(response.content[0], "text", None):
            raise MalformedResponse("anthropic: empty completion")
        return response.content[0].text.strip()

    # ── Paraphrase ───────────────────────────────────────────
    async def paraphrase(self, text: str, headline: str, attribution: str) -> Paraphrase:
        body = await self._complete(
            f"Paraphrase the following blog post from {attribution}. Speak as if you're the one "
            f"reporting the information and don't mention this information from elsewhere. "
            f"Return HTML paragraphs only.\n\n"
            f"Headline: {headline}\n\n{text}"
        )
        title = await self._complete(
            f"Paraphrase the title of the following blog post from {attribution}. "
            f"Return only the new title.\n\n{headline}",
            max_tokens=100,
        )
        title = clean_reply(title)
        if not title:
            raise MalformedResponse("anthropic: empty paraphrased headline")
        return Paraphrase(body=body, title=title)

    # ── Sentiment ────────────────────────────────────────────
    async def headline_sentiment(self, headline: str, coin: str) -> int:
        reply = await self._complete(
            f"Return -1 if the following headline could have a negative impact on the market "
            f"value of {coin}, 1 for positive, 0 for no effect at all. "
            f"Reply with the number only.\n\n{headline}",
            max_tokens=5,
        )
        return parse_sentiment_reply(reply)

    # ── Forecast ─────────────────────────────────────────────
    async def forecast(self, coin: str, horizon: str, samples: Sequence[float]) -> float:
        values = [int(v) for v in samples]
        reply = await self._complete(
            f"You are a financial consultant. It is required you give a best guess. "
            f"Only provide a USD estimate and nothing else. Do not use special characters, "
            f"just numbers. Forecast the price of {coin} {horizon} from now. "
            f"Here is a list of recent hourly values in USD, newest first: {values}",
            max_tokens=20,
        )
        return parse_price_reply(reply)

    async def describe_forecast(self, coin: str, current: float,
                                horizons: Sequence[tuple]) -> str:
        listed = ", ".join(f"{label}: {value if value is not None else 'unavailable'}"
                           for label, value in horizons)
        reply = await self._complete(
            f"Speak objectively and do not speak in the first person. Return plain text without "
            f"markdown or html, do not stylize. Based on the forecasted values of {coin} over the "
            f"next week, month, and 3 months, provide a summary of the forecast. "
            f"Current value: {current}, {listed}",
            max_tokens=400,
        )
        return clean_reply(reply)
