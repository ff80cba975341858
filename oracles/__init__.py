from .base import (
    ArticleSource, Feed, FeedItem, FeedSource, ForecastOracle, ImageOracle, Paraphrase,
    Paraphraser, Post, Publisher, Quote, QuoteSource, SentimentOracle,
)

__all__ = [
    "ArticleSource", "Feed", "FeedItem", "FeedSource", "ForecastOracle", "ImageOracle",
    "Paraphrase", "Paraphraser", "Post", "Publisher", "Quote", "QuoteSource", "SentimentOracle",
]
