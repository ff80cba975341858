from .entities import Observation, SeenArticle, SentimentRecord, SENTIMENT_VALUES, utcnow
from .lookup import LookupStatus, ValueLookup

__all__ = [
    "Observation", "SeenArticle", "SentimentRecord", "SENTIMENT_VALUES", "utcnow",
    "LookupStatus", "ValueLookup",
]
