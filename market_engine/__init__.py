"""Crypto Bunker market engine: value cache, analytics, forecasts and the job layer."""
