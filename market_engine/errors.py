"""
Crypto Bunker — Error Taxonomy
────────────────────────────────
Every failure the jobs can hit falls into one of these buckets.

  StoreUnavailable     database unreachable or query failed
  UpstreamUnavailable  quote / oracle / feed / publish call failed
  UpstreamTimeout      ... because the per-call timeout elapsed
  MalformedResponse    upstream answered, answer doesn't fit the contract
  InvalidInput         caller bug (empty symbol, non-positive window)
  JobCancelled         shutdown requested while a job was blocked

Only InvalidInput is meant to escape a component. The rest are caught
where the job can degrade (stale value, skip one article) and logged.
"""

from typing import Optional


class BunkerError(Exception):
    """Base class for everything raised by this service."""


class StoreUnavailable(BunkerError):
    """The persistent store could not be read or written."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class UpstreamUnavailable(BunkerError):
    """An external service failed to answer."""

    def __init__(self, message: str, service: Optional[str] = None):
        super().__init__(message)
        self.service = service


class UpstreamTimeout(UpstreamUnavailable):
    """An external call exceeded its timeout."""


class MalformedResponse(BunkerError):
    """
    An external service answered but the reply is unusable.

    Kept apart from UpstreamUnavailable because the caller must never
    fold it into a default: 0 is a real sentiment, 0.0 is not a price.
    """

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class InvalidInput(BunkerError, ValueError):
    """Programming-level misuse of a component."""


class JobCancelled(BunkerError):
    """The cancellation token fired while a job was waiting."""
