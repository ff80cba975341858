"""
Crypto Bunker — Value Lookup Result
─────────────────────────────────────
What the value cache hands back. Callers look at `status` rather than
guessing from the number: a missing value is None, never 0.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class LookupStatus(str, Enum):
    HIT       = "hit"         # fresh observation, no upstream call
    REFRESHED = "refreshed"   # stale/missing, upstream answered, persisted
    STALE     = "stale"       # stale, upstream failed, last known value served
    MISSING   = "missing"     # nothing usable


@dataclass(frozen=True)
class ValueLookup:
    symbol:      str
    status:      LookupStatus
    value:       Optional[float] = None
    observed_at: Optional[datetime] = None
    error:       Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.value is not None

    @property
    def degraded(self) -> bool:
        return self.status in (LookupStatus.STALE, LookupStatus.MISSING)

    def to_dict(self) -> dict:
        return {
            "symbol":      self.symbol,
            "status":      self.status.value,
            "degraded":    self.degraded,
            "value":       self.value,
            "observed_at": self.observed_at.isoformat() if self.observed_at else None,
            "error":       self.error,
        }

    @classmethod
    def missing(cls, symbol: str, error: str) -> "ValueLookup":
        return cls(symbol=symbol, status=LookupStatus.MISSING, error=error)
