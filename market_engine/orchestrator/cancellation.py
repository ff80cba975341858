"""
Crypto Bunker — Cancellation Token
────────────────────────────────────
One token per job run (or one for the whole process). Every blocking
step — store query, HTTP call, oracle call, pacing delay — is awaited
through the token so that:

  * shutdown interrupts a job at its current step instead of waiting
    for a 30s feed delay or a hung upstream to finish
  * each external call gets its own timeout

    token = CancelToken()
    quote = await token.guard(fetcher.fetch(symbol), timeout=30, what="quote")
    await token.sleep(10)
    token.cancel("shutdown")   # from anywhere — pending waits raise JobCancelled
"""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from market_engine.errors import JobCancelled, UpstreamTimeout

log = logging.getLogger("cb.cancel")

T = TypeVar("T")


class CancelToken:

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            log.info(f"Cancellation requested: {reason}")

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelled(self.reason or "cancelled")

    async def wait(self) -> None:
        """Block until the token fires."""
        await self._event.wait()

    async def sleep(self, seconds: float) -> None:
        """Sleep, waking early (with JobCancelled) if the token fires."""
        self.raise_if_cancelled()
        if seconds <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise JobCancelled(self.reason or "cancelled")

    async def guard(self, awaitable: Awaitable[T], timeout: Optional[float] = None,
                    what: str = "call") -> T:
        """
        Await `awaitable`, giving up after `timeout` seconds or as soon
        as the token fires. Timeouts surface as UpstreamTimeout.
        """
        self.raise_if_cancelled()
        task    = asyncio.ensure_future(awaitable)
        stopper = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, stopper}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            stopper.cancel()

        if task in done:
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        if self.cancelled:
            raise JobCancelled(f"{what} interrupted: {self.reason}")
        raise UpstreamTimeout(f"{what} timed out after {timeout}s", service=what)

