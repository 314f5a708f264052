"""Per-run operation context: poll parameters, deadline and cancellation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field, replace

DEFAULT_INTERVAL = 5.0
DEFAULT_SEVERE_THRESHOLD = 30.0
DEFAULT_TIMEOUT = 180.0


class _Cancellation:
    """Cancellation flag shared between a context and the contexts derived from it."""

    def __init__(self) -> None:
        self._cancelled = False
        self._waiters: set[asyncio.Event] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        for event in list(self._waiters):
            event.set()

    async def wait(self, seconds: float) -> bool:
        if self._cancelled:
            return True
        event = asyncio.Event()
        self._waiters.add(event)
        try:
            await asyncio.wait_for(event.wait(), timeout=max(seconds, 0))
        except asyncio.TimeoutError:
            pass
        finally:
            self._waiters.discard(event)
        return self._cancelled


@dataclass(frozen=True)
class OperationContext:
    """
    Parameters of one reconciliation pass.

    The interval, severe threshold and timeout are the defaults for every poll
    started under this context. The deadline is absolute (monotonic clock) and
    bounds every poll and remote call; cancellation is shared with all derived
    contexts. Contexts are never persisted.
    """

    interval: float = DEFAULT_INTERVAL
    severe_threshold: float = DEFAULT_SEVERE_THRESHOLD
    timeout: float = DEFAULT_TIMEOUT
    deadline: float | None = None
    _cancellation: _Cancellation = field(default_factory=_Cancellation, repr=False, compare=False)

    @property
    def cancelled(self) -> bool:
        return self._cancellation.cancelled

    def cancel(self) -> None:
        """Cancel this context and every context derived from it."""
        self._cancellation.cancel()

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None without a deadline."""
        if self.deadline is None:
            return None
        return max(self.deadline - time.monotonic(), 0.0)

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def bounded(self, timeout: float) -> float:
        """Clamp a timeout to the time left until the deadline."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        return min(timeout, remaining)

    def with_timeout(self, seconds: float) -> OperationContext:
        """Derive a context whose deadline is at most `seconds` from now."""
        deadline = time.monotonic() + seconds
        if self.deadline is not None:
            deadline = min(deadline, self.deadline)
        return replace(self, deadline=deadline)

    def with_options(
        self,
        *,
        interval: float | None = None,
        severe_threshold: float | None = None,
        timeout: float | None = None,
    ) -> OperationContext:
        """Derive a context with different poll parameters."""
        return replace(
            self,
            interval=self.interval if interval is None else interval,
            severe_threshold=self.severe_threshold if severe_threshold is None else severe_threshold,
            timeout=self.timeout if timeout is None else timeout,
        )

    async def wait_cancelled(self, seconds: float) -> bool:
        """Sleep up to `seconds`; return True early if the context gets cancelled."""
        return await self._cancellation.wait(seconds)
