"""
Interval-bounded polling with Ok/Minor/Severe classification.

A condition is an async callable receiving the operation context:

- returning normally means the awaited condition holds (Ok),
- raising ``MinorError`` means "not yet", polling continues,
- raising ``SevereError`` (or any other exception) aborts immediately.

Polling ends with ``PollTimeoutError`` when the timeout elapses with only minor
errors observed, and with ``OperationCancelledError`` when the context is
cancelled. The two are deliberately distinct types.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, Callable

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_before_delay,
    wait_fixed,
)
from tenacity.stop import stop_base

from shootops.context import OperationContext
from shootops.core.errorcodes import DEFAULT_CLASSIFIER, ErrorClassifier, extract_error_codes, is_user_error
from shootops.core.errors import ShootOpsError

logger = structlog.get_logger()

Condition = Callable[[OperationContext], Awaitable[Any]]


class MinorError(Exception):
    """Transient condition outcome: remember it and keep polling."""

    def __init__(self, cause: BaseException | str):
        self.cause = cause if isinstance(cause, BaseException) else Exception(cause)
        super().__init__(str(self.cause))
        self.__cause__ = self.cause

    @property
    def codes(self) -> tuple[str, ...]:
        return extract_error_codes(self.cause)


class SevereError(ShootOpsError):
    """Condition outcome that waiting cannot fix; polling stops immediately."""

    def __init__(self, cause: BaseException | str):
        self.cause = cause if isinstance(cause, BaseException) else Exception(cause)
        super().__init__(str(self.cause))
        self.__cause__ = self.cause

    @property
    def codes(self) -> tuple[str, ...]:
        return extract_error_codes(self.cause)


class PollTimeoutError(ShootOpsError):
    """The timeout elapsed before the condition succeeded."""

    def __init__(
        self,
        message: str,
        last_error: BaseException | None = None,
        classifier: ErrorClassifier | None = None,
    ):
        self.last_error = last_error
        codes = list(extract_error_codes(last_error))
        if not codes and last_error is not None:
            codes.extend((classifier or DEFAULT_CLASSIFIER).codes_for(str(last_error)))
        self.codes = tuple(dict.fromkeys(codes))
        if last_error is not None:
            message = f"{message}, last error: {last_error}"
        super().__init__(message, details={"codes": list(self.codes)} if self.codes else None)

    @property
    def is_user_error(self) -> bool:
        """Whether the last observed error is a configuration problem the user has to fix."""
        return is_user_error(self.codes)


class OperationCancelledError(ShootOpsError):
    """The operation context was cancelled while polling."""


def minor_or_severe_error(attempt: int, threshold: int, cause: BaseException) -> Exception:
    """Escalate a minor error to a severe one once `attempt` exceeds `threshold`."""
    if attempt > threshold:
        return SevereError(cause)
    return MinorError(cause)


class _Deadline(Exception):
    """A single condition call ran into the poll deadline."""


class stop_when_cancelled(stop_base):
    """Stop retrying once the operation context has been cancelled."""

    def __init__(self, ctx: OperationContext) -> None:
        self.ctx = ctx

    def __call__(self, retry_state: RetryCallState) -> bool:
        return self.ctx.cancelled


async def _call_bounded(ctx: OperationContext, condition: Condition, timeout: float) -> Any:
    """Run one condition call, racing it against the deadline and cancellation."""
    if timeout <= 0:
        raise _Deadline()
    task = asyncio.ensure_future(condition(ctx))
    watcher = asyncio.ensure_future(ctx.wait_cancelled(timeout))
    try:
        done, _ = await asyncio.wait(
            {task, watcher}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    except BaseException:
        task.cancel()
        watcher.cancel()
        raise
    if task in done:
        watcher.cancel()
        return task.result()
    task.cancel()
    watcher.cancel()
    await asyncio.gather(task, return_exceptions=True)
    if ctx.cancelled:
        raise OperationCancelledError("operation cancelled while polling")
    raise _Deadline()


async def until_timeout(
    ctx: OperationContext,
    interval: float,
    timeout: float,
    condition: Condition,
    *,
    classifier: ErrorClassifier | None = None,
) -> None:
    """Poll `condition` every `interval` seconds for at most `timeout` seconds."""
    if ctx.cancelled:
        raise OperationCancelledError("operation cancelled before polling started")

    effective_timeout = ctx.bounded(timeout)
    deadline = time.monotonic() + effective_timeout
    last_minor: list[BaseException] = []

    async def _sleep(seconds: float) -> None:
        if await ctx.wait_cancelled(seconds):
            raise OperationCancelledError("operation cancelled while polling")

    def _remember(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(exc, MinorError):
            last_minor[:] = [exc.cause]
            logger.debug(
                "poll_not_ready",
                attempt=retry_state.attempt_number,
                error=str(exc.cause),
            )

    retrying = AsyncRetrying(
        sleep=_sleep,
        retry=retry_if_exception_type(MinorError),
        wait=wait_fixed(interval),
        stop=stop_before_delay(effective_timeout) | stop_when_cancelled(ctx),
        before_sleep=_remember,
        reraise=False,
    )

    def _timeout_error() -> PollTimeoutError:
        return PollTimeoutError(
            f"timed out after {effective_timeout:g}s",
            last_error=last_minor[0] if last_minor else None,
            classifier=classifier,
        )

    try:
        async for attempt in retrying:
            with attempt:
                try:
                    await _call_bounded(ctx, condition, deadline - time.monotonic())
                except _Deadline:
                    raise _timeout_error() from None
    except RetryError as exc:
        if ctx.cancelled:
            raise OperationCancelledError("operation cancelled while polling") from None
        last = exc.last_attempt.exception()
        if isinstance(last, MinorError):
            last_minor[:] = [last.cause]
        raise _timeout_error() from None


async def until(ctx: OperationContext, interval: float, condition: Condition) -> None:
    """Poll until success, bounded only by the context deadline (or its default timeout)."""
    remaining = ctx.remaining()
    await until_timeout(ctx, interval, ctx.timeout if remaining is None else remaining, condition)
