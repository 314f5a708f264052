"""Composition primitives for lifecycle operations."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog

from shootops.context import OperationContext
from shootops.core.errors import MultiError, flatten_errors
from shootops.retry import MinorError, OperationCancelledError, PollTimeoutError, until_timeout

logger = structlog.get_logger()

TaskFn = Callable[[OperationContext], Awaitable[None]]


def parallel(*fns: TaskFn) -> TaskFn:
    """
    Run every task concurrently against the same context.

    All tasks run to completion regardless of individual failures; every
    failure is collected into one MultiError.
    """

    async def run(ctx: OperationContext) -> None:
        if not fns:
            return
        results = await asyncio.gather(*(fn(ctx) for fn in fns), return_exceptions=True)
        errors = [result for result in results if isinstance(result, BaseException)]
        if errors:
            raise MultiError(flatten_errors(errors))

    return run


def sequential(*fns: TaskFn) -> TaskFn:
    """Run tasks one after another, stopping at the first failure."""

    async def run(ctx: OperationContext) -> None:
        for fn in fns:
            await fn(ctx)

    return run


def retry_until_timeout(fn: TaskFn, interval: float, timeout: float) -> TaskFn:
    """Re-run a task until it succeeds or the timeout elapses."""

    async def condition(ctx: OperationContext) -> None:
        try:
            await fn(ctx)
        except OperationCancelledError:
            raise
        except Exception as exc:
            logger.debug("task_retrying", error=str(exc))
            raise MinorError(exc) from exc

    async def run(ctx: OperationContext) -> None:
        await until_timeout(ctx, interval, timeout, condition)

    return run


def with_timeout(fn: TaskFn, seconds: float) -> TaskFn:
    """Bound a task (and every poll inside it) by `seconds`."""

    async def run(ctx: OperationContext) -> None:
        child = ctx.with_timeout(seconds)
        try:
            await asyncio.wait_for(fn(child), timeout=child.bounded(seconds))
        except asyncio.TimeoutError:
            raise PollTimeoutError(f"task did not finish within {seconds:g}s") from None

    return run
