"""
Dependency graphs of named tasks.

A task starts as soon as all of its dependencies succeeded. When a task
fails, everything depending on it (transitively) is skipped while independent
branches keep running. The run ends with a FlowError listing every failure.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field

import structlog

from shootops.context import OperationContext
from shootops.core.errors import MultiError, flatten_errors
from shootops.flow.tasks import TaskFn
from shootops.logging import bind_context


@dataclass
class Task:
    name: str
    fn: TaskFn
    dependencies: tuple[str, ...] = ()
    skip: bool = False


class FlowError(MultiError):
    """One or more tasks of a flow failed."""

    def __init__(self, flow: str, failed: dict[str, BaseException], skipped: list[str]):
        self.flow = flow
        self.failed = failed
        self.skipped = skipped
        errors = [_TaskError(name, err) for name, err in failed.items()]
        super().__init__(errors, message=f"flow {flow!r} failed ({len(failed)} task(s))")
        self.details = {"failed": list(failed), "skipped": list(skipped)}

    @property
    def causes(self) -> list[BaseException]:
        return flatten_errors(self.failed.values())


class _TaskError(Exception):
    def __init__(self, task: str, error: BaseException):
        super().__init__(f"task {task!r} failed: {error}")
        self.task = task
        self.error = error
        self.__cause__ = error


@dataclass
class FlowResult:
    flow: str
    succeeded: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    duration_seconds: float = 0.0


class Graph:
    """A named set of tasks with explicit dependencies."""

    def __init__(self, name: str, *, log: structlog.stdlib.BoundLogger | None = None) -> None:
        self.name = name
        self.log = log
        self._tasks: dict[str, Task] = {}

    def add(self, task: Task) -> str:
        """Add a task; dependencies must have been added before."""
        if task.name in self._tasks:
            raise ValueError(f"task {task.name!r} already exists in flow {self.name!r}")
        unknown = [dep for dep in task.dependencies if dep not in self._tasks]
        if unknown:
            raise ValueError(f"task {task.name!r} depends on unknown task(s) {unknown}")
        self._tasks[task.name] = task
        return task.name

    def __len__(self) -> int:
        return len(self._tasks)

    def task_names(self) -> list[str]:
        return list(self._tasks)

    async def run(self, ctx: OperationContext) -> FlowResult:
        log = bind_context(self.log, flow=self.name)
        started = time.monotonic()
        result = FlowResult(flow=self.name)
        failed: dict[str, BaseException] = {}
        done: set[str] = set()
        blocked: set[str] = set()
        running: dict[asyncio.Task, str] = {}
        pending = dict(self._tasks)

        log.info("flow_started", tasks=len(pending))

        def _schedule() -> None:
            progress = True
            while progress:
                progress = False
                for name, task in list(pending.items()):
                    if any(dep in blocked for dep in task.dependencies):
                        blocked.add(name)
                        result.skipped.append(name)
                        del pending[name]
                        progress = True
                        continue
                    if not all(dep in done for dep in task.dependencies):
                        continue
                    del pending[name]
                    if task.skip:
                        done.add(name)
                        progress = True
                        continue
                    log.debug("task_started", task=name)
                    running[asyncio.ensure_future(task.fn(ctx))] = name

        _schedule()
        try:
            while running:
                finished, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                for future in finished:
                    name = running.pop(future)
                    error = future.exception()
                    if error is None:
                        done.add(name)
                        result.succeeded.append(name)
                        log.info("task_succeeded", task=name)
                    else:
                        failed[name] = error
                        blocked.add(name)
                        log.error("task_failed", task=name, error=str(error))
                _schedule()
        except BaseException:
            for future in running:
                future.cancel()
            raise

        result.duration_seconds = time.monotonic() - started
        if failed:
            log.error("flow_failed", failed=list(failed), skipped=result.skipped)
            raise FlowError(self.name, failed, result.skipped)
        log.info("flow_succeeded", duration=result.duration_seconds)
        return result
