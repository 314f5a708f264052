"""Task flow orchestration: parallel/sequential composition and task graphs."""

from shootops.flow.graph import FlowError, FlowResult, Graph, Task
from shootops.flow.tasks import TaskFn, parallel, retry_until_timeout, sequential, with_timeout

__all__ = [
    "FlowError",
    "FlowResult",
    "Graph",
    "Task",
    "TaskFn",
    "parallel",
    "retry_until_timeout",
    "sequential",
    "with_timeout",
]
