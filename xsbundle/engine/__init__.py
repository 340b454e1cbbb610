"""Background execution of bundling work.

Public API:
    TaskQueue(name, worker, broker_url=..., backend_url=...)
    create_bundle_queue(settings) -> TaskQueue
    JobState, TaskQueueError, TaskNotFoundError, TaskFailedError
"""

from xsbundle.engine.queue import (
    JobState,
    TaskFailedError,
    TaskNotFoundError,
    TaskQueue,
    TaskQueueError,
)
from xsbundle.engine.tasks import create_bundle_queue

__all__ = [
    "JobState",
    "TaskFailedError",
    "TaskNotFoundError",
    "TaskQueue",
    "TaskQueueError",
    "create_bundle_queue",
]
