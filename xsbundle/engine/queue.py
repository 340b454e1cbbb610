"""Background task queue on Celery.

A TaskQueue pairs one Celery app with one worker function:

    queue = TaskQueue("xsscript-bundle", worker, broker_url=..., backend_url=...)
    queue.add("task-1", {"...": "..."})     # returns once the message is published
    queue.is_task_finished("task-1")        # False while queued/running
    queue.get_task_progress("task-1")       # last value passed to report_progress
    queue.get_task_return_value("task-1")   # worker's return value once finished

The worker function has the shape

    worker(task_id, payload, report_progress) -> result

and runs inside a Celery worker process started with
`celery -A xsbundle.worker worker`. Broker and result backend are Redis,
so job state lives outside the process that enqueued it.

Job states (exposed as JobState):
    QUEUED -> RUNNING -> COMPLETED | FAILED
There is no retry: a failed job stays failed.

close() purges the broker and bumps a generation counter kept in the result
backend. Jobs still QUEUED from an earlier generation were discarded by that
purge and read as not found from then on, from any process.
"""

import logging
from enum import Enum
from typing import Any, Callable

from celery import Celery, states
from celery.result import AsyncResult

from xsbundle.core.logging import bind_task_id

logger = logging.getLogger(__name__)

# Custom Celery states. QUEUED is written by add() so that a known-but-waiting
# job can be told apart from an unknown id (Celery reports both as PENDING).
QUEUED_STATE = "QUEUED"
PROGRESS_STATE = "PROGRESS"

ProgressReporter = Callable[[Any], None]
WorkerFunction = Callable[[str, Any, ProgressReporter], Any]


class JobState(str, Enum):
    NOT_FOUND = "not_found"
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


_STATE_MAP = {
    states.PENDING: JobState.NOT_FOUND,
    QUEUED_STATE: JobState.QUEUED,
    states.RECEIVED: JobState.QUEUED,
    states.STARTED: JobState.RUNNING,
    PROGRESS_STATE: JobState.RUNNING,
    states.RETRY: JobState.RUNNING,
    states.SUCCESS: JobState.COMPLETED,
    states.FAILURE: JobState.FAILED,
    states.REVOKED: JobState.FAILED,
}


class TaskQueueError(Exception):
    """Base class for task status query errors."""


class TaskNotFoundError(TaskQueueError):
    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Cannot find jobId:{task_id}")


class TaskFailedError(TaskQueueError):
    def __init__(self, task_id: str, reason: str) -> None:
        self.task_id = task_id
        self.reason = reason
        super().__init__(f"Job {task_id} failed: {reason}")


def create_celery_app(name: str, broker_url: str, backend_url: str) -> Celery:
    """Build the Celery app backing one TaskQueue."""
    app = Celery(name, broker=broker_url, backend=backend_url)
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_default_queue=name,
        # Report STARTED so a picked-up job shows as running before its
        # first progress report.
        task_track_started=True,
        # Acknowledge tasks after they complete, not when received, and
        # requeue them if the worker process dies mid-execution. Together
        # this is at-least-once delivery.
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        # A manifest walk does one remote round-trip per row; large
        # manifests take a while. Redelivery must not happen while a job
        # is still running.
        task_soft_time_limit=3600,
        task_time_limit=3720,
        broker_transport_options={"visibility_timeout": 7200},
        # Task ids must stay unique for the queue's lifetime, so job state is
        # never expired by the backend.
        result_expires=None,
    )
    return app


class TaskQueue:
    """Durable at-least-once job runner with progress reporting."""

    def __init__(
        self,
        name: str,
        worker: WorkerFunction,
        *,
        broker_url: str,
        backend_url: str,
    ) -> None:
        self.name = name
        self.worker = worker
        self.celery_app = create_celery_app(name, broker_url, backend_url)
        self.task = self._register_task()

    def _register_task(self):
        worker = self.worker

        @self.celery_app.task(name=f"{self.name}.run", bind=True, max_retries=0)
        def run_task(task, payload):
            task_id = task.request.id

            def report_progress(value: Any) -> None:
                task.update_state(
                    task_id=task_id,
                    state=PROGRESS_STATE,
                    meta={"progress": value},
                )

            with bind_task_id(task_id):
                logger.info("Task %s started on queue %s", task_id, self.name)
                try:
                    result = worker(task_id, payload, report_progress)
                except Exception as exc:
                    logger.error(
                        "Task %s failed: %s: %s", task_id, type(exc).__name__, exc,
                        exc_info=True,
                    )
                    raise
                logger.info("Task %s completed", task_id)
                return result

        return run_task

    def add(self, task_id: str, payload: Any) -> bool:
        """Enqueue *payload* under *task_id*.

        Returns False without enqueuing when the id is already known.
        """
        if self._resolve(task_id)[1] is not JobState.NOT_FOUND:
            logger.warning("Task %s already exists on queue %s; not re-adding", task_id, self.name)
            return False

        self.celery_app.backend.store_result(
            task_id, {"generation": self._generation()}, QUEUED_STATE,
        )
        self.task.apply_async(args=[payload], task_id=task_id)
        logger.info("Task %s added to queue %s", task_id, self.name)
        return True

    def get_task_state(self, task_id: str) -> JobState:
        """Return the job state without raising for unknown or failed jobs."""
        return self._resolve(task_id)[1]

    def is_task_finished(self, task_id: str) -> bool:
        """True once the worker returned, False while queued or running.

        Raises:
            TaskNotFoundError: No job with this id exists.
            TaskFailedError: The worker raised.
        """
        result, state = self._resolve(task_id)
        if state is JobState.NOT_FOUND:
            raise TaskNotFoundError(task_id)
        if state is JobState.FAILED:
            raise TaskFailedError(task_id, str(result.result))
        return state is JobState.COMPLETED

    def get_task_return_value(self, task_id: str) -> Any:
        """Return the worker's return value, or None until it finished."""
        result, state = self._resolve(task_id)
        if state is JobState.NOT_FOUND:
            raise TaskNotFoundError(task_id)
        if result.state != states.SUCCESS:
            return None
        return result.result

    def get_task_progress(self, task_id: str) -> Any:
        """Return the most recent progress value of a running job."""
        result, state = self._resolve(task_id)
        if state is JobState.NOT_FOUND:
            raise TaskNotFoundError(task_id)
        if result.state != PROGRESS_STATE:
            return None
        info = result.info
        if isinstance(info, dict):
            return info.get("progress")
        return None

    def shutdown(self) -> None:
        """Release broker and backend connections. Queued work is kept."""
        self.celery_app.close()

    def close(self) -> None:
        """Discard all waiting jobs and release the queue's resources.

        Discarded jobs read as not found afterwards. Jobs already running
        in a worker are abandoned, not cancelled.
        """
        discarded = self.celery_app.control.purge()
        self.celery_app.backend.set(self._generation_key, str(self._generation() + 1))
        logger.info("Queue %s closed; discarded %s waiting tasks", self.name, discarded)
        self.celery_app.close()

    @property
    def _generation_key(self) -> str:
        return f"xsbundle-queue-generation-{self.name}"

    def _generation(self) -> int:
        value = self.celery_app.backend.get(self._generation_key)
        return int(value) if value else 0

    def _resolve(self, task_id: str) -> tuple[AsyncResult, JobState]:
        result = self.celery_app.AsyncResult(task_id)
        celery_state = result.state
        if celery_state == QUEUED_STATE:
            info = result.info if isinstance(result.info, dict) else {}
            if info.get("generation", 0) < self._generation():
                # Purged by close(); drop the stale marker so the id reads as unknown.
                result.forget()
                return result, JobState.NOT_FOUND
        return result, _STATE_MAP.get(celery_state, JobState.RUNNING)
