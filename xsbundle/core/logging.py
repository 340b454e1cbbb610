"""Structured logging via structlog.

Configures structlog once per process: from `create_app()` in the HTTP
process and from `xsbundle.worker` in the Celery worker process. All
subsequent calls to `structlog.get_logger()` (or `logging.getLogger()` via
the stdlib bridge) use this configuration.

Renderer selection:
  debug=True: `ConsoleRenderer` with colours for local development.
  debug=False: `JSONRenderer` for machine-parseable logs in production.

ContextVar injection:
  `request_id` comes from `xsbundle.core.middleware` while an HTTP request
  is being served. `task_id` is bound by the bundle queue while a worker
  function runs, so every line logged for one CSV bundle job carries the
  same id the client polls with.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

import structlog

from xsbundle.core.middleware import get_request_id

_task_id_var: ContextVar[str] = ContextVar("task_id", default="")


def get_task_id() -> str:
    """Return the id of the queue task being executed, or empty string."""
    return _task_id_var.get()


@contextmanager
def bind_task_id(task_id: str) -> Iterator[None]:
    """Bind *task_id* to the logging context for the duration of the block."""
    token = _task_id_var.set(task_id)
    try:
        yield
    finally:
        _task_id_var.reset(token)


def _inject_context_vars(
    logger: logging.Logger,
    method: str,
    event_dict: dict,
) -> dict:
    """Structlog processor: inject request_id and task_id from ContextVars."""
    request_id = get_request_id()
    task_id = get_task_id()
    if request_id:
        event_dict["request_id"] = request_id
    if task_id:
        event_dict["task_id"] = task_id
    return event_dict


def configure_structlog(debug: bool = True) -> None:
    """Configure structlog for the process lifetime.

    Calling multiple times is safe: structlog is idempotent.
    """
    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _inject_context_vars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if debug:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Bridge stdlib logging so httpx, celery and our own modules share stdout.
    logging.basicConfig(
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if debug else logging.INFO,
    )
