"""Bundle queue wiring.

The CSV manifest flow is the only bundling flow that runs in the
background. The HTTP process enqueues a payload of the form

    {
        "manifest_path": "uploads/<task_id>.csv",
        "csv_option": CSVOption.to_dict(),
        "target": "downloads/<task_id>.zip",
        "bundle_option": BundleOption.to_dict(),
    }

and a Celery worker process runs `run_csv_bundle` on it. Both processes
build their queue handle with `create_bundle_queue(settings)`.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from xsbundle.bundling.bundler import ScriptBundler
from xsbundle.core.config import Settings, get_settings
from xsbundle.engine.queue import TaskQueue
from xsbundle.scripts.types import BundleOption, CSVOption
from xsbundle.xsservice.client import XSServiceClient

logger = logging.getLogger(__name__)


def build_csv_bundle_payload(
    manifest_path: str,
    csv_option: CSVOption,
    target: str,
    bundle_option: BundleOption,
) -> dict:
    return {
        "manifest_path": manifest_path,
        "csv_option": csv_option.to_dict(),
        "target": target,
        "bundle_option": bundle_option.to_dict(),
    }


def run_csv_bundle(
    task_id: str,
    payload: dict,
    report_progress: Callable[[Any], None],
) -> dict:
    """Worker function: bundle the scripts listed in an uploaded manifest.

    The bundle task runs synchronously inside the Celery worker; the remote
    lookups are async and are driven with asyncio.run().
    """
    settings = get_settings()
    client = XSServiceClient(settings.xsservice_url)
    bundler = ScriptBundler()

    csv_option = CSVOption.from_dict(payload["csv_option"])
    bundle_option = BundleOption.from_dict(payload.get("bundle_option", {}))
    target = payload["target"]

    logger.info(
        "Bundling manifest %s into %s (task_id=%s)",
        payload["manifest_path"], target, task_id,
    )
    report = asyncio.run(bundler.bundle_scripts_from_csv(
        client,
        payload["manifest_path"],
        csv_option,
        target,
        bundle_option,
        progress_callback=report_progress,
    ))

    return {
        "task_id": task_id,
        "target": target,
        "filename": Path(target).name,
        **report.to_dict(),
    }


def create_bundle_queue(settings: Settings) -> TaskQueue:
    """Build the bundle queue handle for this process."""
    return TaskQueue(
        settings.bundle_queue_name,
        run_csv_bundle,
        broker_url=settings.redis_url,
        backend_url=settings.redis_url,
    )
