"""Pydantic schemas for the bundling endpoints."""

from typing import Any, Optional

from pydantic import BaseModel, Field


class ZipFileResponse(BaseModel):
    """Download location of a bundle built synchronously."""

    zipfile: str


class TaskCreatedResponse(BaseModel):
    """Handle returned when a manifest bundle is queued."""

    task_id: str


class TaskStatusResponse(BaseModel):
    """Polling view of one queued bundle job.

    state follows queued -> running -> completed | failed.
    """

    task_id: str
    state: str
    progress: Optional[Any] = None
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    download_url: Optional[str] = Field(
        default=None,
        description="Set once the bundle is complete.",
    )
