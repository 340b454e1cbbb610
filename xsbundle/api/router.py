"""Script and bundle endpoints.

    GET  /api/script          one script by guid
    GET  /api/userscripts     every script of a user
    GET  /api/zipuserscripts  bundle a user's scripts now, return a download link
    POST /api/csvbundle       queue a manifest bundle, return a task id
    GET  /api/tasks/{id}      poll a queued bundle
    GET  /api/download/{name} fetch a finished bundle

App and user ids are case-insensitive and upper-cased before use.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.responses import FileResponse

from xsbundle.api.dependencies import get_bundle_queue, get_storage, get_xsservice_client
from xsbundle.api.schemas import TaskCreatedResponse, TaskStatusResponse, ZipFileResponse
from xsbundle.api.storage import StagingStorage
from xsbundle.bundling.bundler import ScriptBundler
from xsbundle.core.config import Settings, get_settings
from xsbundle.core.limiter import limiter
from xsbundle.engine.queue import JobState, TaskFailedError, TaskQueue
from xsbundle.engine.tasks import build_csv_bundle_payload
from xsbundle.scripts.types import BundleOption, CSVOption, ScriptType
from xsbundle.xsservice.client import XSServiceClient
from xsbundle.xsservice.errors import XSServiceError

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api", tags=["scripts"])


def _bad_gateway(exc: XSServiceError) -> HTTPException:
    logger.error("XS service error: %s", exc)
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail=f"XS service error: {exc}",
    )


def _download_url(settings: Settings, filename: str) -> str:
    return f"{settings.site_url.rstrip('/')}/api/download/{filename}"


@router.get("/script")
async def get_script_by_id(
    appid: str = Query(..., min_length=1),
    userid: str = Query(..., min_length=1),
    script_type: str = Query(..., alias="type", min_length=1),
    guid: str = Query(..., min_length=1),
    client: XSServiceClient = Depends(get_xsservice_client),
) -> dict:
    """Return one script, or {} when it does not exist."""
    try:
        script = await client.query_script_by_id(appid.upper(), userid.upper(), script_type, guid)
    except XSServiceError as exc:
        raise _bad_gateway(exc) from exc
    if script is None:
        return {}
    return script.as_dict()


@router.get("/userscripts")
async def get_user_scripts(
    appid: str = Query(..., min_length=1),
    userid: str = Query(..., min_length=1),
    script_type: str = Query(default=ScriptType.ALL.value, alias="type"),
    client: XSServiceClient = Depends(get_xsservice_client),
) -> list[dict]:
    """Return every script of a user, optionally filtered by type."""
    try:
        scripts = await client.query_user_scripts(appid.upper(), userid.upper(), script_type)
    except XSServiceError as exc:
        raise _bad_gateway(exc) from exc
    return [s.as_dict() for s in scripts]


@router.get("/zipuserscripts", response_model=ZipFileResponse)
@limiter.limit(settings.bundle_rate_limit)
async def zip_user_scripts(
    request: Request,
    appid: str = Query(..., min_length=1),
    userid: str = Query(..., min_length=1),
    script_type: str = Query(default=ScriptType.ALL.value, alias="type"),
    user_prefix: bool = Query(default=False),
    keep_folder: bool = Query(default=True),
    client: XSServiceClient = Depends(get_xsservice_client),
    storage: StagingStorage = Depends(get_storage),
    settings: Settings = Depends(get_settings),
) -> ZipFileResponse:
    """Bundle a user's scripts synchronously into "<userId>(<appId>).zip".

    The same user always maps to the same file, so a later call
    overwrites the previous bundle.
    """
    app_id, user_id = appid.upper(), userid.upper()
    filename = f"{user_id}({app_id}).zip"

    try:
        count = await ScriptBundler().bundle_user_scripts(
            client,
            app_id,
            user_id,
            script_type,
            storage.download_path(filename),
            BundleOption(user_prefix=user_prefix, keep_folder=keep_folder),
        )
    except XSServiceError as exc:
        raise _bad_gateway(exc) from exc

    logger.info("Bundled %d scripts into %s", count, filename)
    return ZipFileResponse(zipfile=_download_url(settings, filename))


@router.post(
    "/csvbundle",
    response_model=TaskCreatedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
@limiter.limit(settings.bundle_rate_limit)
def create_csv_bundle(
    request: Request,
    manifest: UploadFile = File(...),
    has_header_row: bool = Form(default=True),
    col_app_id: int = Form(default=0),
    col_user_id: int = Form(default=1),
    col_guid: int = Form(default=2),
    col_type: int = Form(default=3),
    user_prefix: bool = Form(default=True),
    keep_folder: bool = Form(default=True),
    queue: TaskQueue = Depends(get_bundle_queue),
    storage: StagingStorage = Depends(get_storage),
) -> TaskCreatedResponse:
    """Stage an uploaded manifest and queue it for bundling."""
    try:
        csv_option = CSVOption(
            has_header_row=has_header_row,
            col_app_id=col_app_id,
            col_user_id=col_user_id,
            col_guid=col_guid,
            col_type=col_type,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    task_id = uuid.uuid4().hex
    manifest_path = storage.save_upload(f"{task_id}.csv", manifest.file.read())
    target = storage.download_path(f"{task_id}.zip")

    payload = build_csv_bundle_payload(
        str(manifest_path),
        csv_option,
        str(target),
        BundleOption(user_prefix=user_prefix, keep_folder=keep_folder),
    )
    queue.add(task_id, payload)
    logger.info("Queued manifest %s as task %s", manifest.filename, task_id)
    return TaskCreatedResponse(task_id=task_id)


@router.get("/tasks/{task_id}", response_model=TaskStatusResponse)
def get_task_status(
    task_id: str,
    queue: TaskQueue = Depends(get_bundle_queue),
    settings: Settings = Depends(get_settings),
) -> TaskStatusResponse:
    """Poll a queued manifest bundle."""
    state = queue.get_task_state(task_id)
    if state is JobState.NOT_FOUND:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    response = TaskStatusResponse(task_id=task_id, state=state.value)

    if state is JobState.RUNNING:
        response.progress = queue.get_task_progress(task_id)
    elif state is JobState.COMPLETED:
        result = queue.get_task_return_value(task_id)
        response.result = result
        filename: Optional[str] = (result or {}).get("filename")
        if filename:
            response.download_url = _download_url(settings, filename)
    elif state is JobState.FAILED:
        try:
            queue.is_task_finished(task_id)
        except TaskFailedError as exc:
            response.error = exc.reason

    return response


@router.get("/download/{filename}")
def download_file(
    filename: str,
    storage: StagingStorage = Depends(get_storage),
) -> FileResponse:
    """Send a finished bundle as an attachment."""
    try:
        path = storage.download_path(filename)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not path.is_file():
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Filename does not exist: {filename}",
        )
    return FileResponse(path, media_type="application/octet-stream", filename=filename)
