"""FastAPI dependencies for the bundling endpoints.

The queue handle is created by the process entry point (`create_app`'s
lifespan) and read from app.state; tests override these dependencies.
"""

from fastapi import Depends, Request

from xsbundle.api.storage import StagingStorage
from xsbundle.core.config import Settings, get_settings
from xsbundle.engine.queue import TaskQueue
from xsbundle.xsservice.client import XSServiceClient


def get_xsservice_client(settings: Settings = Depends(get_settings)) -> XSServiceClient:
    return XSServiceClient(settings.xsservice_url)


def get_bundle_queue(request: Request) -> TaskQueue:
    return request.app.state.bundle_queue


def get_storage(settings: Settings = Depends(get_settings)) -> StagingStorage:
    return StagingStorage.from_settings(settings)
