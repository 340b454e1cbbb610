"""Shared test fixtures for the bundler test suite.

No test talks to the network, Redis or a running Celery worker: the XS
service is mocked at the client level and queues run on Celery's
in-memory broker and cache result backend.
"""

from collections.abc import AsyncGenerator
from typing import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from xsbundle.api.dependencies import get_bundle_queue, get_storage, get_xsservice_client
from xsbundle.api.storage import StagingStorage
from xsbundle.core.config import Settings, get_settings
from xsbundle.main import create_app
from xsbundle.scripts.types import Script, ScriptType
from xsbundle.xsservice.client import XSServiceClient

STUB_APP_ID = "DAQ"
STUB_USER_ID = "ALEXCHUW"


@pytest.fixture
def make_script() -> Callable[..., Script]:
    """Factory for Script values with sensible defaults."""

    def _make(
        name: str = "MyFunc",
        *,
        app_id: str = STUB_APP_ID,
        user_id: str = STUB_USER_ID,
        script_type: str = ScriptType.FUNCTION.value,
        guid: str = "e9ccfbb8156c4b0089ec4a0c716875d7",
        folder: str = "/",
        invisible: bool = False,
        code: str = "value1 = Close;\r\nret = 1;",
    ) -> Script:
        return Script(
            app_id=app_id,
            user_id=user_id,
            script_type=script_type,
            guid=guid,
            name=name,
            folder=folder,
            invisible=invisible,
            code=code,
        )

    return _make


@pytest.fixture
def scripts_response_xml() -> Callable[..., bytes]:
    """Build a <Result><Scripts>...</Scripts></Result> response body."""

    def _build(
        scripts: list[dict],
        *,
        app_id: str = STUB_APP_ID,
        user_id: str = STUB_USER_ID,
        status: str = "0",
    ) -> bytes:
        nodes = []
        for s in scripts:
            nodes.append(
                f'<Script Type="{s.get("type", "1")}" Name="{s["name"]}" ID="{s["guid"]}" '
                f'Folder="{s.get("folder", "/")}" StatusMask="{s.get("mask", "34")}">'
                f"<Desc><![CDATA[]]></Desc>"
                f"<Code><![CDATA[{s.get('code', 'ret = 1;')}]]></Code>"
                f"</Script>"
            )
        xml = (
            '<?xml version="1.0" encoding="utf-8"?>'
            f'<Result status="{status}">'
            f'<Scripts AppID="{app_id}" UserID="{user_id}" Version="2" Lang="TW">'
            + "".join(nodes)
            + "</Scripts></Result>"
        )
        return xml.encode("utf-8")

    return _build


@pytest.fixture
def fake_xsservice() -> MagicMock:
    """XSServiceClient double with async query methods."""
    client = MagicMock(spec=XSServiceClient)
    client.query_script_by_id = AsyncMock(return_value=None)
    client.query_user_scripts = AsyncMock(return_value=[])
    client.query_sensors = AsyncMock(return_value=[])
    return client


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        xsservice_url="http://xsservice.test/xsserviceuat",
        redis_url="redis://localhost:6379/15",
        site_url="http://test",
        download_dir=str(tmp_path / "downloads"),
        upload_dir=str(tmp_path / "uploads"),
        sentry_dsn="",
        debug=False,
    )


@pytest.fixture
def fake_queue() -> MagicMock:
    queue = MagicMock()
    queue.add.return_value = True
    return queue


@pytest.fixture
def app(test_settings, fake_xsservice, fake_queue):
    """FastAPI app with the XS service, queue and settings overridden.

    The SlowAPI limiter keeps in-memory counters across tests in one
    process, so it is reset first.
    """
    from xsbundle.core.limiter import limiter

    limiter.reset()

    test_app = create_app()
    test_app.dependency_overrides[get_settings] = lambda: test_settings
    test_app.dependency_overrides[get_xsservice_client] = lambda: fake_xsservice
    test_app.dependency_overrides[get_bundle_queue] = lambda: fake_queue
    test_app.dependency_overrides[get_storage] = lambda: StagingStorage.from_settings(test_settings)
    return test_app


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app (lifespan not started)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture(autouse=True)
def _isolate_memory_result_backend():
    """Celery's cache+memory:// backend shares one process-wide store; clear it per test."""
    from celery.backends.cache import _DUMMY_CLIENT_CACHE

    _DUMMY_CLIENT_CACHE.clear()
    yield
    _DUMMY_CLIENT_CACHE.clear()
