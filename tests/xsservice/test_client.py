"""Tests for XSServiceClient.

httpx.AsyncClient is mocked so tests run without real network calls.
"""

import struct
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from xsbundle.scripts.types import ScriptType
from xsbundle.xsservice.client import XSServiceClient
from xsbundle.xsservice.errors import XSServiceError, XSServiceStatusError

SERVER = "http://xsservice.test/xsserviceuat/"


def _make_response(content: bytes, status_code: int = 200) -> MagicMock:
    """Build a minimal mock httpx.Response."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.content = content
    resp.text = content.decode("utf-8")

    def raise_for_status():
        if status_code >= 400:
            raise httpx.HTTPStatusError(
                f"HTTP {status_code}",
                request=MagicMock(),
                response=MagicMock(status_code=status_code),
            )

    resp.raise_for_status = raise_for_status
    return resp


def _patch_client(MockClient, response=None, side_effect=None) -> AsyncMock:
    MockClient.return_value.__aenter__ = AsyncMock(return_value=MockClient.return_value)
    MockClient.return_value.__aexit__ = AsyncMock(return_value=False)
    MockClient.return_value.post = AsyncMock(return_value=response, side_effect=side_effect)
    return MockClient.return_value.post


def _sent_envelope(post: AsyncMock) -> tuple[int, int, int, str]:
    body = post.call_args.kwargs["content"]
    length, version, action = struct.unpack("<ihh", body[:8])
    return length, version, action, body[8:].decode("utf-8")


class TestClientConstruction:
    def test_adds_trailing_slash(self):
        assert XSServiceClient("http://hub/xs").server_url == "http://hub/xs/"

    def test_keeps_trailing_slash(self):
        assert XSServiceClient("http://hub/xs/").server_url == "http://hub/xs/"


class TestQueryScriptById:
    async def test_returns_first_script(self, scripts_response_xml):
        body = scripts_response_xml([{"name": "Arrive Price", "guid": "902ee5", "type": "3"}])

        with patch("httpx.AsyncClient") as MockClient:
            post = _patch_client(MockClient, _make_response(body))
            script = await XSServiceClient(SERVER).query_script_by_id(
                "DAQ", "ALEXCHUW", ScriptType.SENSOR.value, "902ee5",
            )

        assert script is not None
        assert script.guid == "902ee5"
        assert script.script_type == "3"
        assert script.code

        assert post.call_args.args[0] == SERVER
        assert post.call_args.kwargs["headers"]["Content-Type"] == "application/octet-stream"
        length, version, action, xml = _sent_envelope(post)
        assert (version, action) == (1, 403)
        assert length == len(xml.encode("utf-8")) + 4
        assert 'Type="1"' in xml
        assert 'ID="902ee5"' in xml

    async def test_not_found_returns_none(self):
        body = b'<Result status="0"><Scripts AppID="DAQ" UserID="ALEXCHUW"/></Result>'

        with patch("httpx.AsyncClient") as MockClient:
            _patch_client(MockClient, _make_response(body))
            script = await XSServiceClient(SERVER).query_script_by_id("DAQ", "ALEXCHUW", "1", "nope")

        assert script is None

    async def test_empty_result_returns_none(self):
        with patch("httpx.AsyncClient") as MockClient:
            _patch_client(MockClient, _make_response(b'<Result status="0"/>'))
            script = await XSServiceClient(SERVER).query_script_by_id("DAQ", "ALEXCHUW", "1", "nope")

        assert script is None

    async def test_non_zero_status_raises(self, caplog):
        with patch("httpx.AsyncClient") as MockClient:
            _patch_client(MockClient, _make_response(b'<Result status="-1"/>'))
            with pytest.raises(XSServiceStatusError) as exc_info:
                await XSServiceClient(SERVER).query_script_by_id("DAQ", "NOBODY", "3", "g")

        assert exc_info.value.status == "-1"
        assert any(r.levelname == "ERROR" for r in caplog.records)

    async def test_transport_failure_raises_service_error(self):
        with patch("httpx.AsyncClient") as MockClient:
            _patch_client(MockClient, side_effect=httpx.ConnectError("refused"))
            with pytest.raises(XSServiceError, match="refused"):
                await XSServiceClient(SERVER).query_script_by_id("DAQ", "U", "3", "g")

    async def test_http_error_status_raises_service_error(self):
        with patch("httpx.AsyncClient") as MockClient:
            _patch_client(MockClient, _make_response(b"", status_code=502))
            with pytest.raises(XSServiceError):
                await XSServiceClient(SERVER).query_script_by_id("DAQ", "U", "3", "g")

    async def test_malformed_xml_raises_service_error(self):
        with patch("httpx.AsyncClient") as MockClient:
            _patch_client(MockClient, _make_response(b"<html>oops"))
            with pytest.raises(XSServiceError):
                await XSServiceClient(SERVER).query_script_by_id("DAQ", "U", "3", "g")


class TestQueryUserScripts:
    async def test_returns_all_scripts_in_order(self, scripts_response_xml):
        body = scripts_response_xml([
            {"name": "F1", "guid": "g1", "type": "1"},
            {"name": "I1", "guid": "g2", "type": "2"},
            {"name": "S1", "guid": "g3", "type": "3"},
        ])

        with patch("httpx.AsyncClient") as MockClient:
            post = _patch_client(MockClient, _make_response(body))
            scripts = await XSServiceClient(SERVER).query_user_scripts(
                "DAQ", "ALEXCHUW", ScriptType.ALL.value,
            )

        assert [s.name for s in scripts] == ["F1", "I1", "S1"]
        _, _, action, xml = _sent_envelope(post)
        assert action == 403
        assert 'Type="4"' in xml
        assert 'ScriptType="0"' in xml


class TestQuerySensors:
    SENSOR_BODY = (
        '<Result status="0" version="1">'
        '<UserSensor SID="FBABA792"><![CDATA[{"A":1,"Script":{"ID":"sc1","GroupID":""}}]]></UserSensor>'
        "</Result>"
    ).encode("utf-8")

    async def test_accepts_list(self):
        with patch("httpx.AsyncClient") as MockClient:
            post = _patch_client(MockClient, _make_response(self.SENSOR_BODY))
            sensors = await XSServiceClient(SERVER).query_sensors("DAQ", "U", ["FBABA792", "MISSING"])

        assert len(sensors) == 1
        assert sensors[0].sensor_id == "FBABA792"
        assert sensors[0].script_id == "sc1"
        assert sensors[0].group_id == ""

        _, _, action, xml = _sent_envelope(post)
        assert action == 219
        assert 'SID="FBABA792"' in xml
        assert 'SID="MISSING"' in xml

    async def test_accepts_semicolon_separated_string(self):
        with patch("httpx.AsyncClient") as MockClient:
            post = _patch_client(MockClient, _make_response(self.SENSOR_BODY))
            await XSServiceClient(SERVER).query_sensors("DAQ", "U", "S1;S2")

        _, _, _, xml = _sent_envelope(post)
        assert 'SID="S1"' in xml
        assert 'SID="S2"' in xml

    async def test_no_sensors_found_returns_empty(self):
        with patch("httpx.AsyncClient") as MockClient:
            _patch_client(MockClient, _make_response(b'<Result status="0" version="1"/>'))
            sensors = await XSServiceClient(SERVER).query_sensors("DAQ", "U", ["X"])

        assert sensors == []
