"""XS service client.

Uses httpx for async HTTP calls. Every query is one POST of a binary
envelope to the single configured hub URL; the query kind is carried in
the XML body and the action code, not in the URL.

Hub locations are deployment configuration (XSSERVICE_URL), e.g.
    http://<proxy>/xsserviceuat/

No retries and no client-side timeout beyond the httpx default: a failed
call surfaces immediately to the caller.
"""

import logging
from typing import Optional, Sequence, Union

import httpx

from xsbundle.scripts.types import Script, ScriptType, SensorRecord
from xsbundle.xsservice import protocol
from xsbundle.xsservice.errors import XSServiceError

logger = logging.getLogger(__name__)


class XSServiceClient:
    """Resolve scripts and sensors from the remote XS script repository."""

    def __init__(self, server_url: str) -> None:
        if not server_url.endswith("/"):
            server_url = server_url + "/"
        self.server_url = server_url

    async def query_script_by_id(
        self,
        app_id: str,
        user_id: str,
        script_type: str,
        guid: str,
    ) -> Optional[Script]:
        """Fetch one script by guid. Returns None when nothing matches."""
        xml = protocol.compose_script_query_xml(app_id, user_id, script_type, guid)
        root = await self._post(protocol.ACTION_SCRIPT_QUERY, xml)
        scripts = protocol.parse_scripts(root)
        if not scripts:
            return None
        return scripts[0]

    async def query_user_scripts(
        self,
        app_id: str,
        user_id: str,
        script_type: str = ScriptType.ALL.value,
    ) -> list[Script]:
        """Fetch every script a user owns, filtered by type.

        ScriptType.ALL returns scripts of every type. The whole set comes
        back in one response.
        """
        xml = protocol.compose_user_scripts_query_xml(app_id, user_id, script_type)
        root = await self._post(protocol.ACTION_SCRIPT_QUERY, xml)
        return protocol.parse_scripts(root)

    async def query_sensors(
        self,
        app_id: str,
        user_id: str,
        sensor_ids: Union[Sequence[str], str],
    ) -> list[SensorRecord]:
        """Look up several sensors of one user in a single call.

        *sensor_ids* is a sequence or a ';'-separated string. Ids the
        remote side does not know are simply absent from the result.
        """
        if isinstance(sensor_ids, str):
            sensor_ids = [s for s in sensor_ids.split(";") if s]

        xml = protocol.compose_sensor_query_xml(app_id, user_id, sensor_ids)
        root = await self._post(protocol.ACTION_SENSOR_QUERY, xml)
        return protocol.parse_sensors(root)

    async def _post(self, action: int, xml: str):
        body = protocol.encode_envelope(protocol.PROTOCOL_VERSION, action, xml)
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.server_url,
                    content=body,
                    headers={"Content-Type": "application/octet-stream"},
                )
                response.raise_for_status()
            logger.debug("XS service response (action=%d): %s", action, response.text)
            return protocol.parse_result_document(response.content)
        except XSServiceError as exc:
            logger.error(
                "Calling [%s:%d:%d:%s] fails: %s",
                self.server_url, protocol.PROTOCOL_VERSION, action, xml, exc,
            )
            raise
        except httpx.HTTPError as exc:
            logger.error(
                "Calling [%s:%d:%d:%s] fails: %s",
                self.server_url, protocol.PROTOCOL_VERSION, action, xml, exc,
            )
            raise XSServiceError(f"XS service request failed: {exc}") from exc
