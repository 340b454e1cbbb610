"""Wire format of the XS service.

Every call is the same "DB query" posted as a binary envelope:

    int32 LE  length of everything after this field (4 + len(xml))
    int16 LE  protocol version
    int16 LE  action code
    bytes     UTF-8 XML query

The response is an XML document whose root (or first result element)
carries a `status` attribute; anything other than "0" is a failure.
"""

import logging
import struct
import xml.etree.ElementTree as ET
from typing import Iterable

from xsbundle.scripts.types import Script, SensorRecord
from xsbundle.xsservice.errors import XSServiceError, XSServiceStatusError
from xsbundle.xsservice.sensors import extract_sensor_script_ids

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = 1

ACTION_SCRIPT_QUERY = 403
ACTION_SENSOR_QUERY = 219

# <DB Type="3"> with <Query Type=...>
DB_TYPE_SCRIPT = "3"
QUERY_BY_ID = "1"
QUERY_BY_USER = "4"

# <UserSensorDB Type="4">
SENSOR_DB_TYPE = "4"

_ENVELOPE_HEADER = struct.Struct("<ihh")
_XML_DECLARATION = '<?xml version="1.0" encoding="utf-8" ?>'


def encode_envelope(version: int, action: int, xml: str) -> bytes:
    """Wrap an XML query in the binary request envelope."""
    payload = xml.encode("utf-8")
    # The length field counts the version/action words plus the payload
    header = _ENVELOPE_HEADER.pack(len(payload) + 4, version, action)
    return header + payload


def _to_xml(root: ET.Element) -> str:
    return _XML_DECLARATION + ET.tostring(root, encoding="unicode")


def compose_script_query_xml(
    app_id: str,
    user_id: str,
    script_type: str,
    guid: str,
) -> str:
    """<DB Type="3"><Query Type="1" AppID UserID ID ScriptType/></DB>"""
    db = ET.Element("DB", Type=DB_TYPE_SCRIPT)
    ET.SubElement(
        db,
        "Query",
        Type=QUERY_BY_ID,
        AppID=app_id,
        UserID=user_id,
        ID=guid,
        ScriptType=str(script_type),
    )
    return _to_xml(db)


def compose_user_scripts_query_xml(app_id: str, user_id: str, script_type: str) -> str:
    """<DB Type="3"><Query Type="4" AppID UserID ScriptType/></DB>"""
    db = ET.Element("DB", Type=DB_TYPE_SCRIPT)
    ET.SubElement(
        db,
        "Query",
        Type=QUERY_BY_USER,
        AppID=app_id,
        UserID=user_id,
        ScriptType=str(script_type),
    )
    return _to_xml(db)


def compose_sensor_query_xml(app_id: str, user_id: str, sensor_ids: Iterable[str]) -> str:
    """<UserSensorDB Type="4" AppID UserID Version="1"><Query SID/>...</UserSensorDB>"""
    db = ET.Element(
        "UserSensorDB",
        Type=SENSOR_DB_TYPE,
        AppID=app_id,
        UserID=user_id,
        Version="1",
    )
    for sensor_id in sensor_ids:
        ET.SubElement(db, "Query", SID=sensor_id)
    return _to_xml(db)


def _find_status(root: ET.Element) -> str:
    status = root.get("status")
    if status is not None:
        return status
    for child in root:
        status = child.get("status")
        if status is not None:
            return status
    return "0"


def parse_result_document(content: bytes) -> ET.Element:
    """Parse a response body and check its status.

    Raises:
        XSServiceError: The body is not well-formed XML.
        XSServiceStatusError: The status attribute is not "0".
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise XSServiceError(f"Malformed XS service response: {exc}") from exc

    status = _find_status(root)
    if status != "0":
        raise XSServiceStatusError(status)
    return root


def parse_scripts(root: ET.Element) -> list[Script]:
    """Decode every <Script> under the first <Scripts> element.

    A response without <Scripts> means "no data". Script entries missing a
    name, an id or a code body are skipped.
    """
    scripts_node = next(root.iter("Scripts"), None)
    if scripts_node is None:
        return []

    app_id = scripts_node.get("AppID", "")
    user_id = scripts_node.get("UserID", "")
    scripts: list[Script] = []

    for node in scripts_node.iter("Script"):
        name = node.get("Name")
        guid = node.get("ID")
        if not name or not guid:
            continue

        code_node = node.find("Code")
        code = code_node.text if code_node is not None else None
        if not code:
            continue

        scripts.append(Script(
            app_id=app_id,
            user_id=user_id,
            script_type=node.get("Type", ""),
            guid=guid,
            name=name,
            folder=node.get("Folder") or "/",
            invisible=(node.get("StatusMask") or "0") == "0",
            code=code,
        ))

    return scripts


def parse_sensors(root: ET.Element) -> list[SensorRecord]:
    """Decode every <UserSensor> element into a SensorRecord.

    Sensors whose embedded payload cannot be read are logged and dropped;
    the rest of the batch is still returned.
    """
    sensors: list[SensorRecord] = []

    for node in root.iter("UserSensor"):
        sensor_id = node.get("SID", "")
        try:
            script_id, group_id = extract_sensor_script_ids(node.text or "")
        except ValueError as exc:
            logger.error("Dropping sensor %s: %s", sensor_id, exc)
            continue
        sensors.append(SensorRecord(
            sensor_id=sensor_id,
            group_id=group_id,
            script_id=script_id,
        ))

    return sensors
