"""Best-effort reader for the sensor payload embedded in <UserSensor>.

The remote system stores each sensor as JSON inside an XML text node but
does not escape it consistently, so `json.loads` regularly fails on real
data. Only the bound script id and its group id are needed, and those are
pulled straight out of the raw text. This is not the primary parse path
for anything else.
"""

import re

# Exact shape produced by the remote side: "Script":{"ID":"..","GroupID":".."
_SCRIPT_IDS_RE = re.compile(r'"Script":\{"ID":"(.*?)","GroupID":"(.*?)"')


def extract_sensor_script_ids(sensor_text: str) -> tuple[str, str]:
    """Return (script_id, group_id) found in *sensor_text*.

    Raises:
        ValueError: The Script/ID/GroupID fragment is not present.
    """
    match = _SCRIPT_IDS_RE.search(sensor_text)
    if not match:
        raise ValueError(f"cannot find Script:ID in {sensor_text[:200]!r}")
    return match.group(1), match.group(2) or ""
