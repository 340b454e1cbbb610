"""Client for the remote XS script repository.

Public API:
    XSServiceClient(server_url)
        .query_script_by_id(app_id, user_id, script_type, guid) -> Script | None
        .query_user_scripts(app_id, user_id, script_type) -> list[Script]
        .query_sensors(app_id, user_id, sensor_ids) -> list[SensorRecord]
    XSServiceError, XSServiceStatusError
"""

from xsbundle.xsservice.client import XSServiceClient
from xsbundle.xsservice.errors import XSServiceError, XSServiceStatusError

__all__ = ["XSServiceClient", "XSServiceError", "XSServiceStatusError"]
