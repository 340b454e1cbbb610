"""Types shared by the XS service client and the bundler."""

from dataclasses import asdict, dataclass
from enum import Enum

# Line separator used by the remote repository inside script bodies
CRLF = "\r\n"


class ScriptType(str, Enum):
    """Script category codes as used on the wire."""

    ALL = "0"
    FUNCTION = "1"
    INDICATOR = "2"
    SENSOR = "3"
    FILTER = "4"
    AUTOTRADE = "7"


_FOLDER_NAMES = {
    ScriptType.FUNCTION.value: "Function",
    ScriptType.INDICATOR.value: "Indicator",
    ScriptType.SENSOR.value: "Sensor",
    ScriptType.FILTER.value: "Filter",
    ScriptType.AUTOTRADE.value: "AutoTrade",
}


def folder_name_for(script_type: str) -> str:
    """Return the bundle folder name for a script type code.

    Unrecognised codes are returned verbatim so that types added on the
    remote side still land in a folder of their own.
    """
    return _FOLDER_NAMES.get(str(script_type), str(script_type))


@dataclass(frozen=True)
class Script:
    """One script as returned by the remote repository.

    folder always starts and ends with "/", e.g. "/A/B/".
    """

    app_id: str
    user_id: str
    script_type: str
    guid: str
    name: str
    folder: str = "/"
    invisible: bool = False
    code: str = ""

    def as_file_content(self) -> str:
        """Render the script as a bundle file: fixed header, then the code."""
        header = [
            f"// User: {self.app_id}/{self.user_id}",
            f"// Type: {folder_name_for(self.script_type)}",
            f"// Path: {self.folder}{self.name}",
            f"// ID: {self.guid}",
        ]
        return CRLF.join(header) + CRLF + self.code

    def as_dict(self) -> dict:
        """JSON shape returned by the HTTP boundary. Hidden code is blanked."""
        return {
            "appId": self.app_id,
            "userId": self.user_id,
            "type": self.script_type,
            "guid": self.guid,
            "name": self.name,
            "folder": self.folder,
            "invisible": self.invisible,
            "code": "" if self.invisible else self.code,
        }


@dataclass(frozen=True)
class SensorRecord:
    """A sensor and the script it currently runs."""

    sensor_id: str
    group_id: str
    script_id: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CSVOption:
    """How to read a bundle manifest. Column indices are zero-based."""

    has_header_row: bool
    col_app_id: int
    col_user_id: int
    col_guid: int
    col_type: int

    def __post_init__(self) -> None:
        columns = [self.col_app_id, self.col_user_id, self.col_guid, self.col_type]
        if any(c < 0 for c in columns):
            raise ValueError(f"Column indices must be non-negative: {columns}")
        if len(set(columns)) != len(columns):
            raise ValueError(f"Column indices must be distinct: {columns}")

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CSVOption":
        return cls(
            has_header_row=bool(data["has_header_row"]),
            col_app_id=int(data["col_app_id"]),
            col_user_id=int(data["col_user_id"]),
            col_guid=int(data["col_guid"]),
            col_type=int(data["col_type"]),
        )


@dataclass(frozen=True)
class BundleOption:
    """Layout policy for bundle entries.

    user_prefix: prefix every entry with "<appId>/<userId>/".
    keep_folder: mirror the script's virtual folder and name. When False,
                 entries are flattened to a per-(app, user, type) sequence
                 number, e.g. "Function/00001.xs".
    """

    user_prefix: bool = False
    keep_folder: bool = True

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BundleOption":
        return cls(
            user_prefix=bool(data.get("user_prefix", False)),
            keep_folder=bool(data.get("keep_folder", True)),
        )
