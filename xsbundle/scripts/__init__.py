"""Script data model.

Public API:
    Script, ScriptType, SensorRecord, CSVOption, BundleOption
    folder_name_for(script_type) -> str
"""

from xsbundle.scripts.types import (
    BundleOption,
    CSVOption,
    Script,
    ScriptType,
    SensorRecord,
    folder_name_for,
)

__all__ = [
    "BundleOption",
    "CSVOption",
    "Script",
    "ScriptType",
    "SensorRecord",
    "folder_name_for",
]
