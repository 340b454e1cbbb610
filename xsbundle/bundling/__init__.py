"""Bundle assembly.

Public API:
    ScriptBundleTask(target).add(script, option) / .end()
    ScriptBundler().bundle_scripts(scripts, target, option) -> int
    ScriptBundler().bundle_user_scripts(client, ...) -> int
    ScriptBundler().bundle_scripts_from_csv(client, ...) -> CSVBundleReport
"""

from xsbundle.bundling.bundle_task import ScriptBundleTask
from xsbundle.bundling.bundler import CSVBundleReport, ScriptBundler
from xsbundle.bundling.target import BundleTarget, TargetKind

__all__ = [
    "BundleTarget",
    "CSVBundleReport",
    "ScriptBundleTask",
    "ScriptBundler",
    "TargetKind",
]
