"""Accumulate scripts into one bundle.

Usage:
    task = ScriptBundleTask("out/scripts.zip")
    task.add(script, option)
    task.add(script, option)
    task.end()          # the archive is complete only after this returns

Each script is placed by type and virtual folder:

    Function/
        <func1>.xs
        Lib/<func2>.xs
    Sensor/
        ^<hidden sensor>.xs

With BundleOption.user_prefix the tree is nested under <appId>/<userId>/.
With keep_folder=False folders and names are replaced by a sequence number
per (appId, userId, type): Function/00001.xs, Function/00002.xs, ...

A task is not safe for concurrent add() calls; callers serialize them.
"""

import logging
import zipfile
from collections import defaultdict
from pathlib import Path
from typing import Optional, Union

from xsbundle.bundling.target import BundleTarget
from xsbundle.scripts.types import BundleOption, Script, folder_name_for

logger = logging.getLogger(__name__)

SCRIPT_EXTENSION = ".xs"
HIDDEN_PREFIX = "^"
SEQUENCE_WIDTH = 5


def _validate_entry_path(entry: str) -> None:
    """Reject entry paths that would escape the bundle root.

    Raises:
        ValueError: The path has a `..` component or a null byte.
    """
    if "\x00" in entry:
        raise ValueError(f"Invalid bundle entry: null byte detected: {entry!r}")
    if ".." in entry.split("/"):
        raise ValueError(f"Invalid bundle entry: path traversal detected: {entry!r}")


def _normalise_folder(folder: str) -> str:
    folder = folder or "/"
    if not folder.startswith("/"):
        folder = "/" + folder
    if not folder.endswith("/"):
        folder = folder + "/"
    return folder


class ScriptBundleTask:
    """Write scripts into a zip archive or a directory tree."""

    def __init__(self, target: Union[str, Path, BundleTarget]) -> None:
        if not isinstance(target, BundleTarget):
            target = BundleTarget.from_path(target)
        self.target = target

        # "<appId>-<userId>-<type>" -> last sequence number handed out
        self._sequences: dict[str, int] = defaultdict(int)
        self._archive: Optional[zipfile.ZipFile] = None
        self._ended = False
        self.count = 0

        if target.is_archive:
            target.path.parent.mkdir(parents=True, exist_ok=True)
            self._archive = zipfile.ZipFile(
                target.path,
                "w",
                compression=zipfile.ZIP_DEFLATED,
                compresslevel=9,
            )
        else:
            target.path.mkdir(parents=True, exist_ok=True)

    def __enter__(self) -> "ScriptBundleTask":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.end()

    def entry_path(self, script: Script, option: BundleOption) -> str:
        """Compute the bundle path of *script*.

        With keep_folder=False this consumes the next sequence number for
        the script's (appId, userId, type) key.
        """
        base = folder_name_for(script.script_type)
        if option.user_prefix:
            base = f"{script.app_id}/{script.user_id}/{base}"

        if option.keep_folder:
            hidden = HIDDEN_PREFIX if script.invisible else ""
            entry = f"{base}{_normalise_folder(script.folder)}{hidden}{script.name}{SCRIPT_EXTENSION}"
        else:
            key = f"{script.app_id}-{script.user_id}-{script.script_type}"
            self._sequences[key] += 1
            entry = f"{base}/{self._sequences[key]:0{SEQUENCE_WIDTH}d}{SCRIPT_EXTENSION}"

        _validate_entry_path(entry)
        return entry

    def add(self, script: Script, option: Optional[BundleOption] = None) -> str:
        """Write *script* into the bundle and return its entry path."""
        if self._ended:
            raise RuntimeError(f"Bundle task for {self.target.path} has already ended")

        entry = self.entry_path(script, option or BundleOption())
        content = script.as_file_content()

        if self._archive is not None:
            self._archive.writestr(entry, content)
        else:
            file_path = self.target.path / entry
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_bytes(content.encode("utf-8"))

        self.count += 1
        logger.debug("Added %s to %s", entry, self.target.path)
        return entry

    def end(self) -> None:
        """Flush and close the archive. No-op for directories and on repeat calls."""
        if self._ended:
            return
        self._ended = True
        if self._archive is not None:
            self._archive.close()
        logger.info(
            "Bundle %s finished with %d scripts (%s)",
            self.target.path, self.count, self.target.kind.value,
        )
