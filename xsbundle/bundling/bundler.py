"""Script bundler: the three ways a bundle gets built.

  bundle_scripts: scripts already resolved by the caller
  bundle_user_scripts: every script of one user (one remote query)
  bundle_scripts_from_csv: one remote lookup per manifest row

All three finish in a single ScriptBundleTask. Manifest rows are resolved
one at a time; a bad row is logged and skipped, never fatal to the walk.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from xsbundle.bundling.bundle_task import ScriptBundleTask
from xsbundle.bundling.target import BundleTarget
from xsbundle.scripts.types import BundleOption, CSVOption, Script
from xsbundle.xsservice.client import XSServiceClient
from xsbundle.xsservice.errors import XSServiceError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]
TargetLike = Union[str, Path, BundleTarget]


class CSVRowError(ValueError):
    """A manifest row is missing one of the required fields."""


@dataclass
class RowError:
    line_no: int
    message: str

    def to_dict(self) -> dict:
        return {"line_no": self.line_no, "message": self.message}


@dataclass
class CSVBundleReport:
    """Outcome of one manifest walk."""

    total_lines: int = 0
    bundled: int = 0
    not_found: int = 0
    errors: list[RowError] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_lines": self.total_lines,
            "bundled": self.bundled,
            "not_found": self.not_found,
            "errors": [e.to_dict() for e in self.errors],
        }


def read_manifest_lines(manifest_path: Union[str, Path]) -> list[str]:
    """Read a manifest and split it on line feeds.

    A single terminating line feed does not produce an extra empty line.
    A leading BOM is dropped and undecodable bytes become U+FFFD, so one
    badly encoded cell only spoils its own row.
    """
    text = Path(manifest_path).read_text(encoding="utf-8-sig", errors="replace")
    if text.endswith("\n"):
        text = text[:-1]
    if not text:
        return []
    return text.split("\n")


def parse_manifest_row(line: str, option: CSVOption) -> tuple[str, str, str, str]:
    """Extract (app_id, user_id, script_type, guid) from one manifest line.

    App and user ids are upper-cased.

    Raises:
        CSVRowError: Any of the four fields is missing or empty.
    """
    fields = line.split(",")

    def column(index: int) -> str:
        return fields[index].strip() if index < len(fields) else ""

    app_id = column(option.col_app_id).upper()
    user_id = column(option.col_user_id).upper()
    script_type = column(option.col_type)
    guid = column(option.col_guid)

    missing = [
        name
        for name, value in (
            ("appId", app_id),
            ("userId", user_id),
            ("scriptType", script_type),
            ("guid", guid),
        )
        if not value
    ]
    if missing:
        raise CSVRowError(f"Invalid content: missing {', '.join(missing)}")
    return app_id, user_id, script_type, guid


class ScriptBundler:
    """Build bundles from scripts, users or CSV manifests."""

    def bundle_scripts(
        self,
        scripts: Iterable[Script],
        target: TargetLike,
        option: Optional[BundleOption] = None,
    ) -> int:
        """Bundle already-resolved scripts. Returns the number written."""
        option = option or BundleOption()
        with ScriptBundleTask(target) as task:
            for script in scripts:
                task.add(script, option)
        return task.count

    async def bundle_user_scripts(
        self,
        client: XSServiceClient,
        app_id: str,
        user_id: str,
        script_type: str,
        target: TargetLike,
        option: Optional[BundleOption] = None,
    ) -> int:
        """Bundle every script of one user matching *script_type*."""
        scripts = await client.query_user_scripts(app_id, user_id, script_type)
        logger.info(
            "Bundling %d scripts of %s/%s (type=%s)",
            len(scripts), app_id, user_id, script_type,
        )
        # Keep the archive write off the event loop.
        return await asyncio.to_thread(self.bundle_scripts, scripts, target, option)

    async def bundle_scripts_from_csv(
        self,
        client: XSServiceClient,
        manifest_path: Union[str, Path],
        csv_option: CSVOption,
        target: TargetLike,
        option: Optional[BundleOption] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> CSVBundleReport:
        """Resolve each manifest row and bundle the scripts that exist.

        Progress "<line>/<total>" is reported after every line, including
        the header and blank lines. Rows with missing fields or failed
        lookups are logged and recorded in the report; errors from the
        bundle writer propagate.
        """
        option = option or BundleOption()
        manifest_name = Path(manifest_path).name
        lines = read_manifest_lines(manifest_path)
        report = CSVBundleReport(total_lines=len(lines))

        with ScriptBundleTask(target) as task:
            for line_no, raw_line in enumerate(lines, start=1):
                line = raw_line.rstrip()
                if line and not (csv_option.has_header_row and line_no == 1):
                    await self._bundle_row(
                        client, task, option, csv_option, line, line_no, manifest_name, report,
                    )

                logger.debug(
                    "[%s] bundle progress: [%d/%d] data:%s",
                    manifest_name, line_no, report.total_lines, line,
                )
                if progress_callback is not None:
                    progress_callback(f"{line_no}/{report.total_lines}")

        logger.info(
            "[%s] bundled %d scripts (%d not found, %d row errors)",
            manifest_name, report.bundled, report.not_found, len(report.errors),
        )
        return report

    async def _bundle_row(
        self,
        client: XSServiceClient,
        task: ScriptBundleTask,
        option: BundleOption,
        csv_option: CSVOption,
        line: str,
        line_no: int,
        manifest_name: str,
        report: CSVBundleReport,
    ) -> None:
        try:
            app_id, user_id, script_type, guid = parse_manifest_row(line, csv_option)
            script = await client.query_script_by_id(app_id, user_id, script_type, guid)
        except (CSVRowError, XSServiceError) as exc:
            logger.error("[%s](LINE:%d) exception=%s", manifest_name, line_no, exc)
            report.errors.append(RowError(line_no=line_no, message=str(exc)))
            return

        if script is None:
            logger.warning(
                "[%s](LINE:%d) script not found: %s/%s %s",
                manifest_name, line_no, app_id, user_id, guid,
            )
            report.not_found += 1
            return

        task.add(script, option)
        report.bundled += 1
