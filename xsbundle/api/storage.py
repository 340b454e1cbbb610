"""Staging folders for uploaded manifests and finished bundles.

Security:
  - `_validate_filename()` rejects names containing path separators,
    `..` or null bytes, so a download request can never leave the
    download folder.
"""

from __future__ import annotations

import logging
from pathlib import Path

from xsbundle.core.config import Settings

logger = logging.getLogger(__name__)


def _validate_filename(filename: str) -> None:
    """Reject file names that could be used for path traversal.

    Raises:
        ValueError: If the name is empty or contains invalid components.
    """
    if not filename:
        raise ValueError("File name must not be empty")
    if ".." in filename or "/" in filename or "\\" in filename:
        raise ValueError(f"Invalid file name: path traversal detected: {filename!r}")
    if "\x00" in filename:
        raise ValueError(f"Invalid file name: null byte detected: {filename!r}")


class StagingStorage:
    """Resolve paths inside the upload and download folders."""

    def __init__(self, upload_dir: str | Path, download_dir: str | Path) -> None:
        self.upload_dir = Path(upload_dir).resolve()
        self.download_dir = Path(download_dir).resolve()
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        self.download_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(cls, settings: Settings) -> "StagingStorage":
        return cls(settings.upload_dir, settings.download_dir)

    def upload_path(self, filename: str) -> Path:
        _validate_filename(filename)
        return self.upload_dir / filename

    def download_path(self, filename: str) -> Path:
        _validate_filename(filename)
        return self.download_dir / filename

    def save_upload(self, filename: str, content: bytes) -> Path:
        path = self.upload_path(filename)
        path.write_bytes(content)
        logger.info("Staged upload %s (%d bytes)", path.name, len(content))
        return path
