"""Where a bundle is written: a zip archive or a plain directory tree."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union

ARCHIVE_SUFFIX = ".zip"


class TargetKind(str, Enum):
    ARCHIVE = "archive"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class BundleTarget:
    """A bundle destination whose kind is fixed when it is created."""

    path: Path
    kind: TargetKind

    @classmethod
    def from_path(cls, path: Union[str, Path]) -> "BundleTarget":
        """Targets named "*.zip" (any case) are archives, others directories."""
        path = Path(path)
        if path.name.lower().endswith(ARCHIVE_SUFFIX):
            return cls(path=path, kind=TargetKind.ARCHIVE)
        return cls(path=path, kind=TargetKind.DIRECTORY)

    @property
    def is_archive(self) -> bool:
        return self.kind is TargetKind.ARCHIVE
