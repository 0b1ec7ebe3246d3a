"""Filesystem primitives used by node actions, with a recording dry-run variant."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List
import logging
import shutil


logger = logging.getLogger(__name__)


class FileOperations:
    """Abstract filesystem interface used by build actions."""

    def make_directory(self, path: Path) -> None:
        raise NotImplementedError

    def copy(self, source: Path, destination: Path) -> None:
        raise NotImplementedError

    def write_text(self, path: Path, content: str) -> None:
        raise NotImplementedError

    def remove(self, path: Path) -> None:
        raise NotImplementedError


class LocalFileOperations(FileOperations):
    """File operations applied to the local filesystem."""

    def make_directory(self, path: Path) -> None:
        logger.info("mkdir -p %s", path)
        path.mkdir(parents=True, exist_ok=True)

    def copy(self, source: Path, destination: Path) -> None:
        logger.info("cp %s %s", source, destination)
        shutil.copy2(source, destination)

    def write_text(self, path: Path, content: str) -> None:
        logger.info("write %s", path)
        path.write_text(content, encoding="utf-8")

    def remove(self, path: Path) -> None:
        if path.is_dir() and not path.is_symlink():
            logger.info("rm -r %s", path)
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            logger.info("rm %s", path)
            path.unlink()


@dataclass(slots=True)
class RecordedFileOperation:
    operation: str
    path: str
    source: str | None = None
    content: str | None = None


class RecordingFileOperations(FileOperations):
    """File operations that are recorded instead of applied."""

    def __init__(self) -> None:
        self.operations: List[RecordedFileOperation] = []

    def make_directory(self, path: Path) -> None:
        self.operations.append(RecordedFileOperation("mkdir", path.as_posix()))

    def copy(self, source: Path, destination: Path) -> None:
        self.operations.append(RecordedFileOperation("copy", destination.as_posix(), source=source.as_posix()))

    def write_text(self, path: Path, content: str) -> None:
        self.operations.append(RecordedFileOperation("write", path.as_posix(), content=content))

    def remove(self, path: Path) -> None:
        self.operations.append(RecordedFileOperation("remove", path.as_posix()))

    def of_kind(self, operation: str) -> List[RecordedFileOperation]:
        return [record for record in self.operations if record.operation == operation]

    def iter_formatted(self) -> Iterable[str]:
        for record in self.operations:
            if record.source is not None:
                yield f"[dry-run] {record.operation} {record.source} {record.path}"
            else:
                yield f"[dry-run] {record.operation} {record.path}"


class CleanupLists:
    """Paths removed by the ``clean`` and ``clobber`` tasks.

    ``clean`` drops intermediate build directories; ``clobber`` additionally
    removes produced binaries and the whole scratch root.
    """

    def __init__(self) -> None:
        self.clean: List[Path] = []
        self.clobber: List[Path] = []

    @staticmethod
    def _include(target: List[Path], path: Path) -> None:
        if path not in target:
            target.append(path)

    def include_clean(self, path: Path) -> None:
        self._include(self.clean, path)

    def include_clobber(self, path: Path) -> None:
        self._include(self.clobber, path)

    def clean_paths(self) -> List[Path]:
        return list(self.clean)

    def clobber_paths(self) -> List[Path]:
        return [*self.clean, *(path for path in self.clobber if path not in self.clean)]


__all__ = [
    "CleanupLists",
    "FileOperations",
    "LocalFileOperations",
    "RecordedFileOperation",
    "RecordingFileOperations",
]
