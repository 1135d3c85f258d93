from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterator

from tubely.core.logging import get_logger

STAGED_PREFIX = "tubely-upload-"


class StagedFile:
    """An open, uniquely named scratch file that is written once and then re-read."""

    def __init__(self, handle: BinaryIO, path: Path, media_type: str | None = None):
        self.handle = handle
        self.path = path
        self.media_type = media_type
        self.size_bytes = 0

    def write(self, chunk: bytes) -> int:
        written = self.handle.write(chunk)
        self.size_bytes += written
        return written

    def rewind(self) -> None:
        self.handle.flush()
        self.handle.seek(0, os.SEEK_SET)

    def close(self) -> None:
        if not self.handle.closed:
            self.handle.close()


class StagingArea:
    def __init__(self, scratch_dir: Path):
        self.scratch_dir = Path(scratch_dir)
        self.logger = get_logger(component="staging_area")

    def create(self, extension: str, *, media_type: str | None = None) -> StagedFile:
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        suffix = f".{extension.lstrip('.')}" if extension else ""
        handle = tempfile.NamedTemporaryFile(
            mode="w+b",
            prefix=STAGED_PREFIX,
            suffix=suffix,
            dir=self.scratch_dir,
            delete=False,
        )
        path = Path(handle.name)
        self.logger.debug("staged_file_created", path=str(path))
        return StagedFile(handle, path, media_type)

    def remove(self, path: Path) -> None:
        """Delete ``path``; a file that is already gone counts as removed."""
        Path(path).unlink(missing_ok=True)
        self.logger.debug("staged_file_removed", path=str(path))

    @contextmanager
    def scope(self) -> Iterator["StagingScope"]:
        scope = StagingScope(self)
        try:
            yield scope
        except BaseException:
            # Keep the error already in flight; a failed removal is only logged.
            try:
                scope.release()
            except OSError as exc:
                self.logger.error("staged_cleanup_failed", error=str(exc))
            raise
        scope.release()


class StagingScope:
    """Tracks every file staged for one request and deletes them all on release."""

    def __init__(self, area: StagingArea):
        self.area = area
        self.files: list[StagedFile] = []
        self.paths: list[Path] = []

    def create(self, extension: str, *, media_type: str | None = None) -> StagedFile:
        staged = self.area.create(extension, media_type=media_type)
        self.files.append(staged)
        self.paths.append(staged.path)
        return staged

    def adopt(self, path: Path) -> Path:
        self.paths.append(Path(path))
        return Path(path)

    def release(self) -> None:
        for staged in self.files:
            staged.close()
        failures: list[tuple[Path, OSError]] = []
        for path in self.paths:
            try:
                self.area.remove(path)
            except OSError as exc:
                failures.append((path, exc))
        self.files.clear()
        self.paths.clear()
        if failures:
            path, exc = failures[0]
            raise OSError(f"failed to remove staged file {path}: {exc}") from exc


__all__ = ["STAGED_PREFIX", "StagedFile", "StagingArea", "StagingScope"]
