"""Filesystem storage adapter — screenshots under base/, current/ and diff/."""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import re
import uuid
from pathlib import Path

from visreg.constants import KIND_BASE, KIND_CURRENT, KIND_DIFF, SNAPSHOT_EXTENSION
from visreg.errors import StorageError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS_RE = re.compile(r"[^a-zA-Z0-9\-_.]")
_UNSAFE_ID_CHARS_RE = re.compile(r"[^a-zA-Z0-9\-_]")

# errno values meaning "this filesystem cannot rename over the target"
_RENAME_UNSUPPORTED = {errno.EXDEV, errno.ENOTSUP, errno.EPERM, errno.EACCES}


def snapshot_filename(snapshot_id: str) -> str:
    """Map a logical capture id to its on-disk PNG name."""
    return f"{_UNSAFE_ID_CHARS_RE.sub('_', snapshot_id)}{SNAPSHOT_EXTENSION}"


def sanitize_filename(filename: str) -> str:
    """Validate a bare filename and map unsafe characters to ``_``.

    Separators and ``..`` are rejected outright rather than rewritten, so a
    crafted ID can never be coerced into a different directory.
    """
    if not filename or "/" in filename or "\\" in filename or ".." in filename:
        raise StorageError(f"Invalid filename: {filename!r}")
    return _UNSAFE_CHARS_RE.sub("_", filename)


class FsStorageAdapter:
    """Stores screenshots on the local filesystem.

    Layout::

        {screenshot_dir}/base/*.png     accepted baselines (never cleaned up)
        {screenshot_dir}/current/*.png  captures from the latest test run
        {screenshot_dir}/diff/*.png     diff images written by comparison engines

    Writes are atomic: bytes go to a hidden temp file in the target directory
    which is then renamed over the final name.
    """

    def __init__(
        self,
        screenshot_dir: str | Path,
        base_dir_name: str = KIND_BASE,
        current_dir_name: str = KIND_CURRENT,
        diff_dir_name: str = KIND_DIFF,
    ):
        self.screenshot_dir = Path(screenshot_dir).resolve()
        self._dirs = {
            KIND_BASE: self.screenshot_dir / base_dir_name,
            KIND_CURRENT: self.screenshot_dir / current_dir_name,
            KIND_DIFF: self.screenshot_dir / diff_dir_name,
        }
        self._pending_temp: set[Path] = set()

    def dir_for(self, kind: str) -> Path:
        try:
            return self._dirs[kind]
        except KeyError:
            raise StorageError(f"Invalid storage kind: {kind}") from None

    def ensure_directories(self) -> None:
        """Create every kind directory. Safe under concurrent callers."""
        for path in self._dirs.values():
            path.mkdir(parents=True, exist_ok=True)

    def _resolve(self, kind: str, filename: str) -> Path:
        safe = sanitize_filename(filename)
        directory = self.dir_for(kind)
        candidate = (directory / safe).resolve()
        if not candidate.is_relative_to(directory.resolve()):
            raise StorageError(f"Path traversal detected: {filename!r}")
        return candidate

    async def write(self, kind: str, filename: str, data: bytes) -> str:
        """Atomically write ``data`` and return the absolute final path."""
        path = self._resolve(kind, filename)
        try:
            await asyncio.to_thread(self._write_atomic, path, data)
        except OSError as e:
            raise StorageError(f"Failed to write {kind}/{filename}: {e}") from e
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return str(path)

    def _write_atomic(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex[:8]}.tmp")
        self._pending_temp.add(tmp)
        try:
            tmp.write_bytes(data)
            try:
                os.replace(tmp, path)
            except OSError as e:
                if e.errno not in _RENAME_UNSUPPORTED:
                    raise
                logger.debug("Rename unsupported for %s (%s), overwriting directly", path, e)
                path.write_bytes(data)
                tmp.unlink(missing_ok=True)
        except OSError:
            tmp.unlink(missing_ok=True)
            raise
        finally:
            self._pending_temp.discard(tmp)

    async def read(self, kind: str, filename: str) -> bytes:
        path = self._resolve(kind, filename)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise StorageError(f"Failed to read {kind}/{filename}: {e}") from e

    async def get_readable_path(self, kind: str, filename: str) -> str:
        return str(self._resolve(kind, filename))

    async def exists(self, kind: str, filename: str) -> bool:
        try:
            path = self._resolve(kind, filename)
        except StorageError:
            return False
        return await asyncio.to_thread(path.is_file)

    async def list(self, kind: str) -> list[str]:
        """Return the sorted ``.png`` filenames stored under ``kind``."""
        directory = self.dir_for(kind)
        if not directory.is_dir():
            return []
        return sorted(
            p.name for p in directory.iterdir()
            if p.is_file() and p.name.endswith(SNAPSHOT_EXTENSION)
        )

    async def cleanup(self) -> None:
        """Remove temp files whose write never reached the final rename."""
        leftovers = list(self._pending_temp)
        for tmp in leftovers:
            try:
                tmp.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to remove temp file %s: %s", tmp, e)
            self._pending_temp.discard(tmp)
        if leftovers:
            logger.info("Removed %d unfinished temp files", len(leftovers))

    @property
    def pending_temp_files(self) -> list[Path]:
        return sorted(self._pending_temp)
