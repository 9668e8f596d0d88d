import atexit
import logging
import os
import tempfile
from pathlib import Path
from threading import Lock
from typing import BinaryIO, Iterable

from s3_stream_upload.errors import StagingIOError

logger = logging.getLogger(__name__)

_CLEANUP_LIST: list[Path] = []
_CLEANUP_LOCK = Lock()


def _add_for_cleanup(path: Path) -> None:
    with _CLEANUP_LOCK:
        _CLEANUP_LIST.append(path)


def _remove_from_cleanup(path: Path) -> None:
    with _CLEANUP_LOCK:
        if path in _CLEANUP_LIST:
            _CLEANUP_LIST.remove(path)


def _on_exit_cleanup() -> None:
    with _CLEANUP_LOCK:
        paths = list(_CLEANUP_LIST)
        _CLEANUP_LIST.clear()
    for path in paths:
        try:
            if path.exists():
                logger.warning(f"Temporary chunk file found at exit, removing: {path}")
                path.unlink()
        except OSError as e:
            logger.warning(f"Cannot cleanup {path}: {e}")


atexit.register(_on_exit_cleanup)


class ChunkFile:
    """Local staging storage for one chunk of the input stream.

    Owned by the chunker while it is written, then by exactly one upload
    task, which disposes it once the part is stored remotely.
    """

    def __init__(self, index: int, path: Path, handle: BinaryIO | None) -> None:
        self.index = index
        self.path = path
        self._handle = handle
        self._lock = Lock()

    @staticmethod
    def create(index: int, staging_dir: Path | None = None) -> "ChunkFile":
        try:
            if staging_dir is not None:
                staging_dir.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(
                prefix=f"s3upload-chunk-{index}-",
                suffix=".chunk",
                dir=str(staging_dir) if staging_dir is not None else None,
            )
        except OSError as e:
            raise StagingIOError(f"Chunk {index}: error creating tempfile: {e}") from e
        path = Path(name)
        _add_for_cleanup(path)
        handle = os.fdopen(fd, "ab")
        logger.debug(f"Chunk {index}: temp file: {path}")
        return ChunkFile(index=index, path=path, handle=handle)

    @property
    def part_number(self) -> int:
        return self.index + 1

    def append(self, data: bytes | memoryview) -> None:
        with self._lock:
            if self._handle is None:
                raise StagingIOError(f"Chunk {self.index}: write after close: {self.path}")
            try:
                self._handle.write(data)
                self._handle.flush()
            except OSError as e:
                raise StagingIOError(
                    f"Chunk {self.index}: error writing to temp file {self.path}: {e}"
                ) from e

    def size(self) -> int:
        try:
            return self.path.stat().st_size
        except OSError as e:
            raise StagingIOError(
                f"Chunk {self.index}: error getting temp file info {self.path}: {e}"
            ) from e

    def close(self) -> None:
        with self._lock:
            if self._handle is None:
                return
            try:
                self._handle.flush()
                os.fsync(self._handle.fileno())
            except OSError as e:
                raise StagingIOError(
                    f"Chunk {self.index}: error syncing temp file {self.path}: {e}"
                ) from e
            finally:
                self._handle.close()
                self._handle = None

    def open_for_read(self) -> BinaryIO:
        return open(self.path, "rb")

    def exists(self) -> bool:
        return self.path.exists()

    def dispose(self) -> None:
        self.close()
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning(f"Chunk {self.index}: error deleting temp file {self.path}: {e}")
            return
        _remove_from_cleanup(self.path)

    def __repr__(self) -> str:
        return f"ChunkFile(index={self.index}, path={self.path})"


def cleanup_leftovers(chunks: Iterable[ChunkFile]) -> int:
    """Remove staging files that survived their upload task.

    Upload tasks delete their own file on success, so anything found here
    belongs to a failed or never finished chunk.
    """
    removed = 0
    for chunk in chunks:
        try:
            chunk.close()
        except StagingIOError as e:
            logger.warning(str(e))
        if chunk.exists():
            logger.warning(
                f"Warning: temporary file found (cleaning up): {chunk.path} (chunk {chunk.index})"
            )
            removed += 1
        chunk.dispose()
    return removed
