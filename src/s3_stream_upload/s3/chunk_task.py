import logging
from dataclasses import dataclass
from typing import BinaryIO

from s3_stream_upload.errors import StagingIOError, StreamOverflowError
from s3_stream_upload.s3.chunk_file import ChunkFile
from s3_stream_upload.s3.coordinator import UploadCoordinator
from s3_stream_upload.s3.types import MAX_PART_NUMBER, S3StreamUploadConfig
from s3_stream_upload.types import SizeSuffix

logger = logging.getLogger(__name__)


@dataclass
class ChunkerStats:
    chunks: int
    total_bytes: int
    reads: int
    stopped_early: bool = False


class StreamChunker:
    """Splits a sequential byte stream into staged chunks of chunk_size bytes.

    Every chunk but the last holds exactly chunk_size bytes. Full chunks are
    handed to the coordinator as soon as they are written, so uploads run
    while the rest of the stream is still being read.
    """

    def __init__(
        self,
        stream: BinaryIO,
        config: S3StreamUploadConfig,
        coordinator: UploadCoordinator,
    ) -> None:
        self.stream = stream
        self.chunk_size = int(config.chunk_size)
        self.read_size = config.read_size
        self.max_reads = config.max_reads()
        self.staging_dir = config.staging_dir
        self.coordinator = coordinator
        self._chunk: ChunkFile | None = None
        self._chunk_bytes = 0
        self._next_index = 0
        self._total_bytes = 0
        self._reads = 0

    def _stats(self, stopped_early: bool = False) -> ChunkerStats:
        return ChunkerStats(
            chunks=self._next_index,
            total_bytes=self._total_bytes,
            reads=self._reads,
            stopped_early=stopped_early,
        )

    def _new_chunk(self) -> ChunkFile:
        index = self._next_index
        if index >= MAX_PART_NUMBER:
            raise StreamOverflowError(
                f"Stream needs more than {MAX_PART_NUMBER} parts at chunk size {SizeSuffix(self.chunk_size)}"
            )
        chunk = ChunkFile.create(index, self.staging_dir)
        self.coordinator.track(chunk)
        self._next_index += 1
        self._chunk_bytes = 0
        logger.info(
            f"Chunk {index}: temp file: {chunk.path} (total bytes so far: {SizeSuffix(self._total_bytes)})"
        )
        return chunk

    def _write(self, chunk: ChunkFile, data: memoryview) -> None:
        chunk.append(data)
        self._chunk_bytes += len(data)
        self._total_bytes += len(data)
        on_disk = chunk.size()
        if on_disk != self._chunk_bytes:
            raise StagingIOError(
                f"Temp file size ({on_disk}) does not equal expected size ({self._chunk_bytes}): {chunk.path}"
            )

    def _read(self) -> bytes:
        data = self.stream.read(self.read_size)
        if not data:
            return b""
        self._reads += 1
        if self.max_reads is not None and self._reads > self.max_reads:
            raise StreamOverflowError(
                f"read count overflow! more than {self.max_reads} reads of {self.read_size} bytes"
            )
        return data

    def run(self) -> ChunkerStats:
        """Read the stream to EOF, returns early when the abort signal is set."""
        while True:
            data = self._read()
            if not data:
                break
            view = memoryview(data)
            offset = 0
            while offset < len(view):
                if self._chunk is None:
                    if self.coordinator.should_stop():
                        logger.warning("Abort signal set, no new chunks will be created")
                        return self._stats(stopped_early=True)
                    self._chunk = self._new_chunk()
                take = min(len(view) - offset, self.chunk_size - self._chunk_bytes)
                self._write(self._chunk, view[offset : offset + take])
                offset += take
                if self._chunk_bytes >= self.chunk_size:
                    self.coordinator.dispatch(self._chunk)
                    self._chunk = None

        if self._chunk is not None:
            if self.coordinator.should_stop():
                logger.warning("Abort signal set, final chunk will not be uploaded")
                return self._stats(stopped_early=True)
            self.coordinator.dispatch(self._chunk)
            self._chunk = None
        logger.info(
            f"End of stream: {self._next_index} chunk(s), {SizeSuffix(self._total_bytes)} ({self._total_bytes} bytes)"
        )
        return self._stats()
