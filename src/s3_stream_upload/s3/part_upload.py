import logging

from s3_stream_upload.s3.abort_signal import AbortSignal
from s3_stream_upload.s3.chunk_file import ChunkFile
from s3_stream_upload.s3.finished_piece import FinishedPiece
from s3_stream_upload.s3.session import UploadSession
from s3_stream_upload.types import SizeSuffix
from s3_stream_upload.util import DEFAULT_BACKOFF_MAX, retry_call

logger = logging.getLogger(__name__)


def upload_part_task(
    session: UploadSession,
    chunk: ChunkFile,
    abort_signal: AbortSignal,
    retries: int,
    backoff_max: float = DEFAULT_BACKOFF_MAX,
) -> FinishedPiece | None:
    """Upload one staged chunk as part chunk.index + 1.

    Returns None when the chunk could not be uploaded, in which case the
    abort signal has been raised. The session itself is never aborted here.
    """
    ci = chunk.index
    part_number = chunk.part_number
    try:
        size = chunk.size()
    except Exception as e:
        logger.error(f"Chunk {ci}: error getting input file info: {chunk.path}: {e}")
        abort_signal.set(f"Chunk {ci}: {e}")
        return None

    def attempt() -> FinishedPiece:
        logger.info(
            f"Chunk {ci}: starting upload ({chunk.path}; size: {SizeSuffix(size)})"
        )
        # re-open on every attempt so each one starts at offset 0
        with chunk.open_for_read() as f:
            return session.upload_part(part_number, f)

    try:
        part = retry_call(
            attempt, retries=retries, label=f"Chunk {ci}", backoff_max=backoff_max
        )
    except Exception as e:
        abort_signal.set(f"Chunk {ci}: retries exceeded: {e}")
        return None

    logger.info(
        f"Chunk {ci}: upload success (N: {part.part_number}, ETag: {part.etag}, Size: {part.size})"
    )
    chunk.dispose()
    return part
