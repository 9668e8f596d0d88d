import logging

from s3_stream_upload.errors import SessionError, UploadAbortedError
from s3_stream_upload.s3.abort_signal import AbortSignal
from s3_stream_upload.s3.coordinator import UploadCoordinator
from s3_stream_upload.s3.finished_piece import FinishedPiece
from s3_stream_upload.s3.session import UploadSession
from s3_stream_upload.s3.types import SessionState, StreamUploadResult
from s3_stream_upload.types import SizeSuffix

logger = logging.getLogger(__name__)


def collect_parts(coordinator: UploadCoordinator) -> list[FinishedPiece] | None:
    """Read the per-chunk results in chunk order, None if any is missing."""
    parts: list[FinishedPiece] = []
    for index, fut in enumerate(coordinator.results()):
        part = fut.result()
        if part is None:
            logger.error(f"Chunk {index}: no part descriptor")
            return None
        expected = index + 1
        if part.part_number != expected:
            logger.error(
                f"Chunk {index}: part number {part.part_number}, expected {expected}"
            )
            return None
        parts.append(part)
    return parts


def finalize_upload(
    session: UploadSession,
    coordinator: UploadCoordinator,
    abort_signal: AbortSignal,
    total_bytes: int,
) -> StreamUploadResult:
    """Complete or abort the session once every upload task has joined."""
    if abort_signal.is_set():
        session.abort()
        raise UploadAbortedError(abort_signal.reason or "abort signal set")

    parts = collect_parts(coordinator)
    if parts is None:
        reason = "missing part descriptor"
        abort_signal.set(reason)
        session.abort()
        raise UploadAbortedError(reason)

    if not parts:
        # S3 refuses to complete an upload without parts.
        reason = "no data read from input stream"
        abort_signal.set(reason)
        session.abort()
        raise UploadAbortedError(reason)

    uploaded = sum(p.size for p in parts)
    if uploaded != total_bytes:
        reason = f"uploaded {uploaded} bytes but read {total_bytes} bytes"
        abort_signal.set(reason)
        session.abort()
        raise UploadAbortedError(reason)

    logger.info(f"Total chunks: {len(parts)}")
    logger.info(f"Total uploaded: {SizeSuffix(uploaded)} ({uploaded} bytes)")
    logger.info("Finalizing multipart upload")
    if not session.complete(parts):
        logger.error("Retries exceeded: aborting upload")
        session.abort()
        raise SessionError("Error finalizing multipart upload (retries exceeded)")

    return StreamUploadResult(
        upload_id=session.upload_id,
        parts=len(parts),
        total_bytes=uploaded,
        state=SessionState.COMPLETED,
    )
