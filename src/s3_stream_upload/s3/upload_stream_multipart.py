import logging
from typing import BinaryIO

from s3_stream_upload.s3.abort_signal import AbortSignal
from s3_stream_upload.s3.chunk_task import StreamChunker
from s3_stream_upload.s3.completion import finalize_upload
from s3_stream_upload.s3.coordinator import UploadCoordinator
from s3_stream_upload.s3.session import MultipartProtocol, UploadSession
from s3_stream_upload.s3.types import (
    S3StreamUploadConfig,
    S3UploadTarget,
    StreamUploadResult,
)
from s3_stream_upload.types import SizeSuffix

logger = logging.getLogger(__name__)


def upload_stream_multipart(
    protocol: MultipartProtocol,
    target: S3UploadTarget,
    config: S3StreamUploadConfig,
    stream: BinaryIO,
) -> StreamUploadResult:
    """Upload a sequential byte stream as one multipart object.

    The remote session ends exactly once, completed on success or aborted
    on any failure after it was created. Errors are re-raised after the
    abort.
    """
    target.validate()
    config.validate()

    session = UploadSession(
        protocol=protocol,
        target=target,
        retries=config.retries,
        backoff_max=config.backoff_max,
    )
    # Nothing is staged yet, a SessionError here needs no cleanup.
    session.establish()

    logger.info("Starting multipart upload")
    logger.info(f"Bucket: {target.bucket_name}")
    logger.info(f"Key: {target.s3_key}")
    logger.info(f"Chunk size: {SizeSuffix(int(config.chunk_size))}")
    expected_chunks = config.expected_chunks()
    if expected_chunks is not None:
        logger.info(
            f"Expected size: {SizeSuffix(int(config.expected_size or 0))} ({expected_chunks} chunk(s))"
        )

    abort_signal = AbortSignal()
    coordinator = UploadCoordinator(
        session=session,
        abort_signal=abort_signal,
        retries=config.retries,
        backoff_max=config.backoff_max,
        max_in_flight=config.max_in_flight,
    )
    chunker = StreamChunker(stream=stream, config=config, coordinator=coordinator)
    try:
        try:
            stats = chunker.run()
        except Exception as e:
            abort_signal.set(f"{type(e).__name__}: {e}")
            try:
                # In-flight uploads cannot be cancelled, let them run out first.
                coordinator.join()
            finally:
                session.abort()
            raise
        coordinator.join()
        return finalize_upload(
            session=session,
            coordinator=coordinator,
            abort_signal=abort_signal,
            total_bytes=stats.total_bytes,
        )
    finally:
        leftovers = coordinator.cleanup()
        if leftovers and not abort_signal.is_set():
            logger.warning(f"{leftovers} staging file(s) were left behind by uploads")
