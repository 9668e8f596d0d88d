import logging
from concurrent.futures import Future
from threading import Lock, Semaphore, Thread

from s3_stream_upload.s3.abort_signal import AbortSignal
from s3_stream_upload.s3.chunk_file import ChunkFile, cleanup_leftovers
from s3_stream_upload.s3.finished_piece import FinishedPiece
from s3_stream_upload.s3.part_upload import upload_part_task
from s3_stream_upload.s3.session import UploadSession
from s3_stream_upload.util import DEFAULT_BACKOFF_MAX

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """Starts one upload thread per staged chunk and waits for all of them.

    Each chunk gets a one-shot Future at the position of its index, so the
    results can be read back in part order whatever order the threads end.
    """

    def __init__(
        self,
        session: UploadSession,
        abort_signal: AbortSignal,
        retries: int,
        backoff_max: float = DEFAULT_BACKOFF_MAX,
        max_in_flight: int | None = None,
    ) -> None:
        self.session = session
        self.abort_signal = abort_signal
        self.retries = retries
        self.backoff_max = backoff_max
        self._semaphore: Semaphore | None = (
            Semaphore(max_in_flight) if max_in_flight is not None else None
        )
        self._lock = Lock()
        self._threads: list[Thread] = []
        self._futures: list[Future[FinishedPiece | None]] = []
        self.chunks: list[ChunkFile] = []

    def should_stop(self) -> bool:
        return self.abort_signal.is_set()

    def track(self, chunk: ChunkFile) -> None:
        """Register a chunk for the final leftover cleanup."""
        with self._lock:
            self.chunks.append(chunk)

    def dispatch(self, chunk: ChunkFile) -> None:
        chunk.close()
        if self._semaphore is not None:
            self._semaphore.acquire()
        with self._lock:
            if chunk not in self.chunks:
                self.chunks.append(chunk)
            assert chunk.index == len(self._futures), (
                f"Chunk {chunk.index} dispatched out of order, expected {len(self._futures)}"
            )
            fut: Future[FinishedPiece | None] = Future()
            self._futures.append(fut)
        thread = Thread(
            target=self._run,
            args=(chunk, fut),
            name=f"upload-chunk-{chunk.index}",
            daemon=True,
        )
        try:
            thread.start()
        except Exception as e:
            # The chunk never uploads, its slot resolves empty.
            logger.error(f"Chunk {chunk.index}: could not start upload thread: {e}")
            fut.set_result(None)
            if self._semaphore is not None:
                self._semaphore.release()
            raise
        with self._lock:
            self._threads.append(thread)

    def _run(self, chunk: ChunkFile, fut: Future[FinishedPiece | None]) -> None:
        fut.set_running_or_notify_cancel()
        try:
            part = upload_part_task(
                session=self.session,
                chunk=chunk,
                abort_signal=self.abort_signal,
                retries=self.retries,
                backoff_max=self.backoff_max,
            )
            fut.set_result(part)
        except Exception as e:
            logger.error(f"Chunk {chunk.index}: upload task failed: {e}", exc_info=True)
            self.abort_signal.set(f"Chunk {chunk.index}: {e}")
            fut.set_result(None)
        finally:
            if self._semaphore is not None:
                self._semaphore.release()

    def join(self) -> None:
        """Block until every dispatched task finished, successful or not."""
        with self._lock:
            threads = list(self._threads)
        logger.info(f"Waiting for {len(threads)} chunk upload(s) to finish")
        for thread in threads:
            thread.join()

    def results(self) -> list[Future[FinishedPiece | None]]:
        with self._lock:
            return list(self._futures)

    def cleanup(self) -> int:
        with self._lock:
            chunks = list(self.chunks)
        return cleanup_leftovers(chunks)
