import abc
import logging
import os
from dataclasses import dataclass
from threading import Lock
from typing import BinaryIO

from botocore.client import BaseClient

from s3_stream_upload.errors import SessionError
from s3_stream_upload.s3.finished_piece import FinishedPiece
from s3_stream_upload.s3.types import S3UploadTarget, SessionState
from s3_stream_upload.util import DEFAULT_BACKOFF_MAX, retry_call

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionId:
    bucket: str
    key: str
    upload_id: str


class MultipartProtocol(abc.ABC):
    """The four multipart operations the upload pipeline depends on."""

    @abc.abstractmethod
    def create(
        self, bucket: str, key: str, content_type: str, acl: str, sse: bool
    ) -> SessionId:
        pass

    @abc.abstractmethod
    def upload_part(
        self, session_id: SessionId, part_number: int, body: BinaryIO
    ) -> FinishedPiece:
        pass

    @abc.abstractmethod
    def complete(self, session_id: SessionId, parts: list[FinishedPiece]) -> None:
        pass

    @abc.abstractmethod
    def abort(self, session_id: SessionId) -> None:
        pass


def _body_size(body: BinaryIO) -> int:
    return os.fstat(body.fileno()).st_size


class S3MultipartProtocol(MultipartProtocol):
    def __init__(self, s3_client: BaseClient) -> None:
        self.s3_client = s3_client

    def create(
        self, bucket: str, key: str, content_type: str, acl: str, sse: bool
    ) -> SessionId:
        kwargs: dict = {
            "Bucket": bucket,
            "Key": key,
            "ContentType": content_type,
        }
        if acl:
            kwargs["ACL"] = acl
        if sse:
            kwargs["ServerSideEncryption"] = "AES256"
        mpu = self.s3_client.create_multipart_upload(**kwargs)
        return SessionId(bucket=bucket, key=key, upload_id=mpu["UploadId"])

    def upload_part(
        self, session_id: SessionId, part_number: int, body: BinaryIO
    ) -> FinishedPiece:
        size = _body_size(body)
        part = self.s3_client.upload_part(
            Bucket=session_id.bucket,
            Key=session_id.key,
            PartNumber=part_number,
            UploadId=session_id.upload_id,
            Body=body,
        )
        return FinishedPiece(part_number=part_number, etag=part["ETag"], size=size)

    def complete(self, session_id: SessionId, parts: list[FinishedPiece]) -> None:
        self.s3_client.complete_multipart_upload(
            Bucket=session_id.bucket,
            Key=session_id.key,
            UploadId=session_id.upload_id,
            MultipartUpload={"Parts": FinishedPiece.to_json_array(parts)},
        )

    def abort(self, session_id: SessionId) -> None:
        self.s3_client.abort_multipart_upload(
            Bucket=session_id.bucket,
            Key=session_id.key,
            UploadId=session_id.upload_id,
        )


class UploadSession:
    """One remote multipart transaction and its lifecycle.

    UNINITIALIZED -> ACTIVE -> COMPLETED | ABORTED. The terminal states are
    final, so the protocol sees at most one complete or abort.
    """

    def __init__(
        self,
        protocol: MultipartProtocol,
        target: S3UploadTarget,
        retries: int,
        backoff_max: float = DEFAULT_BACKOFF_MAX,
    ) -> None:
        self.protocol = protocol
        self.target = target
        self.retries = retries
        self.backoff_max = backoff_max
        self._state = SessionState.UNINITIALIZED
        self._session_id: SessionId | None = None
        self._lock = Lock()

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def session_id(self) -> SessionId:
        assert self._session_id is not None, "Session not established"
        return self._session_id

    @property
    def upload_id(self) -> str:
        return self.session_id.upload_id

    def _require_active(self, op: str) -> SessionId:
        with self._lock:
            if self._state != SessionState.ACTIVE:
                raise SessionError(f"Cannot {op}: session is {self._state.value}")
            assert self._session_id is not None
            return self._session_id

    def establish(self) -> SessionId:
        with self._lock:
            if self._state != SessionState.UNINITIALIZED:
                raise SessionError(f"Session already {self._state.value}")
        target = self.target

        def create() -> SessionId:
            return self.protocol.create(
                target.bucket_name,
                target.s3_key,
                target.content_type,
                target.acl,
                target.sse,
            )

        try:
            session_id = retry_call(
                create,
                retries=self.retries,
                label="Creating multipart upload",
                backoff_max=self.backoff_max,
            )
        except Exception as e:
            raise SessionError(
                f"Error initializing multipart upload (retries exceeded): {e}"
            ) from e
        with self._lock:
            self._session_id = session_id
            self._state = SessionState.ACTIVE
        logger.info(
            f"Created multipart upload {session_id.upload_id} for {target.bucket_name}/{target.s3_key}"
        )
        return session_id

    def upload_part(self, part_number: int, body: BinaryIO) -> FinishedPiece:
        session_id = self._require_active("upload part")
        return self.protocol.upload_part(session_id, part_number, body)

    def complete(self, parts: list[FinishedPiece]) -> bool:
        """Finalize the upload, returns False once the retries are spent."""
        session_id = self._require_active("complete")
        try:
            retry_call(
                lambda: self.protocol.complete(session_id, parts),
                retries=self.retries,
                label="Finalizing upload",
                backoff_max=self.backoff_max,
            )
        except Exception:
            return False
        with self._lock:
            self._state = SessionState.COMPLETED
        logger.info(f"Multipart upload complete: {session_id.upload_id}")
        return True

    def abort(self) -> None:
        with self._lock:
            if self._state != SessionState.ACTIVE:
                logger.warning(f"Abort ignored: session is {self._state.value}")
                return
            assert self._session_id is not None
            session_id = self._session_id
            self._state = SessionState.ABORTED
        logger.warning(f"Aborting multipart upload {session_id.upload_id}")
        try:
            self.protocol.abort(session_id)
        except Exception as e:
            # The remote session may be left dangling and need external cleanup.
            logger.error(f"Error aborting multipart upload {session_id.upload_id}: {e}")
