from .errors import (
    ConfigError,
    SessionError,
    StagingIOError,
    StreamOverflowError,
    StreamUploadError,
    UploadAbortedError,
)
from .log import configure_logging, setup_default_logging
from .s3.api import S3Client
from .s3.session import MultipartProtocol, S3MultipartProtocol, SessionId
from .s3.types import (
    S3Credentials,
    S3StreamUploadConfig,
    S3UploadTarget,
    SessionState,
    StreamUploadResult,
)
from .s3.upload_stream_multipart import upload_stream_multipart
from .types import SizeSuffix

setup_default_logging()

__all__ = [
    "S3Client",
    "S3Credentials",
    "S3UploadTarget",
    "S3StreamUploadConfig",
    "StreamUploadResult",
    "SessionState",
    "SessionId",
    "MultipartProtocol",
    "S3MultipartProtocol",
    "upload_stream_multipart",
    "SizeSuffix",
    "configure_logging",
    "StreamUploadError",
    "ConfigError",
    "StagingIOError",
    "StreamOverflowError",
    "SessionError",
    "UploadAbortedError",
]
