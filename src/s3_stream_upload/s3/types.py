import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from s3_stream_upload.errors import ConfigError
from s3_stream_upload.types import SizeSuffix

DEFAULT_REGION = "us-west-2"
DEFAULT_CONTENT_TYPE = "binary/octet-stream"
DEFAULT_ACL = "bucket-owner-full-control"
DEFAULT_CHUNK_SIZE = SizeSuffix("50MB")
DEFAULT_RETRIES = 4
DEFAULT_READ_SIZE = 10000

MIN_CHUNK_SIZE = 5 * 1024 * 1024  # 5MiB
MAX_CHUNK_SIZE = 5 * 1024 * 1024 * 1024  # 5GiB
MAX_PART_NUMBER = 10000


class SessionState(Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    COMPLETED = "completed"
    ABORTED = "aborted"

    def is_terminal(self) -> bool:
        return self in (SessionState.COMPLETED, SessionState.ABORTED)


def _first_env(*names: str) -> str | None:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


@dataclass
class S3Credentials:
    """Credentials for accessing S3."""

    access_key_id: str
    secret_access_key: str
    session_token: str | None = None
    region_name: str | None = None
    endpoint_url: str | None = None

    @staticmethod
    def from_env(
        region_name: str | None = DEFAULT_REGION, endpoint_url: str | None = None
    ) -> "S3Credentials":
        access_key = _first_env("AWS_ACCESS_KEY_ID", "AWS_ACCESS_KEY")
        secret_key = _first_env("AWS_SECRET_ACCESS_KEY", "AWS_SECRET_KEY")
        if not access_key or not secret_key:
            raise ConfigError(
                "AWS credentials must be passed as environment variables "
                "(AWS_ACCESS_KEY_ID/AWS_ACCESS_KEY and AWS_SECRET_ACCESS_KEY/AWS_SECRET_KEY)"
            )
        return S3Credentials(
            access_key_id=access_key,
            secret_access_key=secret_key,
            session_token=os.getenv("AWS_SESSION_TOKEN") or None,
            region_name=region_name,
            endpoint_url=endpoint_url,
        )

    def redacted(self) -> dict:
        return {
            "access_key_id": self.access_key_id[:4] + "...",
            "secret": self.secret_access_key[:4] + "...",
            "endpoint_url": self.endpoint_url,
            "region": self.region_name,
        }


@dataclass
class S3UploadTarget:
    """Target information for S3 upload."""

    bucket_name: str
    s3_key: str
    content_type: str = DEFAULT_CONTENT_TYPE
    acl: str = DEFAULT_ACL
    sse: bool = False

    def validate(self) -> None:
        if not self.bucket_name:
            raise ConfigError("S3 bucket parameter missing")
        if not self.s3_key:
            raise ConfigError("S3 key parameter missing")


@dataclass
class S3StreamUploadConfig:
    """Input for a streamed multi-part upload."""

    chunk_size: int | SizeSuffix = DEFAULT_CHUNK_SIZE
    retries: int = DEFAULT_RETRIES
    expected_size: int | SizeSuffix | None = None
    read_size: int = DEFAULT_READ_SIZE
    backoff_max: float = 1.0  # upper bound of the jittered retry sleep, seconds
    staging_dir: Path | None = None  # None selects the system temp dir
    max_in_flight: int | None = None  # None means one thread per chunk

    def __post_init__(self) -> None:
        self.chunk_size = SizeSuffix(self.chunk_size).as_int()
        if self.expected_size is not None:
            self.expected_size = SizeSuffix(self.expected_size).as_int()

    def validate(self) -> None:
        chunk_size = int(self.chunk_size)
        if chunk_size < MIN_CHUNK_SIZE or chunk_size > MAX_CHUNK_SIZE:
            raise ConfigError(
                f"Invalid chunk size {SizeSuffix(chunk_size)}: must be between 5MiB and 5GiB (inclusive)"
            )
        if self.retries < 1:
            raise ConfigError(f"retries must be at least 1, got {self.retries}")
        if self.read_size <= 0:
            raise ConfigError(f"read size must be positive, got {self.read_size}")
        if self.expected_size is not None and int(self.expected_size) < 0:
            raise ConfigError(f"Invalid expected size: {self.expected_size}")
        if self.max_in_flight is not None and self.max_in_flight < 1:
            raise ConfigError(
                f"max_in_flight must be at least 1, got {self.max_in_flight}"
            )
        if self.backoff_max < 0:
            raise ConfigError(f"Invalid backoff: {self.backoff_max}")

    def max_reads(self) -> int | None:
        """Upper bound on read increments implied by expected_size, if any."""
        if not self.expected_size:
            return None
        expected = int(self.expected_size)
        out = expected // self.read_size
        if expected % self.read_size:
            return out + 1
        return out

    def expected_chunks(self) -> int | None:
        if not self.expected_size:
            return None
        expected = int(self.expected_size)
        chunk_size = int(self.chunk_size)
        out = expected // chunk_size
        if expected % chunk_size:
            return out + 1
        return out


@dataclass(frozen=True)
class StreamUploadResult:
    upload_id: str
    parts: int
    total_bytes: int
    state: SessionState
