import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from s3_stream_upload.errors import ConfigError, StreamUploadError
from s3_stream_upload.log import configure_logging
from s3_stream_upload.s3.api import S3Client
from s3_stream_upload.s3.types import (
    DEFAULT_ACL,
    DEFAULT_CONTENT_TYPE,
    DEFAULT_REGION,
    DEFAULT_RETRIES,
    S3Credentials,
    S3StreamUploadConfig,
    S3UploadTarget,
)
from s3_stream_upload.types import SizeSuffix

logger = logging.getLogger(__name__)


@dataclass
class Args:
    bucket: str
    key: str
    region: str
    endpoint_url: str | None
    chunk_size: SizeSuffix
    mime_type: str
    expected_size: SizeSuffix | None
    acl: str
    sse: bool
    retries: int
    max_in_flight: int | None
    staging_dir: Path | None
    verbose: bool


def _size_arg(value: str) -> SizeSuffix:
    try:
        return SizeSuffix(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def _parse_args(argv: list[str] | None = None) -> Args:
    parser = argparse.ArgumentParser(
        description="Stream stdin to S3 as a concurrent multipart upload."
    )
    parser.add_argument("--bucket", help="S3 bucket name (required)", required=True)
    parser.add_argument(
        "--key",
        help="S3 key name (required; use / notation for folders)",
        required=True,
    )
    parser.add_argument("--region", help="AWS S3 region", default=DEFAULT_REGION)
    parser.add_argument(
        "--endpoint-url", help="Custom S3 endpoint URL", default=None, required=False
    )
    parser.add_argument(
        "--chunk-size",
        help="Multipart upload chunk size, e.g. 50MB or 64MiB (5MiB to 5GiB)",
        type=_size_arg,
        default="50MB",
    )
    parser.add_argument(
        "--mime-type", help="Content-type (MIME type)", default=DEFAULT_CONTENT_TYPE
    )
    parser.add_argument(
        "--expected-size",
        help="Expected input size (e.g. 10GB), fail if the stream is larger",
        type=_size_arg,
        default=None,
    )
    parser.add_argument("--acl", help="ACL for new object", default=DEFAULT_ACL)
    parser.add_argument(
        "--sse", help="Use server side encryption", action="store_true"
    )
    parser.add_argument(
        "--retries",
        help="Number of attempts per chunk upload and per session call",
        type=int,
        default=DEFAULT_RETRIES,
    )
    parser.add_argument(
        "--max-in-flight",
        help="Cap on concurrent chunk uploads, unbounded if not given",
        type=int,
        default=None,
    )
    parser.add_argument(
        "--staging-dir",
        help="Directory for temporary chunk files (system temp dir by default)",
        type=Path,
        default=None,
    )
    parser.add_argument("-v", "--verbose", help="Verbose output", action="store_true")

    args = parser.parse_args(argv)
    return Args(
        bucket=args.bucket,
        key=args.key,
        region=args.region,
        endpoint_url=args.endpoint_url,
        chunk_size=args.chunk_size,
        mime_type=args.mime_type,
        expected_size=args.expected_size,
        acl=args.acl,
        sse=args.sse,
        retries=args.retries,
        max_in_flight=args.max_in_flight,
        staging_dir=args.staging_dir,
        verbose=args.verbose,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = _parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO)

    target = S3UploadTarget(
        bucket_name=args.bucket,
        s3_key=args.key,
        content_type=args.mime_type,
        acl=args.acl,
        sse=args.sse,
    )
    config = S3StreamUploadConfig(
        chunk_size=args.chunk_size,
        retries=args.retries,
        expected_size=args.expected_size,
        staging_dir=args.staging_dir,
        max_in_flight=args.max_in_flight,
    )
    try:
        target.validate()
        config.validate()
        credentials = S3Credentials.from_env(
            region_name=args.region, endpoint_url=args.endpoint_url
        )
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.info(f"Region: {args.region}")
    client = S3Client(credentials)
    try:
        result = client.upload_stream(target, config, sys.stdin.buffer)
    except StreamUploadError as e:
        logger.error(str(e))
        return 1
    logger.info(
        f"Multipart upload complete: {result.parts} part(s), {SizeSuffix(result.total_bytes)} ({result.total_bytes} bytes)"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
