import json
import logging
from typing import BinaryIO

from botocore.client import BaseClient

from s3_stream_upload.s3.create import S3Config, create_s3_client
from s3_stream_upload.s3.session import S3MultipartProtocol
from s3_stream_upload.s3.types import (
    S3Credentials,
    S3StreamUploadConfig,
    S3UploadTarget,
    StreamUploadResult,
)
from s3_stream_upload.s3.upload_stream_multipart import upload_stream_multipart

logger = logging.getLogger(__name__)


class S3Client:
    def __init__(
        self, credentials: S3Credentials, s3_config: S3Config | None = None
    ) -> None:
        self.credentials: S3Credentials = credentials
        self.client: BaseClient = create_s3_client(credentials, s3_config)

    def upload_stream(
        self,
        target: S3UploadTarget,
        config: S3StreamUploadConfig,
        stream: BinaryIO,
    ) -> StreamUploadResult:
        try:
            return upload_stream_multipart(
                protocol=S3MultipartProtocol(self.client),
                target=target,
                config=config,
                stream=stream,
            )
        except Exception as e:
            info_json = {
                "bucket": target.bucket_name,
                "key": target.s3_key,
                **self.credentials.redacted(),
            }
            info_json_str = json.dumps(info_json, indent=2)
            logger.error(f"Error uploading stream: {e}\nInfo:\n\n{info_json_str}")
            raise
