"""
Live test against a real bucket, runs only when S3_TEST_BUCKET is set.
"""

import io
import os
import unittest

from dotenv import load_dotenv

from s3_stream_upload import (
    S3Client,
    S3Credentials,
    S3StreamUploadConfig,
    S3UploadTarget,
    SessionState,
)

load_dotenv()

_BUCKET: str | None = os.getenv("S3_TEST_BUCKET")


class S3StreamLiveTester(unittest.TestCase):
    """Upload a generated stream to a real bucket."""

    @unittest.skipIf(not _BUCKET, "S3_TEST_BUCKET not set")
    def test_upload_stream(self) -> None:
        assert _BUCKET
        credentials = S3Credentials.from_env(
            region_name=os.getenv("S3_TEST_REGION", "us-west-2"),
            endpoint_url=os.getenv("S3_TEST_ENDPOINT_URL") or None,
        )
        client = S3Client(credentials)
        chunk_size = 5 * 1024 * 1024
        pattern = bytes(range(256))
        data = pattern * (12 * 1024 * 1024 // len(pattern))
        key = "test_data/s3_stream_upload/testfile"
        result = client.upload_stream(
            S3UploadTarget(bucket_name=_BUCKET, s3_key=key),
            S3StreamUploadConfig(chunk_size=chunk_size),
            io.BytesIO(data),
        )
        self.assertEqual(result.state, SessionState.COMPLETED)
        self.assertEqual(result.parts, 3)
        head = client.client.head_object(Bucket=_BUCKET, Key=key)
        self.assertEqual(head["ContentLength"], len(data))
        client.client.delete_object(Bucket=_BUCKET, Key=key)


if __name__ == "__main__":
    unittest.main()
