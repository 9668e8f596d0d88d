"""
Unit test file.
"""

import io
import tempfile
import threading
import unittest
from pathlib import Path
from unittest import mock

from fake_s3 import ALWAYS, FakeMultipartProtocol, MiB, payload

from s3_stream_upload import (
    ConfigError,
    S3StreamUploadConfig,
    S3UploadTarget,
    SessionError,
    SessionState,
    StagingIOError,
    StreamOverflowError,
    UploadAbortedError,
    upload_stream_multipart,
)
from s3_stream_upload.s3.chunk_file import ChunkFile


class UploadStreamTester(unittest.TestCase):
    """End to end runs against the in-memory protocol."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.staging_dir = Path(self._tmp.name)
        self.target = S3UploadTarget(bucket_name="bucket", s3_key="rds/dump.sql")

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _config(self, **kwargs) -> S3StreamUploadConfig:
        kwargs.setdefault("chunk_size", 5 * MiB)
        kwargs.setdefault("backoff_max", 0)
        return S3StreamUploadConfig(staging_dir=self.staging_dir, **kwargs)

    def _staged_files(self) -> list[Path]:
        return list(self.staging_dir.iterdir())

    def test_twelve_mib_upload(self) -> None:
        data = payload(12 * MiB)
        # part 1 finishes last
        protocol = FakeMultipartProtocol(part_delays={1: 1.0})
        result = upload_stream_multipart(
            protocol, self.target, self._config(), io.BytesIO(data)
        )
        self.assertEqual(result.state, SessionState.COMPLETED)
        self.assertEqual(result.parts, 3)
        self.assertEqual(result.total_bytes, len(data))
        self.assertEqual(result.upload_id, "upload-1")
        self.assertEqual(protocol.finish_order[-1], 1)
        parts = protocol.completed_parts
        assert parts is not None
        self.assertEqual([p.part_number for p in parts], [1, 2, 3])
        self.assertEqual([p.size for p in parts], [5 * MiB, 5 * MiB, 2 * MiB])
        self.assertEqual(protocol.assembled(), data)
        self.assertEqual(protocol.complete_calls, 1)
        self.assertEqual(protocol.abort_calls, 0)
        self.assertEqual(self._staged_files(), [])

    def test_part_fails_twice_then_succeeds(self) -> None:
        data = payload(11 * MiB)
        protocol = FakeMultipartProtocol(part_failures={2: 2})
        result = upload_stream_multipart(
            protocol, self.target, self._config(retries=4), io.BytesIO(data)
        )
        self.assertEqual(result.state, SessionState.COMPLETED)
        self.assertEqual(protocol.part_attempts[2], 3)
        self.assertEqual(protocol.part_attempts[1], 1)
        self.assertEqual(protocol.assembled(), data)

    def test_part_exhausts_retries(self) -> None:
        data = payload(16 * MiB)
        protocol = FakeMultipartProtocol(part_failures={2: ALWAYS})
        with self.assertRaises(UploadAbortedError) as ctx:
            upload_stream_multipart(
                protocol, self.target, self._config(retries=4), io.BytesIO(data)
            )
        self.assertIn("Chunk 1", ctx.exception.reason)
        self.assertEqual(protocol.part_attempts[2], 4)
        self.assertEqual(protocol.abort_calls, 1)
        self.assertEqual(protocol.complete_calls, 0)
        self.assertEqual(self._staged_files(), [])

    def test_every_part_fails(self) -> None:
        data = payload(11 * MiB)
        protocol = FakeMultipartProtocol(
            part_failures={1: ALWAYS, 2: ALWAYS, 3: ALWAYS}
        )
        with self.assertRaises(UploadAbortedError):
            upload_stream_multipart(
                protocol, self.target, self._config(), io.BytesIO(data)
            )
        self.assertEqual(protocol.abort_calls, 1)
        self.assertEqual(protocol.complete_calls, 0)
        self.assertEqual(self._staged_files(), [])

    def test_expected_size_overflow(self) -> None:
        data = payload(10 * MiB)
        protocol = FakeMultipartProtocol()
        with self.assertRaises(StreamOverflowError):
            upload_stream_multipart(
                protocol,
                self.target,
                self._config(expected_size=1 * MiB),
                io.BytesIO(data),
            )
        self.assertEqual(protocol.abort_calls, 1)
        self.assertEqual(protocol.complete_calls, 0)
        self.assertEqual(protocol.parts, {})
        self.assertEqual(self._staged_files(), [])

    def test_staging_error_after_dispatch(self) -> None:
        data = payload(12 * MiB)
        # part 1 is still uploading when chunk 1 goes bad
        protocol = FakeMultipartProtocol(part_delays={1: 0.5})
        real_size = ChunkFile.size

        def _size(chunk: ChunkFile) -> int:
            if chunk.index == 1:
                return real_size(chunk) + 1
            return real_size(chunk)

        with mock.patch.object(ChunkFile, "size", _size):
            with self.assertRaises(StagingIOError):
                upload_stream_multipart(
                    protocol, self.target, self._config(), io.BytesIO(data)
                )
        # the in-flight upload finished before the abort
        self.assertEqual(protocol.finish_order, [1])
        self.assertEqual(protocol.parts[1], data[: 5 * MiB])
        self.assertEqual(protocol.abort_calls, 1)
        self.assertEqual(protocol.complete_calls, 0)
        self.assertEqual(self._staged_files(), [])

    def test_upload_thread_fails_to_start(self) -> None:
        data = payload(12 * MiB)
        protocol = FakeMultipartProtocol(part_delays={1: 0.2})
        starts: list[str] = []

        class _Thread(threading.Thread):
            def start(self) -> None:
                starts.append(self.name)
                if len(starts) == 2:
                    raise RuntimeError("can't start new thread")
                super().start()

        with mock.patch("s3_stream_upload.s3.coordinator.Thread", _Thread):
            with self.assertRaises(RuntimeError) as ctx:
                upload_stream_multipart(
                    protocol, self.target, self._config(), io.BytesIO(data)
                )
        self.assertIn("can't start new thread", str(ctx.exception))
        self.assertEqual(starts, ["upload-chunk-0", "upload-chunk-1"])
        self.assertEqual(protocol.finish_order, [1])
        self.assertEqual(protocol.abort_calls, 1)
        self.assertEqual(protocol.complete_calls, 0)
        self.assertEqual(self._staged_files(), [])

    def test_complete_exhausts_retries(self) -> None:
        protocol = FakeMultipartProtocol(complete_failures=ALWAYS)
        with self.assertRaises(SessionError):
            upload_stream_multipart(
                protocol,
                self.target,
                self._config(retries=3),
                io.BytesIO(payload(6 * MiB)),
            )
        self.assertEqual(protocol.complete_calls, 3)
        self.assertEqual(protocol.abort_calls, 1)

    def test_create_exhausts_retries(self) -> None:
        protocol = FakeMultipartProtocol(create_failures=ALWAYS)
        stream = io.BytesIO(payload(6 * MiB))
        with self.assertRaises(SessionError):
            upload_stream_multipart(protocol, self.target, self._config(), stream)
        self.assertEqual(protocol.create_calls, 4)
        self.assertEqual(protocol.abort_calls, 0)
        # nothing was read or staged
        self.assertEqual(stream.tell(), 0)
        self.assertEqual(self._staged_files(), [])

    def test_invalid_config_before_any_io(self) -> None:
        protocol = FakeMultipartProtocol()
        with self.assertRaises(ConfigError):
            upload_stream_multipart(
                protocol,
                self.target,
                self._config(chunk_size=1 * MiB),
                io.BytesIO(b"data"),
            )
        self.assertEqual(protocol.create_calls, 0)

    def test_empty_stream_is_aborted(self) -> None:
        protocol = FakeMultipartProtocol()
        with self.assertRaises(UploadAbortedError):
            upload_stream_multipart(
                protocol, self.target, self._config(), io.BytesIO(b"")
            )
        self.assertEqual(protocol.abort_calls, 1)
        self.assertEqual(protocol.complete_calls, 0)

    def test_bounded_in_flight(self) -> None:
        data = payload(21 * MiB)
        protocol = FakeMultipartProtocol(part_delays={1: 0.1, 3: 0.1})
        result = upload_stream_multipart(
            protocol,
            self.target,
            self._config(max_in_flight=1),
            io.BytesIO(data),
        )
        self.assertEqual(result.parts, 5)
        # one upload at a time keeps the order
        self.assertEqual(protocol.finish_order, [1, 2, 3, 4, 5])
        self.assertEqual(protocol.assembled(), data)


if __name__ == "__main__":
    unittest.main()
