"""
Unit test file.
"""

import unittest
from unittest import mock

from s3_stream_upload.util import random_sleep, retry_call


class RetryTester(unittest.TestCase):
    """Bounded retry with jittered sleeps."""

    def test_succeeds_after_failures(self) -> None:
        calls = []

        def fn() -> str:
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionError("flaky")
            return "ok"

        with mock.patch("s3_stream_upload.util.time.sleep") as sleep:
            out = retry_call(fn, retries=4, label="test", backoff_max=1.0)
        self.assertEqual(out, "ok")
        self.assertEqual(len(calls), 3)
        self.assertEqual(sleep.call_count, 2)

    def test_exhaustion_reraises_last_error(self) -> None:
        calls = []

        def fn() -> None:
            calls.append(1)
            raise ConnectionError(f"attempt {len(calls)}")

        with mock.patch("s3_stream_upload.util.time.sleep") as sleep:
            with self.assertRaises(ConnectionError) as ctx:
                retry_call(fn, retries=4, label="test", backoff_max=1.0)
        self.assertEqual(len(calls), 4)
        self.assertEqual(str(ctx.exception), "attempt 4")
        # no sleep after the final attempt
        self.assertEqual(sleep.call_count, 3)

    def test_invalid_budget(self) -> None:
        with self.assertRaises(ValueError):
            retry_call(lambda: None, retries=0, label="test")

    def test_random_sleep_is_bounded(self) -> None:
        with mock.patch("s3_stream_upload.util.time.sleep") as sleep:
            durations = [random_sleep(0.5) for _ in range(50)]
        self.assertEqual(sleep.call_count, 50)
        for d in durations:
            self.assertGreaterEqual(d, 0.0)
            self.assertLessEqual(d, 0.5)
        # jittered, not a fixed delay
        self.assertGreater(len(set(durations)), 1)

    def test_zero_backoff_does_not_sleep(self) -> None:
        with mock.patch("s3_stream_upload.util.time.sleep") as sleep:
            self.assertEqual(random_sleep(0), 0.0)
        sleep.assert_not_called()


if __name__ == "__main__":
    unittest.main()
