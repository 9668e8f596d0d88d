class StreamUploadError(Exception):
    """Base class for every fatal condition of a stream upload."""


class ConfigError(StreamUploadError):
    """Invalid options or missing credentials, raised before any I/O."""


class StagingIOError(StreamUploadError):
    """A staging chunk could not be written or its size does not add up."""


class StreamOverflowError(StagingIOError):
    """The input stream is larger than the upload was configured for."""


class SessionError(StreamUploadError):
    """Creating or completing the multipart session ran out of retries."""


class UploadAbortedError(StreamUploadError):
    def __init__(self, reason: str) -> None:
        super().__init__(f"Multipart upload aborted: {reason}")
        self.reason = reason
