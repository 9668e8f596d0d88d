import logging
from threading import Lock

logger = logging.getLogger(__name__)


class AbortSignal:
    """Shared run-wide failure flag.

    Goes from unset to set once and is never reset. Every read and write
    holds the lock.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._set = False
        self._reason: str | None = None

    def set(self, reason: str) -> None:
        with self._lock:
            if not self._set:
                self._set = True
                self._reason = reason
        logger.error(f"Raising multipart error: {reason}")

    def is_set(self) -> bool:
        with self._lock:
            return self._set

    @property
    def reason(self) -> str | None:
        with self._lock:
            return self._reason
