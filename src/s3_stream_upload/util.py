import logging
import random
import time
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BACKOFF_MAX = 1.0  # seconds

# SystemRandom so that concurrent retries never share a seeded sequence.
_RANDOM = random.SystemRandom()


def random_sleep(backoff_max: float = DEFAULT_BACKOFF_MAX) -> float:
    """Sleep for a uniformly sampled duration in [0, backoff_max] seconds."""
    if backoff_max <= 0:
        return 0.0
    duration = _RANDOM.uniform(0, backoff_max)
    logger.info(f"Sleeping: {int(duration * 1000)} ms")
    time.sleep(duration)
    return duration


def retry_call(
    fn: Callable[[], T],
    retries: int,
    label: str,
    backoff_max: float = DEFAULT_BACKOFF_MAX,
) -> T:
    """Call fn until it succeeds, at most `retries` times in total.

    A jittered sleep separates consecutive attempts. The exception of the
    final attempt is re-raised once the budget is spent.
    """
    if retries < 1:
        raise ValueError(f"retries must be at least 1, got {retries}")
    for attempt in range(1, retries + 1):
        try:
            return fn()
        except Exception as e:
            if attempt == retries:
                logger.error(f"{label}: retries exceeded ({attempt}/{retries}): {e}")
                raise
            logger.warning(f"{label}: error: {e}")
            logger.info(f"{label}: retrying ({attempt}/{retries})")
            random_sleep(backoff_max)
    raise AssertionError("Should not reach here")
