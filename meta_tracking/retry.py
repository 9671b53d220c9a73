import logging
import time
from typing import Callable, TypeVar

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from .errors import RETRYABLE_ERRORS


logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_JITTER_SECONDS = 1.0


def with_retry(
    action: Callable[[], T],
    max_attempts: int = 3,
    base_delay: float = 1.0,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``action`` with bounded exponential backoff.

    Only transport failures (``NetworkError``, ``ApiError``) are retried. The
    wait before zero-indexed attempt ``k`` is ``base_delay * 2**k`` plus up to a
    second of jitter. When attempts run out the last error is re-raised as-is.
    """

    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        # tenacity counts finished attempts from 1, so doubling the multiplier
        # gives base_delay * 2**k before attempt k.
        wait=wait_exponential(multiplier=base_delay * 2, min=0) + wait_random(0, MAX_JITTER_SECONDS),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        sleep=sleep,
        reraise=True,
    )
    return retrying(action)
