from __future__ import annotations

import logging
import random
import time
from typing import Callable, TypeVar

from google.api_core import exceptions as gexc

T = TypeVar("T")
logger = logging.getLogger(__name__)

_TRANSIENT_EXCEPTIONS: tuple[type[BaseException], ...] = (
    gexc.Aborted,
    gexc.DeadlineExceeded,
    gexc.InternalServerError,
    gexc.ResourceExhausted,
    gexc.ServiceUnavailable,
    gexc.TooManyRequests,
)


def is_transient(e: BaseException) -> bool:
    return isinstance(e, _TRANSIENT_EXCEPTIONS)


def with_firestore_retry(
    fn: Callable[[], T],
    *,
    max_attempts: int = 1,
    base_delay_s: float = 0.2,
    max_delay_s: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run a blocking Firestore write, retrying transient errors with exponential backoff + full jitter.

    `max_attempts=1` (the default) means a single attempt: the ledger core does not retry
    unless a deployment opts in via LEDGER_WRITE_ATTEMPTS. Non-transient errors
    (PermissionDenied, InvalidArgument, ...) are never retried.
    """
    attempt = 0
    while True:
        try:
            return fn()
        except Exception as e:
            if (not is_transient(e)) or attempt >= (max_attempts - 1):
                raise

            sleep_s = min(max_delay_s, base_delay_s * (2**attempt))
            logger.info("firestore_retry iteration=%d sleep_s=%.3f error=%s", attempt + 1, float(sleep_s), type(e).__name__)
            sleep(random.random() * float(sleep_s))
            attempt += 1
