from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from .errors import ErrorKind, RemoteServiceError, UsageLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0


def with_retry(
    fn: Callable[[], T],
    retries: int = DEFAULT_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``fn`` and retry rate-limited or unavailable failures.

    The wait before the first retry is ``base_delay`` seconds and doubles on
    every further retry. Once the budget is spent, a rate-limit failure is
    replaced by :class:`UsageLimitError`; any other failure propagates as-is.
    Exceptions that are not :class:`RemoteServiceError` are never retried.
    """
    delay = base_delay
    while True:
        try:
            return fn()
        except RemoteServiceError as exc:
            if exc.retryable and retries > 0:
                logger.warning(
                    "Remote call failed (%s, status=%s). Retrying in %.2fs (%d retries left)",
                    exc.kind.value,
                    exc.status_code,
                    delay,
                    retries,
                )
                sleep(delay)
                retries -= 1
                delay *= 2
                continue

            if exc.kind is ErrorKind.RATE_LIMITED:
                raise UsageLimitError() from exc
            raise
