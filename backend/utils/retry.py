"""
Bounded retry with exponential backoff for store queries.

Transient database errors (dropped connections, cold poolers) are retried
a few times; anything else propagates immediately.

Usage:
    from utils.retry import run_with_retry

    rows = run_with_retry(lambda: query_view('bytime', group_level=1),
                          attempts=3, base_sleep=0.25, label='national_trend')
"""

import logging
import time
from typing import Callable, Optional, Tuple, Type, TypeVar

from sqlalchemy.exc import OperationalError

log = logging.getLogger(__name__)

T = TypeVar('T')

RETRYABLE_ERRORS: Tuple[Type[BaseException], ...] = (OperationalError,)


def run_with_retry(
    fn: Callable[[], T],
    *,
    attempts: int = 3,
    base_sleep: float = 0.25,
    retry_on: Tuple[Type[BaseException], ...] = RETRYABLE_ERRORS,
    label: str = 'query',
    on_retry: Optional[Callable[[], None]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Call fn(), retrying on retry_on errors.

    Args:
        fn: Zero-argument callable
        attempts: Total attempts (>= 1)
        base_sleep: Sleep before the second attempt; doubles each retry
        retry_on: Exception types considered transient
        label: Name used in log lines
        on_retry: Called after a failed attempt, before sleeping
            (e.g. to roll back the session)
        sleep: Injected for tests

    Raises:
        The last retryable error once attempts are exhausted, or any
        non-retryable error immediately.
    """
    attempts = max(1, attempts)
    last_error: Optional[BaseException] = None

    for i in range(attempts):
        try:
            return fn()
        except retry_on as e:
            last_error = e
            if i == attempts - 1:
                break
            sleep_s = base_sleep * (2 ** i)
            log.warning(
                "%s_retry attempt=%d/%d sleep_s=%.2f err=%s",
                label, i + 1, attempts, sleep_s, str(e)[:100]
            )
            if on_retry is not None:
                on_retry()
            sleep(sleep_s)

    log.error("%s_failed after %d attempts", label, attempts)
    raise last_error  # type: ignore[misc]
