"""Bounded retry and polling helpers."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class RetryResult:
    """Outcome of a bounded retry."""

    success: bool
    attempts: int
    value: Any = None
    error: Optional[BaseException] = None


def retry(
    operation: Callable[[], Any],
    attempts: int,
    delay: float,
    predicate: Optional[Callable[[Any], bool]] = None,
    retry_on: tuple = (Exception,),
    description: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
    log_retries: bool = True,
) -> RetryResult:
    """
    Call ``operation`` until it succeeds or ``attempts`` is exhausted.

    An attempt succeeds when the call returns without raising one of
    ``retry_on`` and, if given, ``predicate(value)`` is true. Exceptions
    outside ``retry_on`` propagate immediately. There is no sleep after the
    last attempt.

    Args:
        operation: Zero-argument callable
        attempts: Maximum number of calls (at least 1)
        delay: Fixed delay between attempts in seconds
        predicate: Optional success test on the returned value
        retry_on: Exception types counted as a failed attempt
        description: Label used in log messages
        sleep: Sleep function
        log_retries: Log failed attempts as warnings (debug otherwise)

    Returns:
        RetryResult: success flag, attempts used, last value and last error
    """
    attempts = max(1, attempts)
    value = None
    error = None

    for attempt in range(1, attempts + 1):
        try:
            value = operation()
            error = None
            if predicate is None or predicate(value):
                return RetryResult(success=True, attempts=attempt, value=value)
        except retry_on as e:
            error = e

        if attempt < attempts:
            log = logger.warning if log_retries else logger.debug
            log(
                "%s failed on attempt %s/%s, retrying in %.0fs", description, attempt, attempts, delay
            )
            sleep(delay)

    return RetryResult(success=False, attempts=attempts, value=value, error=error)


def poll(
    check: Callable[[], bool],
    timeout: float,
    interval: float,
    description: str = "condition",
    sleep: Callable[[float], None] = time.sleep,
) -> RetryResult:
    """
    Poll ``check`` every ``interval`` seconds for at most ``timeout`` seconds.

    The number of probes is fixed up front (timeout // interval + 1), so the
    wait is bounded even when a probe itself is slow.
    """
    attempts = int(timeout // interval) + 1 if interval > 0 else 1
    return retry(
        check,
        attempts=attempts,
        delay=interval,
        predicate=bool,
        retry_on=(),
        description=description,
        sleep=sleep,
        log_retries=False,
    )
