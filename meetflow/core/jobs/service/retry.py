"""
Bounded retry with exponential backoff for stage executors.

Only transient failures (timeouts, rate limits, network errors) are retried;
everything else surfaces on the first occurrence.
"""
import concurrent.futures
import logging
import random
import re
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from meetflow.core.config.settings import settings
from meetflow.core.enums import ErrorKind
from meetflow.core.errors import ExecutorError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERROR_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"rate limit",
        r"quota exceeded",
        r"503",
        r"429",
        r"temporarily unavailable",
        r"overloaded",
        r"timeout",
        r"timed out",
        r"ECONNRESET",
        r"ETIMEDOUT",
        r"ENOTFOUND",
        r"socket hang up",
        r"network error",
    )
]

NON_RETRYABLE_ERROR_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"invalid api key",
        r"authentication",
        r"unauthorized",
        r"forbidden",
        r"not found",
        r"invalid request",
        r"400",
        r"401",
        r"403",
        r"404",
    )
]


def classify_error(error: BaseException) -> ErrorKind:
    """Maps an exception raised by a provider onto the error taxonomy."""
    if isinstance(error, ExecutorError):
        return error.kind
    if isinstance(error, (TimeoutError, concurrent.futures.TimeoutError, ConnectionError)):
        return ErrorKind.TRANSIENT

    message = str(error)
    # Non-retryable patterns win over retryable ones.
    if any(p.search(message) for p in NON_RETRYABLE_ERROR_PATTERNS):
        return ErrorKind.PERMANENT
    if any(p.search(message) for p in RETRYABLE_ERROR_PATTERNS):
        return ErrorKind.TRANSIENT
    return ErrorKind.PERMANENT


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: float = 0.2  # +/- 20%

    @classmethod
    def from_settings(cls, config=None) -> "RetryPolicy":
        config = config or settings
        return cls(
            max_retries=config.EXECUTOR_MAX_RETRIES,
            initial_delay=config.RETRY_INITIAL_DELAY_SECONDS,
            max_delay=config.RETRY_MAX_DELAY_SECONDS,
            backoff_multiplier=config.RETRY_BACKOFF_MULTIPLIER,
        )

    def delay_for(self, retry_index: int, rand: Callable[[], float] = random.random) -> float:
        exponential = self.initial_delay * (self.backoff_multiplier ** retry_index)
        factor = (1.0 - self.jitter) + rand() * (2 * self.jitter)
        return min(exponential * factor, self.max_delay)


def with_retry(
    fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    operation_name: str,
    sleep: Callable[[float], None] = time.sleep,
    classify: Callable[[BaseException], ErrorKind] = classify_error,
    should_continue: Optional[Callable[[], bool]] = None,
) -> T:
    """
    Runs fn() and retries transient failures up to policy.max_retries times.
    Raises the last error once the budget is spent or on the first non-transient error.
    `should_continue` is consulted before each retry so a superseded or cancelled attempt stops early.
    """
    for attempt in range(policy.max_retries + 1):
        try:
            return fn()
        except Exception as e:
            kind = classify(e)
            if kind != ErrorKind.TRANSIENT:
                logger.error(f"{operation_name} failed with non-retryable error: {e}")
                raise

            if attempt >= policy.max_retries:
                logger.error(f"{operation_name} failed after {policy.max_retries + 1} attempts: {e}")
                raise

            if should_continue is not None and not should_continue():
                logger.info(f"{operation_name} abandoned before retry {attempt + 1}: attempt superseded or cancelled.")
                raise

            delay = policy.delay_for(attempt)
            logger.warning(f"{operation_name} attempt {attempt + 1} failed, retrying in {delay:.2f}s: {e}")
            sleep(delay)

    # Unreachable: the loop either returns or raises.
    raise RuntimeError(f"{operation_name}: retry loop exited without a result")
