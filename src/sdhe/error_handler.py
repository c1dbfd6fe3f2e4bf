"""
Error handling utilities for store and S3 operations.

This module provides:
- Error categorization (transient vs permanent)
- A retry decorator with exponential backoff
- Partial failure collection for per-item publishing
"""

import functools
import random
import time
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple, Type

import duckdb
from botocore.exceptions import ClientError, EndpointConnectionError

from sdhe.logging_config import create_logger

logger = create_logger(__name__)

TRANSIENT_AWS_CODES = frozenset({
    "RequestTimeout",
    "ThrottlingException",
    "TooManyRequestsException",
    "ServiceUnavailable",
    "InternalError",
    "SlowDown",
    "RequestLimitExceeded",
})

PERMANENT_AWS_CODES = frozenset({
    "AccessDenied",
    "InvalidAccessKeyId",
    "SignatureDoesNotMatch",
    "NoSuchBucket",
    "NoSuchKey",
    "InvalidParameter",
})


class ErrorCategory(str, Enum):
    """Categories of errors for handling strategy."""
    TRANSIENT = "transient"  # May succeed on retry
    PERMANENT = "permanent"  # Will not resolve with retry
    UNKNOWN = "unknown"


class PartialFailureError(Exception):
    """Raised when some items of a batch were processed and some failed.

    Attributes:
        failures: List of (item, exception) tuples
        successes: List of successfully processed items
    """

    def __init__(
        self,
        failures: List[Tuple[Any, Exception]],
        successes: List[Any],
        message: str = "Partial failure occurred",
    ):
        self.failures = failures
        self.successes = successes
        total = len(failures) + len(successes)

        failure_summary = "\n".join(
            f"  - {item}: {str(exc)[:100]}" for item, exc in failures[:10]
        )
        if len(failures) > 10:
            failure_summary += f"\n  ... and {len(failures) - 10} more failures"

        super().__init__(
            f"{message}\n"
            f"Successes: {len(successes)}/{total}\n"
            f"Failures: {len(failures)}/{total}\n"
            f"Failed items:\n{failure_summary}"
        )


class PartialFailureCollector:
    """Collects per-item outcomes so a batch can finish before reporting.

    Example:
        collector = PartialFailureCollector()
        for indicator in indicators:
            try:
                upload(indicator)
                collector.add_success(indicator.id)
            except ClientError as e:
                collector.add_failure(indicator.id, e)

        collector.raise_if_failures("Publishing CSV exports failed")
    """

    def __init__(self):
        self.failures: List[Tuple[Any, Exception]] = []
        self.successes: List[Any] = []

    def add_failure(self, item: Any, exception: Exception) -> None:
        self.failures.append((item, exception))
        logger.warning(f"Item failed: {item} - {str(exception)[:200]}")

    def add_success(self, item: Any) -> None:
        self.successes.append(item)

    def has_failures(self) -> bool:
        return bool(self.failures)

    def raise_if_failures(self, message: str = "Operation had failures") -> None:
        """
        :raises PartialFailureError: If any failures were recorded
        """
        if self.has_failures():
            raise PartialFailureError(
                failures=self.failures, successes=self.successes, message=message
            )

    def log_summary(self) -> None:
        total = len(self.failures) + len(self.successes)
        if total == 0:
            logger.info("No items processed")
            return

        success_rate = (len(self.successes) / total) * 100
        logger.info(
            f"Batch processing summary: {len(self.successes)}/{total} "
            f"succeeded ({success_rate:.1f}%)"
        )
        for item, exc in self.failures[:5]:
            logger.warning(f"  - {item}: {str(exc)[:100]}")


def categorize_error(exception: Exception) -> ErrorCategory:
    """Categorize an error as transient or permanent.

    Args:
        exception: The exception to categorize

    Returns:
        ErrorCategory indicating if error is transient or permanent
    """
    # Missing files and permissions never fix themselves
    if isinstance(exception, (FileNotFoundError, PermissionError)):
        return ErrorCategory.PERMANENT

    if isinstance(exception, (ConnectionError, TimeoutError, OSError, EndpointConnectionError)):
        return ErrorCategory.TRANSIENT

    if isinstance(exception, ClientError):
        error_code = exception.response.get("Error", {}).get("Code", "")
        if error_code in TRANSIENT_AWS_CODES:
            return ErrorCategory.TRANSIENT
        if error_code in PERMANENT_AWS_CODES:
            return ErrorCategory.PERMANENT

    # Another process holding the database file lock
    if isinstance(exception, duckdb.IOException):
        return ErrorCategory.TRANSIENT

    if isinstance(exception, (duckdb.ConstraintException, duckdb.CatalogException)):
        return ErrorCategory.PERMANENT

    return ErrorCategory.UNKNOWN


def retryable_operation(
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retry_on: Optional[Tuple[Type[Exception], ...]] = None,
) -> Callable:
    """Decorator for retrying operations with exponential backoff.

    Permanent errors (see ``categorize_error``) are raised immediately.

    Args:
        max_attempts: Maximum number of attempts
        initial_delay: Delay before the first retry in seconds
        max_delay: Upper bound on any single delay in seconds
        exponential_base: Base for exponential backoff calculation
        jitter: Whether to scale delays by a random factor in [0.5, 1.0)
        retry_on: Tuple of exception types to retry on (None = all)

    Example:
        @retryable_operation(max_attempts=5, initial_delay=2.0)
        def put_snapshot(body):
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 0
            while True:
                attempt += 1
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if retry_on and not isinstance(e, retry_on):
                        logger.error(f"Non-retryable exception in {func.__name__}: {e}")
                        raise

                    error_category = categorize_error(e)
                    if error_category == ErrorCategory.PERMANENT:
                        logger.error(f"Permanent error in {func.__name__}, not retrying: {e}")
                        raise

                    if attempt >= max_attempts:
                        logger.error(f"All {max_attempts} attempts failed for {func.__name__}: {e}")
                        raise

                    current_delay = min(
                        initial_delay * (exponential_base ** (attempt - 1)), max_delay
                    )
                    if jitter:
                        current_delay *= 0.5 + random.random() * 0.5

                    logger.warning(
                        f"Attempt {attempt}/{max_attempts} failed for {func.__name__}: {e}. "
                        f"Retrying in {current_delay:.2f}s... "
                        f"(Error category: {error_category.value})"
                    )
                    time.sleep(current_delay)

        return wrapper

    return decorator
