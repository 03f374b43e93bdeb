"""
Retry handling with exponential backoff for Monitor feed requests.

Provides:
- Exponential backoff with jitter
- Configurable retry limits
- Error classification for httpx failures
"""

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import httpx

from ..config.settings import RetrySettings

logger = logging.getLogger(__name__)


class ErrorCategory(Enum):
    """Categories of errors for retry decisions."""

    TRANSIENT = "transient"  # Retry with backoff
    RATE_LIMITED = "rate_limited"  # Wait longer and retry
    PERMANENT = "permanent"  # Do not retry
    UNKNOWN = "unknown"  # Retry with caution


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryConfig":
        return cls(
            max_retries=settings.max_retries,
            base_delay_seconds=settings.base_delay_seconds,
            max_delay_seconds=settings.max_delay_seconds,
        )

    def calculate_delay(self, attempt: int) -> float:
        """
        Calculate delay before next retry attempt.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds
        """
        delay = min(
            self.base_delay_seconds * (self.exponential_base**attempt),
            self.max_delay_seconds,
        )

        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0, delay)


@dataclass
class RetryResult:
    """Result of a retry operation."""

    success: bool
    result: Any = None
    attempts: int = 0
    total_delay_seconds: float = 0.0
    last_error: Optional[Exception] = None
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "attempts": self.attempts,
            "total_delay_seconds": round(self.total_delay_seconds, 2),
            "last_error": str(self.last_error) if self.last_error else None,
            "error_count": len(self.errors),
        }


class ErrorClassifier:
    """
    Classifies errors to determine retry behavior.

    HTTP status errors are classified by code; transport errors by type.
    """

    RETRYABLE_STATUS_CODES = {500, 502, 503, 504}
    RATE_LIMIT_STATUS_CODES = {429}

    @classmethod
    def classify(cls, error: Exception) -> ErrorCategory:
        """
        Classify an error to determine retry behavior.

        Args:
            error: The exception to classify

        Returns:
            ErrorCategory for retry decisions
        """
        if isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
            if status in cls.RATE_LIMIT_STATUS_CODES:
                return ErrorCategory.RATE_LIMITED
            if status in cls.RETRYABLE_STATUS_CODES:
                return ErrorCategory.TRANSIENT
            if 400 <= status < 500:
                return ErrorCategory.PERMANENT
            return ErrorCategory.UNKNOWN

        if isinstance(error, (httpx.TimeoutException, httpx.TransportError)):
            return ErrorCategory.TRANSIENT

        if isinstance(error, (TimeoutError, ConnectionError)):
            return ErrorCategory.TRANSIENT

        if isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorCategory.PERMANENT

        return ErrorCategory.UNKNOWN


class RetryManager:
    """Runs operations with backoff, retrying only retryable categories."""

    DEFAULT_RETRY_ON = (
        ErrorCategory.TRANSIENT,
        ErrorCategory.RATE_LIMITED,
        ErrorCategory.UNKNOWN,
    )

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize retry manager.

        Args:
            config: Retry configuration
            sleep: Sleep function (injectable for tests)
        """
        self.config = config or RetryConfig()
        self._sleep = sleep

    def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args,
        retry_on: Optional[tuple[ErrorCategory, ...]] = None,
        **kwargs,
    ) -> RetryResult:
        """
        Execute a function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            retry_on: Error categories to retry on
            **kwargs: Keyword arguments for the function

        Returns:
            RetryResult with outcome and statistics
        """
        if retry_on is None:
            retry_on = self.DEFAULT_RETRY_ON

        result = RetryResult(success=False)

        for attempt in range(self.config.max_retries + 1):
            result.attempts = attempt + 1

            try:
                result.result = func(*args, **kwargs)
                result.success = True
                logger.debug(f"Operation succeeded on attempt {attempt + 1}")
                break

            except Exception as e:
                category = ErrorClassifier.classify(e)
                result.errors.append(
                    {
                        "attempt": attempt + 1,
                        "error": str(e),
                        "error_type": type(e).__name__,
                        "category": category.value,
                    }
                )
                result.last_error = e

                logger.warning(
                    f"Attempt {attempt + 1} failed: {e} (category: {category.value})"
                )

                if category not in retry_on:
                    logger.info(f"Not retrying: error category {category.value}")
                    break

                if attempt >= self.config.max_retries:
                    logger.error(f"Max retries ({self.config.max_retries}) exhausted")
                    break

                delay = self.config.calculate_delay(attempt)
                if category == ErrorCategory.RATE_LIMITED:
                    delay *= 2

                logger.info(f"Retrying in {delay:.2f} seconds...")
                result.total_delay_seconds += delay
                self._sleep(delay)

        return result
