"""Retry strategy with exponential backoff for AWS operations."""

import time
from typing import Callable, Dict, Iterable, List, Optional, TypeVar
from functools import wraps
from site_deploy.utils.errors import get_error_code
from site_deploy.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

# Observer invoked before each retry with (attempt, error, delay)
RetryCallback = Callable[[int, Exception, float], None]


# Error codes/names worth retrying, per AWS service
AWS_RETRYABLE_ERRORS: Dict[str, List[str]] = {
    's3': [
        'ServiceUnavailable',
        'InternalError',
        'SlowDown',
        'RequestTimeout',
    ],
    'cloudfront': [
        'Throttling',
        'TooManyInvalidationsInProgress',
        'ServiceException',
    ],
    'route53': [
        'Throttling',
        'PriorRequestNotComplete',
        'ServiceException',
    ],
    'acm': [
        'Throttling',
        'RequestInProgressException',
        'ServiceException',
    ],
    'general': [
        'ConnectionError',
        'ConnectTimeoutError',
        'EndpointConnectionError',
        'ReadTimeoutError',
        'TimeoutError',
        'ECONNRESET',
        'ETIMEDOUT',
    ],
}


def retryable_errors_for(service: str) -> List[str]:
    """Get the retryable error vocabulary for a service.

    Args:
        service: Service key in AWS_RETRYABLE_ERRORS (e.g. 's3')

    Returns:
        Service-specific entries followed by the general network entries
    """
    return list(AWS_RETRYABLE_ERRORS.get(service, [])) + AWS_RETRYABLE_ERRORS['general']


class RetryStrategy:
    """Exponential backoff retry for transient errors.

    The strategy is service-agnostic: callers pass the error vocabulary that
    applies to the operation being wrapped. With no vocabulary every error
    is retried.
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff_multiplier: float = 2.0,
        retryable_errors: Optional[Iterable[str]] = None,
        on_retry: Optional[RetryCallback] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize retry strategy.

        Args:
            max_retries: Maximum number of retry attempts after the first call
            initial_delay: Delay in seconds before the first retry
            max_delay: Maximum delay in seconds between retries
            backoff_multiplier: Factor applied to the delay after each retry
            retryable_errors: Substrings matched against the error message,
                exception class name and AWS error code
            on_retry: Observer called before each retry
            sleep: Function used to wait between attempts
        """
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.backoff_multiplier = backoff_multiplier
        self.retryable_errors = list(retryable_errors or [])
        self.on_retry = on_retry
        self.sleep = sleep

    def with_errors(self, retryable_errors: Iterable[str]) -> 'RetryStrategy':
        """Copy of this strategy using a different error vocabulary."""
        return RetryStrategy(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            backoff_multiplier=self.backoff_multiplier,
            retryable_errors=retryable_errors,
            on_retry=self.on_retry,
            sleep=self.sleep
        )

    def is_retryable(self, error: Exception) -> bool:
        """Determine if an error matches the retryable vocabulary.

        Args:
            error: The exception that occurred

        Returns:
            True if the error should be retried
        """
        if not self.retryable_errors:
            return True

        candidates = [str(error), type(error).__name__]
        error_code = get_error_code(error)
        if error_code:
            candidates.append(error_code)

        return any(
            pattern in candidate
            for pattern in self.retryable_errors
            for candidate in candidates
        )

    def execute(self, func: Callable[..., T], *args, **kwargs) -> T:
        """Execute a function with retry logic.

        Args:
            func: Function to execute
            *args: Positional arguments for the function
            **kwargs: Keyword arguments for the function

        Returns:
            Result of the function call

        Raises:
            The last exception, unchanged, once retries are exhausted or the
            error is not retryable
        """
        delay = self.initial_delay

        for attempt in range(self.max_retries + 1):
            try:
                result = func(*args, **kwargs)
                if attempt > 0:
                    logger.info(f"Operation succeeded after {attempt} retries")
                return result

            except Exception as e:
                if attempt >= self.max_retries:
                    logger.error(f"All {self.max_retries} retry attempts exhausted: {e}")
                    raise

                if not self.is_retryable(e):
                    logger.debug(f"Error is not retryable: {e}")
                    raise

                logger.warning(
                    f"Attempt {attempt + 1}/{self.max_retries + 1} failed: "
                    f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                )
                if self.on_retry:
                    self.on_retry(attempt + 1, e, delay)

                self.sleep(delay)
                delay = min(delay * self.backoff_multiplier, self.max_delay)

        # Unreachable: the final attempt either returns or raises
        raise RuntimeError('retry loop exited without a result')


def with_retry(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 30.0,
    backoff_multiplier: float = 2.0,
    retryable_errors: Optional[Iterable[str]] = None
):
    """Decorator to add retry logic to a function.

    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Delay in seconds before the first retry
        max_delay: Maximum delay in seconds between retries
        backoff_multiplier: Factor applied to the delay after each retry
        retryable_errors: Retryable error vocabulary (None retries everything)

    Returns:
        Decorated function with retry logic

    Example:
        @with_retry(retryable_errors=retryable_errors_for('s3'))
        def head_bucket(client, bucket):
            return client.head_bucket(Bucket=bucket)
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            strategy = RetryStrategy(
                max_retries=max_retries,
                initial_delay=initial_delay,
                max_delay=max_delay,
                backoff_multiplier=backoff_multiplier,
                retryable_errors=retryable_errors
            )
            return strategy.execute(func, *args, **kwargs)

        return wrapper

    return decorator
