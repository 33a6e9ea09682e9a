"""Exponential backoff with jitter for fallible store operations."""

import logging
import random
import time
from typing import Callable, Optional, TypeVar

from s3_file_manager.exceptions import (
    ExhaustedRetriesError,
    NonRetryableError,
    NotFoundError,
)
from s3_file_manager.logger import get_logger

T = TypeVar("T")

BASE_DELAY_SECONDS = 0.1
MAX_DELAY_SECONDS = 10.0


def backoff_delay(
    attempt: int,
    base_delay: float = BASE_DELAY_SECONDS,
    max_delay: float = MAX_DELAY_SECONDS,
) -> float:
    """Delay before the retry following ``attempt`` (1-based).

    delay = random(d / 2, d) where d = min(max_delay, base_delay * 2^(attempt-1))
    """
    exp = min(max_delay, base_delay * (2 ** (attempt - 1)))
    return random.uniform(exp / 2, exp)


def _error_string(err: BaseException) -> str:
    return str(err) or type(err).__name__


class RetryPolicy:
    """Retries an operation up to ``max_attempts`` times.

    Non-retryable errors propagate on the first occurrence. A ``NotFoundError``
    may instead end the loop with a regular value when the caller treats
    absence as an expected outcome (``on_not_found``).
    """

    def __init__(
        self,
        max_attempts: int = 3,
        logger: Optional[logging.Logger] = None,
        base_delay: float = BASE_DELAY_SECONDS,
        max_delay: float = MAX_DELAY_SECONDS,
    ):
        self.max_attempts = max_attempts
        self.logger = logger or get_logger(__name__)
        self.base_delay = base_delay
        self.max_delay = max_delay

    @property
    def attempts_label(self) -> str:
        return f"{self.max_attempts} attempt{'s' if self.max_attempts > 1 else ''}"

    def execute(
        self,
        operation: Callable[[], T],
        action: str = "operation",
        on_not_found: Optional[Callable[[NotFoundError], T]] = None,
    ) -> T:
        """Run ``operation`` with retries.

        ``action`` completes the sentence "Failed <action>", e.g.
        "to upload report.csv".
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation()
            except NotFoundError as e:
                if on_not_found is not None:
                    return on_not_found(e)
                raise
            except NonRetryableError:
                raise
            except Exception as e:
                if attempt == self.max_attempts:
                    raise ExhaustedRetriesError(
                        f"Failed {action} after {self.attempts_label}: "
                        f"{_error_string(e)}",
                        last_cause=e,
                        attempts=attempt,
                        details={"action": action},
                    ) from e
                delay = backoff_delay(attempt, self.base_delay, self.max_delay)
                self.logger.warning(
                    "Attempt %d of %d %s failed: %s. Retrying in %.2fs",
                    attempt,
                    self.max_attempts,
                    action,
                    _error_string(e),
                    delay,
                )
                time.sleep(delay)
        raise ExhaustedRetriesError(  # pragma: no cover
            f"Failed {action}: no attempts were made", attempts=0
        )
