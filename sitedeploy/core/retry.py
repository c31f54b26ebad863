"""Bounded exponential backoff for store and CDN calls."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetriesExhaustedError(RuntimeError):
    """Raised when every attempt of a retried call failed.

    ``last_error`` is the exception raised by the final attempt.
    """

    def __init__(self, label: str, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"{label} failed after {attempts} attempt(s): {last_error}")
        self.label = label
        self.attempts = attempts
        self.last_error = last_error


class RetryPolicy(BaseModel):
    """Attempt count and backoff curve: delay = base * factor ** (attempt - 1)."""

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=0.5, ge=0)
    factor: float = Field(default=2.0, ge=1)
    max_delay: float = 30.0

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * self.factor ** (attempt - 1), self.max_delay)


def retry_call(
    fn: Callable[[], T],
    *,
    policy: RetryPolicy,
    retry_on: tuple[type[BaseException], ...],
    give_up_on: tuple[type[BaseException], ...] = (),
    sleep: Callable[[float], None] = time.sleep,
    label: str = "call",
) -> tuple[T, int]:
    """Call ``fn`` until it succeeds or ``policy.max_attempts`` is reached.

    Returns ``(result, attempts_used)``.  Exceptions in ``give_up_on`` are
    not retried and surface as RetriesExhaustedError after one attempt;
    exceptions outside ``retry_on`` propagate unchanged.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn(), attempt
        except give_up_on as exc:
            raise RetriesExhaustedError(label, attempt, exc) from exc
        except retry_on as exc:
            if attempt >= policy.max_attempts:
                raise RetriesExhaustedError(label, attempt, exc) from exc
            delay = policy.delay_for(attempt)
            logger.warning(
                "%s attempt %d/%d failed: %s (retrying in %.2fs)",
                label,
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            sleep(delay)
