from __future__ import annotations

import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Callable, TypeVar

import httpx
import psycopg2

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DependencyError(RuntimeError):
    """An external collaborator (database, model API) could not serve a call."""

    def __init__(self, message: str, *, retryable: bool):
        super().__init__(message)
        self.retryable = retryable


class RetryableDependencyError(DependencyError):
    def __init__(self, message: str):
        super().__init__(message, retryable=True)


class PermanentDependencyError(DependencyError):
    def __init__(self, message: str):
        super().__init__(message, retryable=False)


def _positive_env(name: str, default: float, cast: Callable[[str], float]) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        return default
    return value if value > 0 else default


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 2
    base_delay_seconds: float = 0.2
    max_delay_seconds: float = 2.0
    timeout_seconds: float = 30.0

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            attempts=int(_positive_env("DEPENDENCY_RETRY_ATTEMPTS", cls.attempts, int)),
            base_delay_seconds=_positive_env(
                "DEPENDENCY_RETRY_BASE_SECONDS", cls.base_delay_seconds, float
            ),
            max_delay_seconds=_positive_env(
                "DEPENDENCY_RETRY_MAX_SECONDS", cls.max_delay_seconds, float
            ),
            timeout_seconds=_positive_env(
                "DEPENDENCY_TIMEOUT_SECONDS", cls.timeout_seconds, float
            ),
        )

    def backoff_seconds(self, attempt: int, exc: BaseException | None = None) -> float:
        hinted = _retry_after_seconds(exc)
        if hinted is not None:
            return min(self.max_delay_seconds, hinted)
        delay = min(self.max_delay_seconds, self.base_delay_seconds * (2 ** (attempt - 1)))
        return delay + random.uniform(0, delay * 0.2)


def _retry_after_seconds(exc: BaseException | None) -> float | None:
    # Rate-limited model APIs say how long to wait.
    if not isinstance(exc, httpx.HTTPStatusError) or exc.response.status_code != 429:
        return None
    try:
        return max(0.0, float(exc.response.headers.get("retry-after", "")))
    except ValueError:
        return None


def is_retryable_exception(exc: BaseException) -> bool:
    if isinstance(exc, DependencyError):
        return exc.retryable
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status >= 500 or status == 429

    return isinstance(
        exc,
        (
            TimeoutError,
            ConnectionError,
            httpx.TimeoutException,
            httpx.NetworkError,
            psycopg2.OperationalError,
            psycopg2.InterfaceError,
        ),
    )


def retry_with_backoff(
    func: Callable[[], T],
    *,
    operation: str,
    policy: RetryPolicy | None = None,
    attempts: int | None = None,
    retry_if: Callable[[Exception], bool] = is_retryable_exception,
) -> T:
    """Run ``func`` and retry transient failures with jittered exponential backoff.

    Non-retryable exceptions are re-raised untouched on the first attempt. When
    every attempt fails with a retryable error a ``RetryableDependencyError`` is
    raised, chained to the last underlying exception.
    """
    policy = policy or RetryPolicy.from_env()
    max_attempts = attempts or policy.attempts

    for attempt in range(1, max_attempts + 1):
        try:
            return func()
        except Exception as exc:
            if not retry_if(exc):
                raise
            if attempt >= max_attempts:
                raise RetryableDependencyError(
                    f"{operation} failed after {max_attempts} attempts: {exc!r}"
                ) from exc

            delay = policy.backoff_seconds(attempt, exc)
            logger.warning(
                "dependency_retry",
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "delay_seconds": round(delay, 3),
                    "error": repr(exc),
                },
            )
            time.sleep(delay)

    raise ValueError(f"attempts must be >= 1, got {max_attempts}")


def enforce_timeout_budget(
    *,
    started_at: float,
    operation: str,
    timeout_seconds: float | None = None,
) -> None:
    """Raise ``TimeoutError`` when more than the budget has passed since ``started_at`` (monotonic)."""
    budget = timeout_seconds or RetryPolicy.from_env().timeout_seconds
    elapsed = time.monotonic() - started_at
    if elapsed > budget:
        raise TimeoutError(
            f"{operation} exceeded timeout budget ({elapsed:.2f}s > {budget:.2f}s)"
        )
