from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    retry_if_not_exception_type,
    stop_after_attempt,
    stop_never,
    wait_exponential_jitter,
)
from tenacity.retry import retry_base

from fsm_core.circuit_breaker import CircuitBreaker, CircuitOpenError
from fsm_core.errors import TransientError
from fsm_core.logging import AnyLogger, log_warning

T = TypeVar("T")


@dataclass(frozen=True)
class RetryBackoffPolicy:
    """Configuration for retry attempt count and backoff boundaries."""

    attempts: int | None
    min_seconds: float
    max_seconds: float

    def __post_init__(self) -> None:
        if self.attempts is not None and self.attempts < 1:
            raise ValueError("attempts must be >= 1 when provided")
        if self.min_seconds < 0:
            raise ValueError("min_seconds must be >= 0")
        if self.max_seconds < 0:
            raise ValueError("max_seconds must be >= 0")
        if self.max_seconds < self.min_seconds:
            raise ValueError("max_seconds must be >= min_seconds")


def build_exponential_jitter_retrying(
    *,
    retry: retry_base,
    policy: RetryBackoffPolicy,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
    reraise: bool = True,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` with exponential jitter backoff."""
    stop = (
        stop_never if policy.attempts is None else stop_after_attempt(policy.attempts)
    )
    wait = wait_exponential_jitter(
        initial=policy.min_seconds,
        max=policy.max_seconds,
    )
    options: dict[str, Any] = {}
    if sleep is not None:
        options["sleep"] = sleep
    if before_sleep is not None:
        options["before_sleep"] = before_sleep
    return AsyncRetrying(
        retry=retry,
        wait=wait,
        stop=stop,
        reraise=reraise,
        **options,
    )


def build_retry_logger(
    logger: AnyLogger,
    *,
    operation: str,
) -> Callable[[RetryCallState], None]:
    """Build a ``before_sleep`` hook that logs each scheduled retry."""

    def _log_retry(state: RetryCallState) -> None:
        outcome = state.outcome
        error = outcome.exception() if outcome is not None else None
        next_action = state.next_action
        log_warning(
            logger,
            "retry.scheduled",
            operation=operation,
            attempt=state.attempt_number,
            sleep_seconds=None if next_action is None else next_action.sleep,
            error_type=None if error is None else error.__class__.__name__,
        )

    return _log_retry


async def retry_breaker_call(
    breaker: CircuitBreaker,
    func: Callable[[], Awaitable[T] | T],
    *,
    policy: RetryBackoffPolicy,
    retry_on: tuple[type[Exception], ...] = (TransientError,),
    retry_when_open: bool = False,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
) -> T:
    """Run ``func`` through ``breaker`` with caller-side retry and backoff.

    Every attempt goes through the breaker, so failures keep feeding its
    counters. ``CircuitOpenError`` ends the loop immediately unless
    ``retry_when_open`` is set.

    Raises:
        CircuitOpenError: When the circuit rejects an attempt and
            ``retry_when_open`` is false, or on the last attempt.
        Exception: The last failure once retries are exhausted.
    """
    retry: retry_base = retry_if_exception_type(retry_on)
    if retry_when_open:
        retry = retry | retry_if_exception_type(CircuitOpenError)
    else:
        retry = retry & retry_if_not_exception_type(CircuitOpenError)

    retrying = build_exponential_jitter_retrying(
        retry=retry,
        policy=policy,
        sleep=sleep,
        before_sleep=before_sleep,
    )
    async for attempt in retrying:
        with attempt:
            return await breaker.call(func)
    raise RuntimeError("retry loop exited without an outcome")
