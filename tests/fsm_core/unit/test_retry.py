from __future__ import annotations

import pytest
from tenacity import AsyncRetrying, RetryCallState, RetryError
from tenacity.retry import retry_if_exception_type

from fsm_core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitOpenError,
    CircuitState,
)
from fsm_core.errors import TransientError
from fsm_core.retry import (
    RetryBackoffPolicy,
    build_exponential_jitter_retrying,
    build_retry_logger,
    retry_breaker_call,
)
from tests.fsm_core.support.fakes import FakeClock, FakeLogger

pytestmark = pytest.mark.asyncio

_NO_WAIT = RetryBackoffPolicy(attempts=5, min_seconds=0.0, max_seconds=0.0)


class _Flaky:
    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise TransientError(f"attempt {self.calls} failed")
        return "done"


async def _no_sleep(delay: float) -> None:
    del delay


@pytest.mark.parametrize(
    ("attempts", "min_seconds", "max_seconds", "message"),
    [
        (0, 0.0, 1.0, "attempts must be >= 1"),
        (1, -0.1, 1.0, "min_seconds must be >= 0"),
        (1, 0.1, -0.1, "max_seconds must be >= 0"),
        (1, 2.0, 1.0, "max_seconds must be >= min_seconds"),
    ],
)
async def test_retry_backoff_policy_validation(
    attempts: int,
    min_seconds: float,
    max_seconds: float,
    message: str,
) -> None:
    with pytest.raises(ValueError, match=message):
        RetryBackoffPolicy(
            attempts=attempts,
            min_seconds=min_seconds,
            max_seconds=max_seconds,
        )


async def test_build_retrying_without_optional_hooks() -> None:
    retrying = build_exponential_jitter_retrying(
        retry=retry_if_exception_type(ValueError),
        policy=RetryBackoffPolicy(attempts=2, min_seconds=0.0, max_seconds=0.0),
    )

    assert isinstance(retrying, AsyncRetrying)


async def test_build_retrying_with_sleep_and_before_sleep_and_reraise_disabled() -> (
    None
):
    before_sleep_calls: list[int] = []
    sleep_calls: list[float] = []

    async def _sleep(delay: float) -> None:
        sleep_calls.append(delay)

    def _before_sleep(state: RetryCallState) -> None:
        before_sleep_calls.append(state.attempt_number)

    retrying = build_exponential_jitter_retrying(
        retry=retry_if_exception_type(ValueError),
        policy=RetryBackoffPolicy(attempts=2, min_seconds=0.0, max_seconds=0.0),
        sleep=_sleep,
        before_sleep=_before_sleep,
        reraise=False,
    )

    with pytest.raises(RetryError):
        async for attempt in retrying:
            with attempt:
                raise ValueError("boom")

    assert before_sleep_calls == [1]
    assert len(sleep_calls) == 1


async def test_retry_breaker_call_recovers_from_transient_failures(
    fake_clock: FakeClock,
    fake_logger: FakeLogger,
) -> None:
    breaker = CircuitBreaker(
        "svc", config=CircuitBreakerConfig(failure_threshold=5, reset_timeout=1.0)
    )
    flaky = _Flaky(failures=2)

    result = await retry_breaker_call(
        breaker,
        flaky,
        policy=_NO_WAIT,
        sleep=_no_sleep,
        before_sleep=build_retry_logger(fake_logger, operation="svc.call"),
    )

    assert result == "done"
    assert flaky.calls == 3
    assert breaker.failure_count == 0
    assert [fields["attempt"] for fields in fake_logger.fields_for("retry.scheduled")] == [
        1,
        2,
    ]
    assert fake_logger.fields_for("retry.scheduled")[0]["error_type"] == "TransientError"


async def test_retry_breaker_call_stops_when_circuit_opens(
    fake_clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(
        "svc", config=CircuitBreakerConfig(failure_threshold=2, reset_timeout=30.0)
    )
    flaky = _Flaky(failures=10)

    with pytest.raises(CircuitOpenError):
        await retry_breaker_call(breaker, flaky, policy=_NO_WAIT, sleep=_no_sleep)

    assert flaky.calls == 2
    assert breaker.state == CircuitState.OPEN


async def test_retry_breaker_call_can_wait_out_an_open_circuit(
    fake_clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(
        "svc", config=CircuitBreakerConfig(failure_threshold=1, reset_timeout=1.0)
    )
    flaky = _Flaky(failures=1)

    async def _advancing_sleep(delay: float) -> None:
        fake_clock.advance(2.0)

    result = await retry_breaker_call(
        breaker,
        flaky,
        policy=_NO_WAIT,
        retry_when_open=True,
        sleep=_advancing_sleep,
    )

    assert result == "done"
    assert flaky.calls == 2
    assert breaker.state == CircuitState.CLOSED


async def test_retry_breaker_call_does_not_retry_other_errors(
    fake_clock: FakeClock,
) -> None:
    breaker = CircuitBreaker("svc")
    calls = 0

    async def _bug() -> None:
        nonlocal calls
        calls += 1
        raise ValueError("bad request")

    with pytest.raises(ValueError):
        await retry_breaker_call(breaker, _bug, policy=_NO_WAIT, sleep=_no_sleep)

    assert calls == 1
    assert breaker.failure_count == 1


async def test_retry_breaker_call_reraises_last_failure_when_exhausted(
    fake_clock: FakeClock,
) -> None:
    breaker = CircuitBreaker(
        "svc", config=CircuitBreakerConfig(failure_threshold=10, reset_timeout=1.0)
    )
    flaky = _Flaky(failures=10)

    with pytest.raises(TransientError, match="attempt 3 failed"):
        await retry_breaker_call(
            breaker,
            flaky,
            policy=RetryBackoffPolicy(attempts=3, min_seconds=0.0, max_seconds=0.0),
            sleep=_no_sleep,
        )

    assert breaker.failure_count == 3
