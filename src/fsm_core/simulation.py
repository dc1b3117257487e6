"""Drive a circuit breaker against a randomly failing service."""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import StrEnum

from fsm_core.circuit_breaker import CircuitBreaker, CircuitOpenError, CircuitState
from fsm_core.errors import TransientError
from fsm_core.logging import AnyLogger, get_logger, log_info, log_warning

_logger = get_logger(__name__)


class UnstableService:
    """Async service stand-in that fails with a fixed probability."""

    def __init__(self, failure_rate: float = 0.3, rng: random.Random | None = None) -> None:
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError("failure_rate must be between 0 and 1")
        self.failure_rate = failure_rate
        self.calls = 0
        self._rng = random.Random() if rng is None else rng

    async def call(self) -> str:
        self.calls += 1
        if self._rng.random() < self.failure_rate:
            raise TransientError("Service failed!")
        return "Service success!"


class AttemptStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of one simulated call and the breaker state right after it."""

    attempt: int
    status: AttemptStatus
    state: CircuitState
    detail: str


async def run_simulation(
    breaker: CircuitBreaker,
    *,
    attempts: int = 20,
    interval: float = 0.5,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    logger: AnyLogger | None = None,
) -> list[AttemptOutcome]:
    """Call ``breaker.call_service`` ``attempts`` times, one after another.

    Failures of the wrapped service and circuit rejections are recorded, not
    raised. Errors outside those two families propagate.
    """
    if attempts < 0:
        raise ValueError("attempts must be >= 0")
    if interval < 0:
        raise ValueError("interval must be >= 0")
    log = _logger if logger is None else logger

    outcomes: list[AttemptOutcome] = []
    for attempt in range(1, attempts + 1):
        if attempt > 1 and interval > 0:
            await sleep(interval)
        try:
            result = await breaker.call_service()
        except CircuitOpenError as error:
            outcome = AttemptOutcome(
                attempt, AttemptStatus.REJECTED, breaker.state, str(error)
            )
            log_warning(
                log,
                "simulation.attempt_rejected",
                attempt=attempt,
                retry_after=error.retry_after,
            )
        except TransientError as error:
            outcome = AttemptOutcome(
                attempt, AttemptStatus.FAILED, breaker.state, str(error)
            )
            log_warning(
                log,
                "simulation.attempt_failed",
                attempt=attempt,
                failure_count=breaker.failure_count,
                state=str(breaker.state),
            )
        else:
            outcome = AttemptOutcome(
                attempt, AttemptStatus.SUCCEEDED, breaker.state, str(result)
            )
            log_info(log, "simulation.attempt_succeeded", attempt=attempt)
        outcomes.append(outcome)
    return outcomes
