"""Circuit breaker state primitives."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class BreakerSnapshot:
    """Point-in-time view of breaker internals useful for metrics/logging.

    Attributes:
        name: Breaker name.
        state: Current breaker state, including ``HALF_OPEN`` during a probe.
        failure_count: Failures counted since the last success.
        last_failure_at: Timestamp of the last counted failure, if any. The
            recovery timeout is measured from this value.
    """

    name: str
    state: CircuitState
    failure_count: int
    last_failure_at: datetime | None
