"""Circuit breaker for sync and async operations.

Key behavior notes:
  - ``CLOSED`` opens once ``failure_threshold`` failures are counted. The call
    that reaches the threshold still runs and still raises its own error.
  - ``OPEN`` rejects every call with ``CircuitOpenError`` until
    ``reset_timeout`` seconds have passed since the last failure. The check is
    lazy: the next incoming call after that moves the circuit to ``HALF_OPEN``
    and becomes the single recovery probe.
  - One probe at a time. A successful probe closes the circuit and clears the
    failure count; a failed probe reopens it and restarts the timeout window.
  - Excluded exceptions are never counted. If one is raised during a probe the
    circuit goes back to ``OPEN`` unchanged and a later call may probe again.
"""

from fsm_core.circuit_breaker.breaker import CircuitBreaker, CircuitBreakerConfig
from fsm_core.circuit_breaker.exceptions import (
    CircuitBreakerError,
    CircuitOpenError,
)
from fsm_core.circuit_breaker.metrics import BreakerListener, LoggingBreakerListener
from fsm_core.circuit_breaker.state import BreakerSnapshot, CircuitState

__all__ = [
    "BreakerListener",
    "BreakerSnapshot",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitOpenError",
    "CircuitState",
    "LoggingBreakerListener",
]
