"""Observability hooks for circuit breakers."""

from __future__ import annotations

from typing import Protocol

from fsm_core.circuit_breaker.state import CircuitState
from fsm_core.logging import AnyLogger, get_logger, log_info, log_warning


class BreakerListener(Protocol):
    """Listener protocol for circuit breaker events.

    Hooks are synchronous so the same listener serves ``call`` and
    ``call_sync``. They run outside the breaker's internal lock.

    Notes:
        A successful probe emits ``OPEN -> HALF_OPEN`` followed by
        ``HALF_OPEN -> CLOSED``; a failed one ``HALF_OPEN -> OPEN``.
    """

    def on_state_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        """Handle circuit state transitions."""

    def on_call_rejected(self, name: str, retry_after: float) -> None:
        """Handle call rejection while the circuit is open."""

    def on_call_succeeded(self, name: str, elapsed: float) -> None:
        """Handle successful protected call completion."""

    def on_call_failed(
        self, name: str, exc: BaseException, elapsed: float, failure_count: int
    ) -> None:
        """Handle failed protected call completion."""


class LoggingBreakerListener:
    """Breaker listener that writes every event to a structured logger."""

    def __init__(self, logger: AnyLogger | None = None) -> None:
        self._logger = get_logger(__name__) if logger is None else logger

    def on_state_change(self, name: str, old: CircuitState, new: CircuitState) -> None:
        if new == CircuitState.OPEN:
            log_warning(
                self._logger,
                "circuit_breaker.opened",
                breaker=name,
                previous_state=str(old),
            )
            return
        log_info(
            self._logger,
            "circuit_breaker.state_changed",
            breaker=name,
            previous_state=str(old),
            state=str(new),
        )

    def on_call_rejected(self, name: str, retry_after: float) -> None:
        log_warning(
            self._logger,
            "circuit_breaker.call_rejected",
            breaker=name,
            retry_after=retry_after,
        )

    def on_call_succeeded(self, name: str, elapsed: float) -> None:
        log_info(
            self._logger,
            "circuit_breaker.call_succeeded",
            breaker=name,
            elapsed=elapsed,
        )

    def on_call_failed(
        self, name: str, exc: BaseException, elapsed: float, failure_count: int
    ) -> None:
        log_warning(
            self._logger,
            "circuit_breaker.call_failed",
            breaker=name,
            error_type=exc.__class__.__name__,
            error=str(exc),
            elapsed=elapsed,
            failure_count=failure_count,
        )
