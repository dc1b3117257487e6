"""Core circuit breaker implementation."""

import functools
import inspect
import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, ParamSpec, TypeVar, cast

from fsm_core.circuit_breaker.exceptions import CircuitOpenError
from fsm_core.circuit_breaker.metrics import BreakerListener
from fsm_core.circuit_breaker.state import BreakerSnapshot, CircuitState
from fsm_core.logging import AnyLogger, get_logger, log_exception

T = TypeVar("T")
P = ParamSpec("P")

_Transition = tuple[CircuitState, CircuitState]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _elapsed_since(start: float) -> float:
    return max(time.monotonic() - start, 0.0)


def _is_async_callable(func: object) -> bool:
    if inspect.iscoroutinefunction(func):
        return True
    return inspect.iscoroutinefunction(getattr(func, "__call__", None))


def _discard_awaitable(result: object) -> None:
    # Never-awaited coroutines warn on garbage collection.
    close = getattr(result, "close", None)
    if callable(close):
        close()


@dataclass(slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        failure_threshold: Failures required while ``CLOSED`` before opening.
        reset_timeout: Seconds after the last failure during which an ``OPEN``
            circuit rejects calls. The first call after it elapses is a probe.
        expected_exceptions: Exceptions that count as failures.
        excluded_exceptions: Exceptions that must not count as failures.
    """

    failure_threshold: int = 3
    reset_timeout: float = 3.0
    expected_exceptions: tuple[type[Exception], ...] = (Exception,)
    excluded_exceptions: tuple[type[Exception], ...] = ()

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.reset_timeout < 0:
            raise ValueError("reset_timeout must be >= 0")


class CircuitBreaker:
    """Stateful proxy around one fallible operation.

    State is owned by the instance; two breakers never share counters. The
    recovery timeout is evaluated lazily when a call arrives, there is no
    background timer.
    """

    def __init__(
        self,
        name: str,
        operation: Callable[..., Any] | None = None,
        *,
        config: CircuitBreakerConfig | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        logger: AnyLogger | None = None,
    ) -> None:
        """Build a circuit breaker.

        Args:
            name: Breaker name used in errors and listener events.
            operation: Optional operation run by ``call_service``.
            config: Breaker behavior configuration. Defaults to
                ``CircuitBreakerConfig()``.
            listeners: Optional listener hooks for breaker events.
            logger: Logger receiving listener failures. Defaults to a
                structlog logger for this module.
        """
        self.name = name
        self.config = CircuitBreakerConfig() if config is None else config
        self._operation = operation
        self._listeners = tuple(listeners) if listeners is not None else ()
        self.logger: AnyLogger = get_logger(__name__) if logger is None else logger
        self._lock = threading.Lock()
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._last_failure_at: datetime | None = None

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    @property
    def last_failure_at(self) -> datetime | None:
        return self._last_failure_at

    def snapshot(self) -> BreakerSnapshot:
        """Return a consistent view of the breaker internals."""
        with self._lock:
            return BreakerSnapshot(
                name=self.name,
                state=self._state,
                failure_count=self._failure_count,
                last_failure_at=self._last_failure_at,
            )

    def _emit(self, hook: str, *args: object) -> None:
        for listener in self._listeners:
            try:
                getattr(listener, hook)(self.name, *args)
            except Exception:
                log_exception(
                    self.logger,
                    "circuit_breaker.listener_failed",
                    breaker=self.name,
                    hook=hook,
                    listener=type(listener).__name__,
                )

    def _emit_transitions(self, transitions: Sequence[_Transition]) -> None:
        for old, new in transitions:
            self._emit("on_state_change", old, new)

    def _seconds_since_last_failure(self, now: datetime) -> float:
        last_failure_at = now if self._last_failure_at is None else self._last_failure_at
        return (now - last_failure_at).total_seconds()

    def _admit(self) -> bool:
        """Admit or reject one call.

        Returns:
            ``True`` when the admitted call is the half-open probe.

        Raises:
            CircuitOpenError: When the call must fail fast.
        """
        now = _utcnow()
        rejected_after: float | None = None
        is_probe = False
        with self._lock:
            if self._state == CircuitState.HALF_OPEN:
                rejected_after = 0.0
            elif self._state == CircuitState.OPEN:
                elapsed = self._seconds_since_last_failure(now)
                if elapsed <= self.config.reset_timeout:
                    rejected_after = max(self.config.reset_timeout - elapsed, 0.0)
                else:
                    self._state = CircuitState.HALF_OPEN
                    is_probe = True

        if rejected_after is not None:
            self._emit("on_call_rejected", rejected_after)
            raise CircuitOpenError(self.name, retry_after=rejected_after)
        if is_probe:
            self._emit("on_state_change", CircuitState.OPEN, CircuitState.HALF_OPEN)
        return is_probe

    def _on_success(self, is_probe: bool, elapsed: float) -> None:
        transitions: list[_Transition] = []
        with self._lock:
            self._failure_count = 0
            if is_probe and self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                transitions.append((CircuitState.HALF_OPEN, CircuitState.CLOSED))
        self._emit_transitions(transitions)
        self._emit("on_call_succeeded", elapsed)

    def _on_failure(self, is_probe: bool, exc: Exception, elapsed: float) -> None:
        now = _utcnow()
        transitions: list[_Transition] = []
        with self._lock:
            self._failure_count += 1
            self._last_failure_at = now
            failure_count = self._failure_count
            if is_probe and self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                transitions.append((CircuitState.HALF_OPEN, CircuitState.OPEN))
            elif (
                self._state == CircuitState.CLOSED
                and self._failure_count >= self.config.failure_threshold
            ):
                self._state = CircuitState.OPEN
                transitions.append((CircuitState.CLOSED, CircuitState.OPEN))
        self._emit("on_call_failed", exc, elapsed, failure_count)
        self._emit_transitions(transitions)

    def _abandon_probe(self) -> None:
        # Uncounted outcome: reopen with the previous timestamp so the next
        # call is allowed to probe again.
        with self._lock:
            if self._state != CircuitState.HALF_OPEN:
                return
            self._state = CircuitState.OPEN
        self._emit("on_state_change", CircuitState.HALF_OPEN, CircuitState.OPEN)

    async def call(
        self,
        func: Callable[P, Awaitable[T] | T],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Invoke a sync or async callable under circuit breaker protection.

        Args:
            func: Operation to execute. Awaitable results are awaited.
            *args: Positional arguments forwarded to ``func``.
            **kwargs: Keyword arguments forwarded to ``func``.

        Returns:
            The result of ``func`` when allowed and successful.

        Raises:
            CircuitOpenError: When the circuit is open and the call is rejected.
            Exception: The original exception from ``func`` when it is attempted
                and fails. Bookkeeping is already updated when it propagates.
        """
        is_probe = self._admit()
        settled = False
        start = time.monotonic()
        try:
            result = func(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        except self.config.excluded_exceptions:
            raise
        except self.config.expected_exceptions as exc:
            settled = True
            self._on_failure(is_probe, exc, _elapsed_since(start))
            raise
        else:
            settled = True
            self._on_success(is_probe, _elapsed_since(start))
            return cast(T, result)
        finally:
            if is_probe and not settled:
                self._abandon_probe()

    def call_sync(
        self,
        func: Callable[P, T],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> T:
        """Invoke a synchronous callable under circuit breaker protection.

        Raises:
            TypeError: When ``func`` is a coroutine function or returns an
                awaitable. Use ``call``. The breaker records no outcome.
            CircuitOpenError: When the circuit is open and the call is rejected.
        """
        if _is_async_callable(func):
            raise TypeError("call_sync requires a synchronous callable; use call()")

        is_probe = self._admit()
        settled = False
        start = time.monotonic()
        try:
            result = func(*args, **kwargs)
        except self.config.excluded_exceptions:
            raise
        except self.config.expected_exceptions as exc:
            settled = True
            self._on_failure(is_probe, exc, _elapsed_since(start))
            raise
        else:
            if inspect.isawaitable(result):
                _discard_awaitable(result)
                raise TypeError(
                    "call_sync requires a synchronous callable; "
                    f"{func!r} returned an awaitable, use call()"
                )
            settled = True
            self._on_success(is_probe, _elapsed_since(start))
            return result
        finally:
            if is_probe and not settled:
                self._abandon_probe()

    async def call_service(self, *args: Any, **kwargs: Any) -> Any:
        """Invoke the operation bound at construction time.

        Raises:
            TypeError: When the breaker was built without an operation.
        """
        if self._operation is None:
            raise TypeError(f"circuit breaker {self.name!r} has no bound operation")
        return await self.call(self._operation, *args, **kwargs)

    def protect(self, func: Callable[P, T]) -> Callable[P, T]:
        """Decorate ``func`` so every invocation goes through this breaker."""
        if _is_async_callable(func):

            @functools.wraps(func)
            async def _async_guarded(*args: P.args, **kwargs: P.kwargs) -> Any:
                return await self.call(func, *args, **kwargs)

            return cast(Callable[P, T], _async_guarded)

        @functools.wraps(func)
        def _guarded(*args: P.args, **kwargs: P.kwargs) -> T:
            return self.call_sync(func, *args, **kwargs)

        return _guarded
