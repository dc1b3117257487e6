"""Generic delegating state machine."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Generic, Protocol, TypeVar

from fsm_core.logging import AnyLogger, get_logger, log_exception, log_info


class State:
    """Base class for machine states.

    Event handlers are plain methods named after the event. They receive the
    owning machine as their first argument and request transitions through
    ``machine.set_state``. A handler that does nothing means the event is
    ignored in that state.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return f"<{self.name}>"


S = TypeVar("S", bound=State)


class TransitionListener(Protocol):
    """Listener protocol for state machine transitions."""

    def on_transition(self, machine: str, old: State, new: State) -> None:
        """Handle a completed transition from ``old`` to ``new``."""


class StateMachine(Generic[S]):
    """Route events to the active state and let states swap themselves out.

    The machine holds exactly one state at a time and carries no business
    logic of its own: which transitions exist is decided entirely by the
    states' handlers.
    """

    def __init__(
        self,
        initial_state: S,
        *,
        name: str | None = None,
        listeners: Sequence[TransitionListener] | None = None,
        logger: AnyLogger | None = None,
    ) -> None:
        """Build a machine with a mandatory initial state.

        Args:
            initial_state: State active before the first event.
            name: Machine name used in logs. Defaults to the class name.
            listeners: Optional transition listeners.
            logger: Structured or stdlib logger. Defaults to a structlog
                logger for this module.
        """
        self.name = type(self).__name__ if name is None else name
        self._state: S = initial_state
        self._listeners = tuple(listeners) if listeners is not None else ()
        self.logger: AnyLogger = get_logger(__name__) if logger is None else logger

    @property
    def state(self) -> S:
        return self._state

    def set_state(self, new_state: S) -> None:
        """Install ``new_state`` unconditionally."""
        old_state = self._state
        self._state = new_state
        log_info(
            self.logger,
            "state_machine.transition",
            machine=self.name,
            previous_state=old_state.name,
            state=new_state.name,
        )
        for listener in self._listeners:
            try:
                listener.on_transition(self.name, old_state, new_state)
            except Exception:
                log_exception(
                    self.logger,
                    "state_machine.listener_failed",
                    machine=self.name,
                    listener=type(listener).__name__,
                    state=new_state.name,
                )

    def dispatch(self, event: str, *args: Any, **kwargs: Any) -> Any:
        """Deliver ``event`` to the state that is active when the call starts.

        Raises:
            AttributeError: When the active state has no handler named ``event``.
        """
        handler = getattr(self._state, event)
        return handler(self, *args, **kwargs)
