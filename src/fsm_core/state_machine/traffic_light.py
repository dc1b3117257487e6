"""Traffic light cycling red, green and yellow."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from fsm_core.logging import AnyLogger, log_info
from fsm_core.state_machine.machine import State, StateMachine, TransitionListener


class LightState(State, ABC):
    color: str

    @abstractmethod
    def following(self) -> LightState:
        """Return the state that comes after this one in the cycle."""

    def next(self, light: TrafficLight) -> str:
        following = self.following()
        log_info(
            light.logger,
            "traffic_light.changing",
            light=light.name,
            color=self.color,
            next_color=following.color,
        )
        light.set_state(following)
        return following.color


class RedState(LightState):
    color = "red"

    def following(self) -> LightState:
        return GreenState()


class GreenState(LightState):
    color = "green"

    def following(self) -> LightState:
        return YellowState()


class YellowState(LightState):
    color = "yellow"

    def following(self) -> LightState:
        return RedState()


class TrafficLight(StateMachine[LightState]):
    """Cyclic light with no terminal state. Starts red by default."""

    def __init__(
        self,
        initial_state: LightState | None = None,
        *,
        name: str | None = None,
        listeners: Sequence[TransitionListener] | None = None,
        logger: AnyLogger | None = None,
    ) -> None:
        super().__init__(
            RedState() if initial_state is None else initial_state,
            name=name,
            listeners=listeners,
            logger=logger,
        )

    @property
    def color(self) -> str:
        return self.state.color

    def next(self) -> str:
        """Advance one step and return the new color."""
        return self.dispatch("next")
