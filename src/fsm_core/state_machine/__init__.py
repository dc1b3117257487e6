"""Delegating state machines.

``StateMachine`` holds exactly one active state and forwards every event to
it. States decide transitions themselves by calling ``set_state`` on the
machine passed to their handlers; the machine never inspects or validates a
transition.
"""

from fsm_core.state_machine.audio_player import (
    AudioPlayer,
    PausedState,
    PlayerAction,
    PlayerState,
    PlayingState,
    ReadyState,
)
from fsm_core.state_machine.machine import State, StateMachine, TransitionListener
from fsm_core.state_machine.subscription import (
    ActiveState,
    CancelledState,
    DraftState,
    PastDueState,
    PaymentCharger,
    Subscription,
    SubscriptionPausedState,
    SubscriptionResult,
    SubscriptionState,
)
from fsm_core.state_machine.traffic_light import (
    GreenState,
    LightState,
    RedState,
    TrafficLight,
    YellowState,
)
from fsm_core.state_machine.vending import (
    HasCoinState,
    NoCoinState,
    VendingMachine,
    VendingResult,
    VendingState,
)

__all__ = [
    "ActiveState",
    "AudioPlayer",
    "CancelledState",
    "DraftState",
    "GreenState",
    "HasCoinState",
    "LightState",
    "NoCoinState",
    "PastDueState",
    "PausedState",
    "PaymentCharger",
    "PlayerAction",
    "PlayerState",
    "PlayingState",
    "ReadyState",
    "RedState",
    "State",
    "StateMachine",
    "Subscription",
    "SubscriptionPausedState",
    "SubscriptionResult",
    "SubscriptionState",
    "TrafficLight",
    "TransitionListener",
    "VendingMachine",
    "VendingResult",
    "VendingState",
    "YellowState",
]
