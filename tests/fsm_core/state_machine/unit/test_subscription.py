from __future__ import annotations

from collections.abc import Iterable

import pytest

from fsm_core.state_machine import (
    ActiveState,
    CancelledState,
    DraftState,
    PastDueState,
    Subscription,
    SubscriptionPausedState,
    SubscriptionResult,
)
from tests.fsm_core.support.fakes import FakeLogger


class _ScriptedCharger:
    """Payment capability returning scripted outcomes in order."""

    def __init__(self, outcomes: Iterable[bool] = ()) -> None:
        self._outcomes = list(outcomes)
        self.charged: list[float] = []

    def __call__(self, subscription: Subscription) -> bool:
        self.charged.append(subscription.price)
        if not self._outcomes:
            return True
        return self._outcomes.pop(0)


def _subscription(
    fake_logger: FakeLogger,
    outcomes: Iterable[bool] = (),
    *,
    max_payment_retries: int = 3,
) -> tuple[Subscription, _ScriptedCharger]:
    charger = _ScriptedCharger(outcomes)
    subscription = Subscription(
        "cus_123",
        "Pro Plan",
        29.99,
        charge=charger,
        max_payment_retries=max_payment_retries,
        logger=fake_logger,
    )
    return subscription, charger


def test_draft_only_accepts_activate_and_cancel(fake_logger: FakeLogger) -> None:
    subscription, charger = _subscription(fake_logger)

    assert isinstance(subscription.state, DraftState)
    assert subscription.pause() == SubscriptionResult.REJECTED
    assert subscription.renew() == SubscriptionResult.REJECTED
    assert subscription.process_payment() is False
    assert charger.charged == []
    assert isinstance(subscription.state, DraftState)

    assert subscription.activate() == SubscriptionResult.ACCEPTED
    assert isinstance(subscription.state, ActiveState)


def test_active_pause_and_resume(fake_logger: FakeLogger) -> None:
    subscription, charger = _subscription(fake_logger)
    subscription.activate()

    assert subscription.activate() == SubscriptionResult.REJECTED
    assert subscription.pause() == SubscriptionResult.ACCEPTED
    assert isinstance(subscription.state, SubscriptionPausedState)
    assert subscription.process_payment() is False
    assert subscription.renew() == SubscriptionResult.REJECTED
    assert charger.charged == []

    assert subscription.activate() == SubscriptionResult.ACCEPTED
    assert isinstance(subscription.state, ActiveState)


def test_active_renewal_charges_the_plan_price(fake_logger: FakeLogger) -> None:
    subscription, charger = _subscription(fake_logger, [True])
    subscription.activate()

    assert subscription.renew() == SubscriptionResult.ACCEPTED

    assert isinstance(subscription.state, ActiveState)
    assert charger.charged == [29.99]
    assert fake_logger.fields_for("subscription.payment_succeeded") == [
        {"customer_id": "cus_123", "amount": 29.99}
    ]


def test_failed_renewal_moves_to_past_due(fake_logger: FakeLogger) -> None:
    subscription, _ = _subscription(fake_logger, [False])
    subscription.activate()

    assert subscription.renew() == SubscriptionResult.PAYMENT_FAILED

    assert isinstance(subscription.state, PastDueState)
    assert subscription.activate() == SubscriptionResult.REJECTED
    assert subscription.pause() == SubscriptionResult.REJECTED


def test_past_due_recovers_on_successful_retry(fake_logger: FakeLogger) -> None:
    subscription, charger = _subscription(fake_logger, [False, False, True])
    subscription.activate()
    subscription.renew()

    assert subscription.renew() == SubscriptionResult.PAYMENT_FAILED
    assert isinstance(subscription.state, PastDueState)
    assert subscription.renew() == SubscriptionResult.ACCEPTED

    assert isinstance(subscription.state, ActiveState)
    assert len(charger.charged) == 3


def test_past_due_cancels_after_max_retries(fake_logger: FakeLogger) -> None:
    subscription, charger = _subscription(
        fake_logger, [False, False, False, False], max_payment_retries=3
    )
    subscription.activate()
    subscription.renew()
    past_due = subscription.state
    assert isinstance(past_due, PastDueState)

    assert subscription.renew() == SubscriptionResult.PAYMENT_FAILED
    assert subscription.renew() == SubscriptionResult.PAYMENT_FAILED
    assert isinstance(subscription.state, PastDueState)
    assert subscription.renew() == SubscriptionResult.PAYMENT_FAILED

    assert isinstance(subscription.state, CancelledState)
    assert past_due.failed_retries == 3
    assert len(charger.charged) == 4
    assert fake_logger.fields_for("subscription.payment_retries_exhausted") == [
        {"customer_id": "cus_123", "retries": 3}
    ]


@pytest.mark.parametrize(
    "setup",
    [
        (),
        ("activate",),
        ("activate", "pause"),
        ("activate", "renew"),
    ],
)
def test_cancel_is_accepted_from_every_live_state(
    fake_logger: FakeLogger, setup: tuple[str, ...]
) -> None:
    subscription, _ = _subscription(fake_logger, [False])
    for event in setup:
        getattr(subscription, event)()

    assert subscription.cancel() == SubscriptionResult.ACCEPTED
    assert isinstance(subscription.state, CancelledState)


def test_cancelled_is_terminal(fake_logger: FakeLogger) -> None:
    subscription, charger = _subscription(fake_logger)
    subscription.cancel()

    for event in ("activate", "pause", "cancel", "renew"):
        assert getattr(subscription, event)() == SubscriptionResult.REJECTED
    assert subscription.process_payment() is False
    assert charger.charged == []
    assert isinstance(subscription.state, CancelledState)


def test_charger_errors_propagate(fake_logger: FakeLogger) -> None:
    def _gateway_down(subscription: Subscription) -> bool:
        raise ConnectionError("gateway down")

    subscription = Subscription(
        "cus_9", "Basic", 5.0, charge=_gateway_down, logger=fake_logger
    )
    subscription.activate()

    with pytest.raises(ConnectionError):
        subscription.renew()
    assert isinstance(subscription.state, ActiveState)


def test_describe_and_default_name(fake_logger: FakeLogger) -> None:
    subscription, _ = _subscription(fake_logger)

    assert subscription.name == "subscription:cus_123"
    assert subscription.describe() == "cus_123 | Pro Plan (29.99/mo) | DraftState"


def test_rejects_non_positive_retry_budget(fake_logger: FakeLogger) -> None:
    with pytest.raises(ValueError, match="max_payment_retries"):
        _subscription(fake_logger, max_payment_retries=0)


def test_rejected_events_are_logged_without_raising(fake_logger: FakeLogger) -> None:
    subscription, _ = _subscription(fake_logger)
    subscription.cancel()

    assert subscription.activate() == SubscriptionResult.REJECTED
    assert subscription.cancel() == SubscriptionResult.REJECTED

    assert fake_logger.fields_for("subscription.event_rejected") == [
        {
            "customer_id": "cus_123",
            "rejected_event": "activate",
            "state": "CancelledState",
        },
        {
            "customer_id": "cus_123",
            "rejected_event": "cancel",
            "state": "CancelledState",
        },
    ]


def test_paused_state_name_is_distinct_in_transition_logs(
    fake_logger: FakeLogger,
) -> None:
    subscription, _ = _subscription(fake_logger)
    subscription.activate()
    subscription.pause()

    assert subscription.state.name == "SubscriptionPausedState"
    assert fake_logger.fields_for("state_machine.transition")[-1] == {
        "machine": "subscription:cus_123",
        "previous_state": "ActiveState",
        "state": "SubscriptionPausedState",
    }
