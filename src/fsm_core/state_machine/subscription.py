"""Subscription lifecycle with payment processing.

Draft -> Active <-> Paused, Active -> PastDue on a failed renewal, and any
non-terminal state -> Cancelled. ``Cancelled`` rejects every event.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from enum import StrEnum

from fsm_core.logging import AnyLogger, log_info, log_warning
from fsm_core.state_machine.machine import State, StateMachine, TransitionListener

PaymentCharger = Callable[["Subscription"], bool]

DEFAULT_MAX_PAYMENT_RETRIES = 3


class SubscriptionResult(StrEnum):
    """Outcome of one subscription lifecycle event."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PAYMENT_FAILED = "payment_failed"


class SubscriptionState(State):
    """Base lifecycle state. Every event is rejected unless overridden."""

    def _reject(self, subscription: Subscription, event: str) -> SubscriptionResult:
        log_info(
            subscription.logger,
            "subscription.event_rejected",
            customer_id=subscription.customer_id,
            rejected_event=event,
            state=self.name,
        )
        return SubscriptionResult.REJECTED

    def activate(self, subscription: Subscription) -> SubscriptionResult:
        return self._reject(subscription, "activate")

    def pause(self, subscription: Subscription) -> SubscriptionResult:
        return self._reject(subscription, "pause")

    def cancel(self, subscription: Subscription) -> SubscriptionResult:
        log_info(
            subscription.logger,
            "subscription.cancelled",
            customer_id=subscription.customer_id,
            previous_state=self.name,
        )
        subscription.set_state(CancelledState())
        return SubscriptionResult.ACCEPTED

    def renew(self, subscription: Subscription) -> SubscriptionResult:
        return self._reject(subscription, "renew")

    def process_payment(self, subscription: Subscription) -> bool:
        self._reject(subscription, "process_payment")
        return False


def _charge(subscription: Subscription) -> bool:
    succeeded = subscription.charge(subscription)
    if succeeded:
        log_info(
            subscription.logger,
            "subscription.payment_succeeded",
            customer_id=subscription.customer_id,
            amount=subscription.price,
        )
    else:
        log_warning(
            subscription.logger,
            "subscription.payment_failed",
            customer_id=subscription.customer_id,
            amount=subscription.price,
        )
    return succeeded


class DraftState(SubscriptionState):
    def activate(self, subscription: Subscription) -> SubscriptionResult:
        subscription.set_state(ActiveState())
        return SubscriptionResult.ACCEPTED


class ActiveState(SubscriptionState):
    def pause(self, subscription: Subscription) -> SubscriptionResult:
        subscription.set_state(SubscriptionPausedState())
        return SubscriptionResult.ACCEPTED

    def renew(self, subscription: Subscription) -> SubscriptionResult:
        if self.process_payment(subscription):
            return SubscriptionResult.ACCEPTED
        subscription.set_state(PastDueState())
        return SubscriptionResult.PAYMENT_FAILED

    def process_payment(self, subscription: Subscription) -> bool:
        return _charge(subscription)


class SubscriptionPausedState(SubscriptionState):
    def activate(self, subscription: Subscription) -> SubscriptionResult:
        subscription.set_state(ActiveState())
        return SubscriptionResult.ACCEPTED


class PastDueState(SubscriptionState):
    """Payment is owed. Renewal retries the charge a bounded number of times."""

    def __init__(self) -> None:
        self.failed_retries = 0

    def renew(self, subscription: Subscription) -> SubscriptionResult:
        if self.process_payment(subscription):
            subscription.set_state(ActiveState())
            return SubscriptionResult.ACCEPTED

        self.failed_retries += 1
        if self.failed_retries >= subscription.max_payment_retries:
            log_warning(
                subscription.logger,
                "subscription.payment_retries_exhausted",
                customer_id=subscription.customer_id,
                retries=self.failed_retries,
            )
            subscription.set_state(CancelledState())
        return SubscriptionResult.PAYMENT_FAILED

    def process_payment(self, subscription: Subscription) -> bool:
        return _charge(subscription)


class CancelledState(SubscriptionState):
    def cancel(self, subscription: Subscription) -> SubscriptionResult:
        return self._reject(subscription, "cancel")


class Subscription(StateMachine[SubscriptionState]):
    """Customer subscription starting in ``DraftState``."""

    def __init__(
        self,
        customer_id: str,
        plan: str,
        price: float,
        *,
        charge: PaymentCharger,
        max_payment_retries: int = DEFAULT_MAX_PAYMENT_RETRIES,
        name: str | None = None,
        listeners: Sequence[TransitionListener] | None = None,
        logger: AnyLogger | None = None,
    ) -> None:
        """Build a draft subscription.

        Args:
            customer_id: Customer owning the subscription.
            plan: Plan name.
            price: Monthly price charged on renewal.
            charge: Payment capability; returns ``True`` when the charge went
                through. Exceptions it raises propagate to the caller.
            max_payment_retries: Failed renewals tolerated while past due
                before the subscription is cancelled.
        """
        if max_payment_retries < 1:
            raise ValueError("max_payment_retries must be >= 1")
        super().__init__(
            DraftState(),
            name=f"subscription:{customer_id}" if name is None else name,
            listeners=listeners,
            logger=logger,
        )
        self.customer_id = customer_id
        self.plan = plan
        self.price = price
        self.charge = charge
        self.max_payment_retries = max_payment_retries

    def activate(self) -> SubscriptionResult:
        return self.dispatch("activate")

    def pause(self) -> SubscriptionResult:
        return self.dispatch("pause")

    def cancel(self) -> SubscriptionResult:
        return self.dispatch("cancel")

    def renew(self) -> SubscriptionResult:
        return self.dispatch("renew")

    def process_payment(self) -> bool:
        return self.dispatch("process_payment")

    def describe(self) -> str:
        return f"{self.customer_id} | {self.plan} ({self.price:.2f}/mo) | {self.state.name}"
