"""Coin-operated vending machine built on ``StateMachine``.

Inserting a second coin while one is already held dispenses the product
instead of accumulating credit; the machine never counts coins.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import StrEnum

from fsm_core.logging import AnyLogger, log_info
from fsm_core.state_machine.machine import State, StateMachine, TransitionListener


class VendingResult(StrEnum):
    """Outcome of one vending machine event."""

    COIN_INSERTED = "coin_inserted"
    COIN_REQUIRED = "coin_required"
    PRODUCT_DISPENSED = "product_dispensed"


class VendingState(State, ABC):
    """Handlers every vending machine state must provide."""

    @abstractmethod
    def insert_coin(self, machine: VendingMachine) -> VendingResult:
        """Handle a coin being inserted."""

    @abstractmethod
    def select_product(self, machine: VendingMachine) -> VendingResult:
        """Handle the product button being pressed."""


class NoCoinState(VendingState):
    def insert_coin(self, machine: VendingMachine) -> VendingResult:
        log_info(
            machine.logger,
            "vending.coin_inserted",
            machine=machine.name,
            message="Coin inserted.",
        )
        machine.set_state(HasCoinState())
        return VendingResult.COIN_INSERTED

    def select_product(self, machine: VendingMachine) -> VendingResult:
        log_info(
            machine.logger,
            "vending.coin_required",
            machine=machine.name,
            message="Please insert a coin first.",
        )
        return VendingResult.COIN_REQUIRED


class HasCoinState(VendingState):
    def insert_coin(self, machine: VendingMachine) -> VendingResult:
        log_info(
            machine.logger,
            "vending.coin_already_inserted",
            machine=machine.name,
            message="Already has a coin. Dispensing product.",
        )
        return self.select_product(machine)

    def select_product(self, machine: VendingMachine) -> VendingResult:
        log_info(
            machine.logger,
            "vending.product_dispensed",
            machine=machine.name,
            message="Product dispensed. Thank you!",
        )
        machine.set_state(NoCoinState())
        return VendingResult.PRODUCT_DISPENSED


class VendingMachine(StateMachine[VendingState]):
    """Vending machine that starts without a coin."""

    def __init__(
        self,
        initial_state: VendingState | None = None,
        *,
        name: str | None = None,
        listeners: Sequence[TransitionListener] | None = None,
        logger: AnyLogger | None = None,
    ) -> None:
        super().__init__(
            NoCoinState() if initial_state is None else initial_state,
            name=name,
            listeners=listeners,
            logger=logger,
        )

    def insert_coin(self) -> VendingResult:
        return self.dispatch("insert_coin")

    def select_product(self) -> VendingResult:
        return self.dispatch("select_product")
