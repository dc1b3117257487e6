from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import structlog
from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fsm_core.circuit_breaker import BreakerListener, CircuitBreaker, CircuitBreakerConfig
from fsm_core.logging import AnyLogger, configure_structlog, get_log_level_value
from fsm_core.state_machine.subscription import (
    DEFAULT_MAX_PAYMENT_RETRIES,
    PaymentCharger,
    Subscription,
)

ENV_PREFIX = "FSM_CORE_"


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class CoreSettings(BaseSettings):
    """Runtime settings for hosts embedding breakers and state machines."""

    model_config = prefixed_settings_config(ENV_PREFIX)

    log_level: str = "INFO"
    service_name: str | None = None
    breaker_failure_threshold: int = 3
    breaker_reset_timeout_seconds: float = 3.0
    subscription_max_payment_retries: int = DEFAULT_MAX_PAYMENT_RETRIES

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_log_level(cls, value: object) -> object:
        if not isinstance(value, str):
            return value
        normalized = value.strip().upper()
        get_log_level_value(normalized)
        return normalized

    @model_validator(mode="after")
    def _validate_core_settings(self) -> CoreSettings:
        if self.breaker_failure_threshold < 1:
            raise ValueError("breaker_failure_threshold must be >= 1")
        if self.breaker_reset_timeout_seconds < 0:
            raise ValueError("breaker_reset_timeout_seconds must be >= 0")
        if self.subscription_max_payment_retries < 1:
            raise ValueError("subscription_max_payment_retries must be >= 1")
        return self

    def breaker_config(
        self,
        *,
        expected_exceptions: tuple[type[Exception], ...] = (Exception,),
        excluded_exceptions: tuple[type[Exception], ...] = (),
    ) -> CircuitBreakerConfig:
        """Build a breaker config from the configured threshold and timeout."""
        return CircuitBreakerConfig(
            failure_threshold=self.breaker_failure_threshold,
            reset_timeout=self.breaker_reset_timeout_seconds,
            expected_exceptions=expected_exceptions,
            excluded_exceptions=excluded_exceptions,
        )

    def configure_logging(self) -> structlog.stdlib.BoundLogger:
        """Configure structlog with the configured level and service name."""
        return configure_structlog(log_level=self.log_level, service=self.service_name)

    def build_breaker(
        self,
        name: str,
        operation: Callable[..., Any] | None = None,
        *,
        expected_exceptions: tuple[type[Exception], ...] = (Exception,),
        excluded_exceptions: tuple[type[Exception], ...] = (),
        listeners: Sequence[BreakerListener] | None = None,
        logger: AnyLogger | None = None,
    ) -> CircuitBreaker:
        return CircuitBreaker(
            name,
            operation,
            config=self.breaker_config(
                expected_exceptions=expected_exceptions,
                excluded_exceptions=excluded_exceptions,
            ),
            listeners=listeners,
            logger=logger,
        )

    def build_subscription(
        self,
        customer_id: str,
        plan: str,
        price: float,
        *,
        charge: PaymentCharger,
        logger: AnyLogger | None = None,
    ) -> Subscription:
        """Build a draft subscription using the configured retry budget."""
        return Subscription(
            customer_id,
            plan,
            price,
            charge=charge,
            max_payment_retries=self.subscription_max_payment_retries,
            logger=logger,
        )
