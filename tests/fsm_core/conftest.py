from __future__ import annotations

import pytest

import fsm_core.circuit_breaker.breaker as breaker_mod
from tests.fsm_core.support.fakes import FakeClock, FakeLogger


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def fake_clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Freeze the breaker clock; tests advance it explicitly."""
    clock = FakeClock()
    monkeypatch.setattr(breaker_mod, "_utcnow", clock.now)
    return clock
