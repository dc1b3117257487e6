"""State-machine core: delegating state machines and a circuit breaker."""
