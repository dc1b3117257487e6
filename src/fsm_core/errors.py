"""Shared error types for fsm_core."""


class TransientError(RuntimeError):
    """Retry-safe failure reported by a flaky downstream dependency."""
