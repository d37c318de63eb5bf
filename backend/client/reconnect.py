"""
Reconnect policy helpers.

Purpose:
- Centralize the client's bounded reconnect rule
- Keep RelayClient.run() free of policy arithmetic

This module contains NO timers, NO async, NO side effects.
"""
from __future__ import annotations

from dataclasses import dataclass

from spec import RECONNECT_DELAYS_MS


@dataclass(frozen=True)
class ReconnectAttempt:
    """
    Immutable reconnect counter.

    Semantics:
    - attempt == 0: no reconnect attempted since the last good connection
    - attempt >= 1: the Nth consecutive reconnect attempt
    """
    attempt: int


def next_attempt(current: ReconnectAttempt) -> ReconnectAttempt:
    """Advance to the next reconnect attempt."""
    return ReconnectAttempt(attempt=current.attempt + 1)


def reset_attempt() -> ReconnectAttempt:
    """Fresh counter, used after every successful connection."""
    return ReconnectAttempt(attempt=0)


def should_retry(*, attempt: ReconnectAttempt, max_attempts: int) -> bool:
    """
    True if another reconnect is allowed.

    attempt = number of reconnects already performed
    """
    return attempt.attempt < max_attempts


def get_retry_delay_ms(*, attempt: ReconnectAttempt) -> int:
    """
    Delay before the next reconnect.

    Backoff table indexed by attempts so far, clamped to the last slot.
    """
    idx = min(attempt.attempt, len(RECONNECT_DELAYS_MS) - 1)
    return RECONNECT_DELAYS_MS[idx]
