"""
Purpose: Central configuration for order status progression (single source of truth).
What it does:

Stores all tunable timings for the status engine:

INITIAL_DELAY_MS = 2000
TICK_MS = 5000
FALLBACK_DURATION_MS = 25 minutes

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ProgressionPolicy:
    """
    Central configuration for the order status engine.

    Notes:
    - The engine waits `initial_delay_ms` before its first tick,
      then ticks every `tick_ms` of simulated elapsed time.
    - `fallback_duration_ms` is the delivery budget used when an order
      carries no usable estimated_delivery.
    """

    # --- Tick timing ---
    initial_delay_ms: int = 2000
    tick_ms: int = 5000

    # --- Budget ---
    # 25 minutes, matches the default promise shown at checkout.
    fallback_duration_ms: int = 25 * 60 * 1000

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.initial_delay_ms < 0:
            raise ValueError("initial_delay_ms must be >= 0")

        if self.tick_ms <= 0:
            raise ValueError("tick_ms must be > 0")

        if self.fallback_duration_ms <= 0:
            raise ValueError("fallback_duration_ms must be > 0")


def default_progression_policy() -> ProgressionPolicy:
    """
    Convenience factory for the default policy.
    """
    p = ProgressionPolicy()
    p.validate()
    return p

