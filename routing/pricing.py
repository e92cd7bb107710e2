"""
Purpose: Delivery cost / ETA estimation for a single delivery leg (vendor -> customer).
What it does:
- DeliveryPricingPolicy: the tunable fee and pacing parameters
- estimate_delivery_cost(): prices a leg from two coordinates

Estimates are derived, never persisted: recompute them on demand.
Rounding is half-up (not Python's banker's rounding) so that the same
inputs give the same numbers on every client.

Rule: Pure functions only. No network, no side effects.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .geo import Coordinates, haversine_km


@dataclass(frozen=True)
class DeliveryPricingPolicy:
    """
    Central configuration for delivery pricing.

    cost = base_fee + distance_km * per_km_rate
    eta  = base_minutes + distance_km * minutes_per_km
    """

    # --- Fees (local currency) ---
    base_fee: float = 10.0
    per_km_rate: float = 8.0

    # --- Pacing (bike courier) ---
    base_minutes: int = 5
    minutes_per_km: float = 2.0

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.base_fee < 0:
            raise ValueError("base_fee must be >= 0")

        if self.per_km_rate < 0:
            raise ValueError("per_km_rate must be >= 0")

        if self.base_minutes <= 0:
            raise ValueError("base_minutes must be > 0")

        if self.minutes_per_km < 0:
            raise ValueError("minutes_per_km must be >= 0")


def default_pricing_policy() -> DeliveryPricingPolicy:
    """
    Convenience factory for the default policy.
    """
    p = DeliveryPricingPolicy()
    p.validate()
    return p


@dataclass(frozen=True)
class DeliveryCostEstimate:
    """
    Priced delivery leg.
    """
    cost: float           # currency, 2 dp
    estimated_time: int   # whole minutes
    distance: float       # km, 1 dp

    @property
    def eta(self) -> timedelta:
        return timedelta(minutes=self.estimated_time)

    @property
    def eta_ms(self) -> int:
        return self.estimated_time * 60 * 1000


def round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def estimate_delivery_cost(
    vendor_location: Coordinates,
    customer_location: Coordinates,
    policy: Optional[DeliveryPricingPolicy] = None,
) -> DeliveryCostEstimate:
    """
    Price a delivery leg from the vendor to the customer.

    Cost and ETA are computed from the unrounded great-circle distance;
    only the reported values are rounded.

    Returns:
        DeliveryCostEstimate(cost, estimated_time, distance)
    """
    policy = policy or default_pricing_policy()

    distance_km = haversine_km(vendor_location, customer_location)

    cost = policy.base_fee + distance_km * policy.per_km_rate
    estimated_time = int(round_half_up(policy.base_minutes + distance_km * policy.minutes_per_km))

    return DeliveryCostEstimate(
        cost=round_half_up(cost, 2),
        estimated_time=max(policy.base_minutes, estimated_time),
        distance=round_half_up(distance_km, 1),
    )
