"""
Purpose: Placeholder courier positions for the map view.
What it does:
Scatters N couriers around a centre point, evenly spaced in angle with a
little random jitter, 0.01-0.03 degrees out (~1-3 km).

Not used for pricing. Non-deterministic unless a seeded rng is passed in.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import List, Optional

from .geo import Coordinates, as_latlon

MIN_RADIUS_DEG = 0.01
MAX_RADIUS_DEG = 0.03
MAX_ANGLE_JITTER_RAD = 0.5


@dataclass(frozen=True)
class CourierPosition:
    id: str
    latitude: float
    longitude: float


def courier_positions(
    center: Coordinates,
    count: int = 5,
    rng: Optional[random.Random] = None,
) -> List[CourierPosition]:
    rng = rng or random.Random()
    center_lat, center_lon = as_latlon(center)

    couriers: List[CourierPosition] = []
    for i in range(max(0, count)):
        angle = (math.pi * 2 * i) / count + rng.random() * MAX_ANGLE_JITTER_RAD
        radius = MIN_RADIUS_DEG + rng.random() * (MAX_RADIUS_DEG - MIN_RADIUS_DEG)
        couriers.append(
            CourierPosition(
                id=f"courier-{i}",
                latitude=center_lat + radius * math.cos(angle),
                longitude=center_lon + radius * math.sin(angle),
            )
        )
    return couriers
