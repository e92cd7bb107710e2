#Marks routing as a package.
#Re-exports the geo estimator so other modules import from routing
#without knowing internal file names.
#No business logic.

from .geo import EARTH_RADIUS_KM, LatLon, as_latlon, haversine_km
from .pricing import (
    DeliveryCostEstimate,
    DeliveryPricingPolicy,
    default_pricing_policy,
    estimate_delivery_cost,
)
from .couriers import CourierPosition, courier_positions

__all__ = [
           "EARTH_RADIUS_KM",
           "LatLon",
             "as_latlon",
             "haversine_km",
             "DeliveryCostEstimate",
             "DeliveryPricingPolicy",
             "default_pricing_policy",
             "estimate_delivery_cost",
             "CourierPosition",
             "courier_positions",
             ]
