import numpy as np
import pandas as pd
from datetime import datetime, timedelta, timezone

# Johannesburg CBD, vendors and customers are scattered around it
CENTER_LAT = -26.204103
CENTER_LON = 28.047305

PRODUCTS = [
    ("p_milk", "Full Cream Milk 1L", 18.99),
    ("p_bread", "Brown Bread", 16.49),
    ("p_eggs", "Free Range Eggs x6", 32.99),
    ("p_apples", "Apples 1.5kg", 29.99),
    ("p_rice", "Rice 2kg", 41.99),
    ("p_coffee", "Instant Coffee 200g", 79.99),
]


def generate_mock_orders(filename="mock_orders.csv", count=50, vendors=8, customers=30, seed=None):
    rng = np.random.default_rng(seed)
    now = datetime.now(timezone.utc).replace(tzinfo=None)

    vendor_rows = []
    for i in range(vendors):
        vendor_rows.append({
            "vendor_id": f"v_{i + 1:02d}",
            "lat": CENTER_LAT + rng.uniform(-0.05, 0.05),
            "lon": CENTER_LON + rng.uniform(-0.05, 0.05),
        })

    customer_rows = []
    for i in range(customers):
        customer_rows.append({
            "customer_id": f"c_{i + 1:03d}",
            "lat": CENTER_LAT + rng.uniform(-0.08, 0.08),
            "lon": CENTER_LON + rng.uniform(-0.08, 0.08),
        })

    data = []
    for i in range(count):
        vendor = vendor_rows[rng.integers(0, len(vendor_rows))]
        customer = customer_rows[rng.integers(0, len(customer_rows))]

        # 1-3 distinct products per order, stored as "id:qty|id:qty"
        picks = rng.choice(len(PRODUCTS), size=rng.integers(1, 4), replace=False)
        items = "|".join(f"{PRODUCTS[p][0]}:{rng.integers(1, 4)}" for p in picks)

        data.append({
            "order_id": f"ORD-{i + 1:04d}",
            "created_at": (now - timedelta(minutes=int(rng.integers(0, 10)))).isoformat(),
            "customer_id": customer["customer_id"],
            "vendor_id": vendor["vendor_id"],
            "vendor_lat": np.round(vendor["lat"], 6),
            "vendor_lon": np.round(vendor["lon"], 6),
            "customer_lat": np.round(customer["lat"], 6),
            "customer_lon": np.round(customer["lon"], 6),
            "items": items,
        })

    df = pd.DataFrame(data)
    df.to_csv(filename, index=False)
    print(f"Successfully generated {count} mock orders into '{filename}'.")
    return df


if __name__ == "__main__":
    generate_mock_orders()
