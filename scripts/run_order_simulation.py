"""
End-to-end order lifecycle simulation on mock data.

Loads (or generates) mock_orders.csv at the repo root, prices each leg,
runs every order's status engine on virtual time, rates the delivered
products and prints a summary.

Run from the repo root after `pip install -e .`:

    python scripts/run_order_simulation.py

Without installing, put the repo root on the path instead:

    PYTHONPATH=. python scripts/run_order_simulation.py

`generate_mock_orders` resolves from scripts/ itself, since Python puts the
script's own directory first on sys.path.
"""

import asyncio
import logging
import os
import random
from datetime import datetime
from typing import List, Tuple

import pandas as pd

import settings
from generate_mock_orders import PRODUCTS, generate_mock_orders
from orders import ManualScheduler, Order, OrderBook, OrderItem
from ratings import InMemoryRatingStore, RatingSubmissionFlow, vendor_rating
from routing import DeliveryCostEstimate, LatLon, courier_positions, estimate_delivery_cost

PRICES = {product_id: (name, price) for product_id, name, price in PRODUCTS}


def parse_items(raw: str) -> List[OrderItem]:
    items = []
    for chunk in raw.split("|"):
        product_id, quantity = chunk.split(":")
        name, price = PRICES[product_id]
        items.append(OrderItem(id=product_id, name=name, price=price, quantity=int(quantity)))
    return items


def load_orders(filepath="mock_orders.csv") -> List[Tuple[Order, DeliveryCostEstimate, LatLon]]:
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    absolute_path = os.path.join(base_dir, filepath)
    if not os.path.exists(absolute_path):
        generate_mock_orders(absolute_path, seed=7)

    df = pd.read_csv(absolute_path)

    loaded = []
    for _, row in df.iterrows():
        vendor_location = (float(row["vendor_lat"]), float(row["vendor_lon"]))
        estimate = estimate_delivery_cost(
            vendor_location,
            (row["customer_lat"], row["customer_lon"]),
        )
        order = Order(
            id=str(row["order_id"]),
            customer_id=str(row["customer_id"]),
            vendor_id=str(row["vendor_id"]),
            items=parse_items(row["items"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
        loaded.append((order, estimate, vendor_location))
    return loaded


async def rate_deliveries(book: OrderBook, scheduler: ManualScheduler) -> RatingSubmissionFlow:
    flow = RatingSubmissionFlow(InMemoryRatingStore(), orders=book.orders, clock=scheduler.now)
    for order in book.orders():
        if not order.is_delivered:
            continue
        for item in order.items:
            await flow.submit(item.id, order.customer_id, random.randint(3, 5), order_id=order.id)
    return flow


def main():
    logging.basicConfig(level=settings.LOG_LEVEL)
    print("=== STARTING ORDER LIFECYCLE SIMULATION ===")

    loaded = load_orders()
    start = min(order.created_at for order, _, _ in loaded)
    scheduler = ManualScheduler(start=start)
    book = OrderBook()

    for order, estimate, _ in loaded:
        book.add_order(order, estimate)
    print(f"Loaded {len(book)} Orders.\n")

    print("--- Delivery Estimates ---")
    for order, estimate, _ in loaded[:10]:
        print(f"{order.id}: {estimate.distance:.1f} km -> R{estimate.cost:.2f}, ~{estimate.estimated_time} min")

    first_order, _, vendor_location = loaded[0]
    couriers = courier_positions(vendor_location, count=5)
    print(f"\nPlaceholder couriers near {first_order.vendor_id}: {[c.id for c in couriers]}")

    delivered = []
    for order in book.orders():
        book.track(
            order.id,
            scheduler=scheduler,
            clock=scheduler.now,
            on_complete=lambda o: delivered.append(o.id),
        )

    print("\nRunning status engines...")
    fired = scheduler.run_until_idle()
    print(f"Processed {fired} ticks over {scheduler.elapsed_ms / 60000:.1f} simulated minutes.")

    flow = asyncio.run(rate_deliveries(book, scheduler))

    print("\n--- Product Ratings ---")
    for product_id, name, _ in PRODUCTS:
        print(f"{name}: {flow.average_rating(product_id):.1f} stars")

    vendor_ids = sorted({order.vendor_id for order in book.orders()})
    print("\n--- Vendor Ratings ---")
    for vendor_id in vendor_ids:
        product_ids = {item.id for order in book.orders() if order.vendor_id == vendor_id for item in order.items}
        print(f"{vendor_id}: {vendor_rating(product_ids, flow.ratings):.2f}")

    print("\n=== SIMULATION COMPLETE ===")
    print(f"Orders Delivered: {len(delivered)} / {len(book)}")
    print(f"Ratings Submitted: {len(flow.ratings)}")


if __name__ == "__main__":
    main()
