"""Faker-based data generators for Locust load test scenarios.

Each generator produces payloads that pass the API's Pydantic request
schemas and the domain's own checks (future deadlines, positive quantities,
well-formed discount tiers).
"""

import random
import uuid
from datetime import UTC, datetime, timedelta

from faker import Faker

fake = Faker("en_IN")

PAYMENT_METHODS = ["cash", "upi", "card", "bank_transfer"]


def vendor_id() -> str:
    """Generate vendor IDs like 'VND-LT-a1b2c3d4'."""
    return f"VND-LT-{uuid.uuid4().hex[:8]}"


def supplier_id() -> str:
    return f"SUP-LT-{uuid.uuid4().hex[:8]}"


def product_id() -> str:
    return f"PRD-LT-{uuid.uuid4().hex[:8]}"


def future_deadline(min_hours: int = 6, max_hours: int = 72) -> str:
    """ISO timestamp comfortably in the future."""
    return (datetime.now(UTC) + timedelta(hours=random.randint(min_hours, max_hours))).isoformat()


def discount_tiers(target_quantity: int) -> list[dict]:
    """Two increasing tiers: half the target and the full target."""
    half = max(1, target_quantity // 2)
    return [
        {"min_quantity": half, "discount_percentage": random.choice([3, 5, 7])},
        {"min_quantity": target_quantity, "discount_percentage": random.choice([10, 12, 15])},
    ]


def group_order_data(target_quantity: int | None = None, max_participants: int = 50) -> dict:
    """Generate CreateGroupOrderRequest payload matching schema field names."""
    target_quantity = target_quantity or random.randint(20, 200)
    commodity = random.choice(["Basmati rice", "Toor dal", "Sunflower oil", "Sugar", "Atta", "Tea leaves"])
    return {
        "creator_id": supplier_id(),
        "title": f"{commodity}, {random.choice([5, 10, 25, 50])}kg",
        "description": fake.sentence(nb_words=10),
        "product_id": product_id(),
        "target_quantity": target_quantity,
        "max_participants": max_participants,
        "base_price": round(random.uniform(10.0, 120.0), 2),
        "bulk_discounts": discount_tiers(target_quantity),
        "deadline": future_deadline(),
        "delivery_address": fake.address()[:255],
    }


def join_data(vendor: str | None = None, max_quantity: int = 10) -> dict:
    return {"vendor_id": vendor or vendor_id(), "quantity": random.randint(1, max_quantity)}


def order_items(count: int | None = None) -> list[dict]:
    count = count or random.randint(1, 4)
    return [
        {
            "product_id": product_id(),
            "quantity": random.randint(1, 20),
            "unit_price": round(random.uniform(5.0, 500.0), 2),
        }
        for _ in range(count)
    ]


def individual_order_data() -> dict:
    """Generate CreateOrderRequest payload."""
    return {
        "vendor_id": vendor_id(),
        "supplier_id": supplier_id(),
        "items": order_items(),
        "payment_method": random.choice(PAYMENT_METHODS),
    }


def shipment_data() -> dict:
    return {
        "tracking_number": f"TRK{random.randint(10**9, 10**10 - 1)}",
        "carrier": random.choice(["BlueDart", "Delhivery", "DTDC", "India Post"]),
        "expected_delivery_date": (datetime.now(UTC) + timedelta(days=random.randint(1, 7))).isoformat(),
    }
