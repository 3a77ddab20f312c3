"""Per-user state tracking for Locust load test scenarios.

Each Locust user instance maintains its own state; no cross-user sharing
except through ``SharedGroupOrder``, which deliberately points many users
at the same group order to exercise per-record serialization.
"""

import threading
from dataclasses import dataclass, field


@dataclass
class GroupOrderState:
    """Tracks state for a single simulated group order lifecycle."""

    group_order_id: str | None = None
    target_quantity: int = 0
    joined_quantity: int = 0
    vendor_ids: list[str] = field(default_factory=list)
    order_numbers: list[str] = field(default_factory=list)
    current_status: str = "active"


@dataclass
class OrderState:
    """Tracks state for a single individual order lifecycle."""

    order_id: str | None = None
    order_number: str | None = None
    current_status: str = "pending"


class SharedGroupOrder:
    """One group order id shared by all contention users in a process."""

    _lock = threading.Lock()
    group_order_id: str | None = None

    @classmethod
    def get_or_create(cls, create) -> str | None:
        with cls._lock:
            if cls.group_order_id is None:
                cls.group_order_id = create()
            return cls.group_order_id

    @classmethod
    def reset(cls):
        with cls._lock:
            cls.group_order_id = None
