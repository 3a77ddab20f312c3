"""Bulk-discount schedule — unit price as a function of pooled quantity.

A schedule is a list of tiers ``{"min_quantity": int, "discount_percentage":
float}``. The best discount among tiers whose ``min_quantity`` is reached
applies; tiers do not stack.
"""

import json
from dataclasses import dataclass

from protean.exceptions import ValidationError


@dataclass(frozen=True)
class DiscountTier:
    min_quantity: int
    discount_percentage: float


class DiscountSchedule:
    def __init__(self, tiers=()):
        self.tiers = tuple(sorted(tiers, key=lambda tier: tier.min_quantity))

    @classmethod
    def parse(cls, raw) -> "DiscountSchedule":
        """Build a schedule from a list of dicts or its JSON text."""
        if raw is None or raw == "":
            return cls()
        if isinstance(raw, str):
            raw = json.loads(raw)

        tiers = []
        for entry in raw:
            try:
                min_quantity = int(entry["min_quantity"])
                discount_percentage = float(entry["discount_percentage"])
            except (KeyError, TypeError, ValueError) as exc:
                raise ValidationError(
                    {"bulk_discounts": ["Each tier needs numeric min_quantity and discount_percentage"]}
                ) from exc
            if min_quantity < 1:
                raise ValidationError({"bulk_discounts": ["min_quantity must be at least 1"]})
            if not 0 <= discount_percentage <= 100:
                raise ValidationError({"bulk_discounts": ["discount_percentage must be between 0 and 100"]})
            tiers.append(DiscountTier(min_quantity, discount_percentage))
        return cls(tiers)

    def to_json(self) -> str:
        return json.dumps(
            [{"min_quantity": t.min_quantity, "discount_percentage": t.discount_percentage} for t in self.tiers]
        )

    def discount_for(self, quantity: int) -> float:
        applicable = 0.0
        for tier in self.tiers:
            if quantity >= tier.min_quantity and tier.discount_percentage > applicable:
                applicable = tier.discount_percentage
        return applicable

    def unit_price(self, base_price: float, quantity: int) -> float:
        return round(base_price * (1 - self.discount_for(quantity) / 100), 2)
