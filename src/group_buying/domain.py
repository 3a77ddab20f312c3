"""Group Buying bounded context — pooled vendor demand and purchase orders.

Vendors join group orders to reach a supplier's bulk-discount tiers. When a
group order is placed, one purchase Order is materialized per participant,
each carrying a day-scoped order number.
"""

import structlog
from protean.domain import Domain

group_buying = Domain(name="group_buying")

logger = structlog.get_logger(__name__)
