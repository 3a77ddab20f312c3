"""OrderFactory — purchase orders from placed group orders and direct buys.

``materialize`` turns an ORDERED group order into one ``group`` Order per
participant. Each Order gets its own call to the SequenceAllocator. Orders
are independent units: if persisting one fails, the ones already written
stay, and the failure is reported per vendor. Re-invoking ``materialize``
(for everyone or just the failed vendors) is safe: an Order that already
exists for (group order, vendor) is returned instead of created again.
"""

from dataclasses import dataclass, field

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from group_buying.exceptions import (
    AllocationExhausted,
    DuplicateOrderNumber,
    GroupOrderNotPlaced,
    StoreUnavailable,
    UpdateConflict,
)
from group_buying.group_order.group_order import GroupOrderStatus
from group_buying.order.order import DeliveryAddress, Order, OrderType, PaymentMethod
from group_buying.order.sequence import SequenceAllocator, date_key_for
from group_buying.store import AtomicStore
from group_buying.utils.clock import utcnow

logger = structlog.get_logger(__name__)


@dataclass
class MaterializationResult:
    """Orders per vendor, and the reason for each vendor that failed."""

    group_order_id: str
    orders: list = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return not self.failed

    @property
    def order_numbers(self) -> list[str]:
        return [order.order_number for order in self.orders]


class OrderFactory:
    def __init__(self, allocator: SequenceAllocator | None = None, store: AtomicStore | None = None, clock=None):
        self.allocator = allocator or SequenceAllocator()
        self.store = store or AtomicStore(Order)
        self.clock = clock or utcnow

    @property
    def repository(self):
        return current_domain.repository_for(Order)

    def _write(self, order: Order) -> Order:
        """Persist a new order, turning number collisions into ``DuplicateOrderNumber``."""
        if self.repository.find_by_order_number(order.order_number) is not None:
            raise DuplicateOrderNumber(f"Order number {order.order_number} is taken")
        try:
            self.store.create(order)
        except ValidationError as exc:
            if "order_number" in (exc.messages or {}):
                raise DuplicateOrderNumber(f"Order number {order.order_number} is taken") from exc
            raise
        return order

    # -------------------------------------------------------------------
    # Group orders
    # -------------------------------------------------------------------
    def materialize(self, group_order, vendor_ids=None) -> MaterializationResult:
        """Create one Order per participant of a placed group order.

        Args:
            group_order: A GroupOrder in ORDERED status.
            vendor_ids: Restrict materialization to these vendors, e.g. the
                ones that failed on a previous call.
        """
        if group_order.status != GroupOrderStatus.ORDERED.value:
            raise GroupOrderNotPlaced(
                f"Group order is {group_order.status}; orders are created once it is ordered",
                status=group_order.status,
            )

        participants = group_order.participants or {}
        if vendor_ids is not None:
            wanted = {str(vendor_id) for vendor_id in vendor_ids}
            participants = {vendor: qty for vendor, qty in participants.items() if vendor in wanted}

        unit_price = group_order.discount_schedule.unit_price(group_order.base_price, group_order.current_quantity)
        discount_per_unit = round(group_order.base_price - unit_price, 2)
        date_key = date_key_for(self.clock())

        result = MaterializationResult(group_order_id=str(group_order.id))
        for vendor_id, quantity in sorted(participants.items()):
            try:
                order = self._materialize_one(
                    group_order,
                    vendor_id,
                    quantity,
                    unit_price,
                    discount_per_unit,
                    date_key,
                )
            except (AllocationExhausted, UpdateConflict, StoreUnavailable, ValidationError) as exc:
                logger.error(
                    "Failed to materialize order",
                    group_order_id=str(group_order.id),
                    vendor_id=vendor_id,
                    error=str(exc),
                )
                result.failed[vendor_id] = str(exc)
            else:
                result.orders.append(order)

        logger.info(
            "Group order materialized",
            group_order_id=str(group_order.id),
            created=len(result.orders),
            failed=len(result.failed),
        )
        return result

    def _materialize_one(self, group_order, vendor_id, quantity, unit_price, discount_per_unit, date_key):
        with self.store.exclusive(f"{group_order.id}:{vendor_id}"):
            existing = self.repository.find_for_participant(group_order.id, vendor_id)
            if existing is not None:
                return existing

            items = [
                {
                    "product_id": str(group_order.product_id or group_order.id),
                    "quantity": quantity,
                    "unit_price": unit_price,
                    "discount_applied": discount_per_unit,
                }
            ]
            return self.allocator.issue(
                date_key,
                lambda order_number: self._write(
                    Order.create(
                        order_number=order_number,
                        vendor_id=vendor_id,
                        supplier_id=group_order.creator_id,
                        items_data=items,
                        order_type=OrderType.GROUP,
                        group_order_id=str(group_order.id),
                    )
                ),
            )

    # -------------------------------------------------------------------
    # Individual orders
    # -------------------------------------------------------------------
    def create_individual(
        self,
        vendor_id,
        supplier_id,
        items,
        payment_method=PaymentMethod.CASH.value,
        delivery_address=None,
        vendor_notes=None,
    ) -> Order:
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})
        if isinstance(delivery_address, dict):
            delivery_address = DeliveryAddress(**delivery_address)

        date_key = date_key_for(self.clock())
        order = self.allocator.issue(
            date_key,
            lambda order_number: self._write(
                Order.create(
                    order_number=order_number,
                    vendor_id=vendor_id,
                    supplier_id=supplier_id,
                    items_data=items,
                    order_type=OrderType.INDIVIDUAL,
                    payment_method=payment_method,
                    delivery_address=delivery_address,
                    vendor_notes=vendor_notes,
                )
            ),
        )
        logger.info("Individual order created", order_id=str(order.id), order_number=order.order_number)
        return order
