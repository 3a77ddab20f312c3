"""Order aggregate — one vendor's purchase from a supplier.

Orders are either individual purchases or materialized from a placed group
order (one per participant). Each carries a unique, human-readable order
number assigned once at creation by the SequenceAllocator.

State Machine:
    PENDING → CONFIRMED → PROCESSING → SHIPPED → DELIVERED
    CANCELLED (from any non-terminal state)
"""

import json
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from group_buying.domain import group_buying
from group_buying.exceptions import InvalidStateTransition
from group_buying.order.events import (
    OrderCancelled,
    OrderCreated,
    OrderNotesUpdated,
    OrderShipped,
    OrderStatusChanged,
    PaymentStatusUpdated,
    TrackingUpdateRecorded,
)
from group_buying.utils.clock import as_utc, utcnow


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class OrderType(Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(Enum):
    CASH = "cash"
    UPI = "upi"
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"


# State machine transition map
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CANCELLED},
    OrderStatus.DELIVERED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


# Statuses in which carrier progress can still be reported
_TRACKABLE = {OrderStatus.SHIPPED}


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@group_buying.value_object(part_of="Order")
class DeliveryAddress:
    """Where the vendor wants the order delivered, captured when it is placed.

    Coordinates are optional, but latitude and longitude come as a pair.
    """

    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    pincode = String(required=True, max_length=10)
    latitude = Float(min_value=-90.0, max_value=90.0)
    longitude = Float(min_value=-180.0, max_value=180.0)

    @invariant.post
    def coordinates_come_in_pairs(self):
        if (self.latitude is None) != (self.longitude is None):
            raise ValidationError({"coordinates": ["Both latitude and longitude are required"]})


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@group_buying.entity(part_of="Order")
class OrderItem:
    """A product line; ``discount_applied`` is the per-unit bulk discount."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    total_price = Float(required=True, min_value=0.0)
    discount_applied = Float(default=0.0, min_value=0.0)


@group_buying.entity(part_of="Order")
class TrackingUpdate:
    status = String(required=True, max_length=100)
    message = String(max_length=500)
    location = String(max_length=200)
    recorded_at = DateTime(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@group_buying.aggregate
class Order:
    order_number = String(required=True, max_length=14, unique=True)
    vendor_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    order_type = String(required=True, choices=OrderType)
    group_order_id = Identifier()
    items = HasMany(OrderItem)
    total_amount = Float(default=0.0)
    discount_amount = Float(default=0.0)
    final_amount = Float(default=0.0)
    status = String(
        choices=OrderStatus,
        default=OrderStatus.PENDING.value,
    )
    payment_status = String(
        choices=PaymentStatus,
        default=PaymentStatus.PENDING.value,
    )
    payment_method = String(
        choices=PaymentMethod,
        default=PaymentMethod.CASH.value,
    )
    delivery_address = ValueObject(DeliveryAddress)
    vendor_notes = Text()
    supplier_notes = Text()
    delivery_notes = Text()
    tracking_number = String(max_length=255)
    carrier = String(max_length=100)
    tracking_updates = HasMany(TrackingUpdate)
    expected_delivery_date = DateTime()
    actual_delivery_date = DateTime()
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number,
        vendor_id,
        supplier_id,
        items_data,
        order_type=OrderType.INDIVIDUAL,
        group_order_id=None,
        payment_method=PaymentMethod.CASH.value,
        delivery_address=None,
        vendor_notes=None,
    ):
        """Create an order with its allocated number.

        Args:
            order_number: Number issued by the SequenceAllocator.
            items_data: List of dicts with product_id, quantity, unit_price
                and optionally discount_applied (per unit).
            delivery_address: A ``DeliveryAddress`` or a dict of its fields.
        """
        order_type = OrderType(order_type)
        if order_type == OrderType.GROUP and not group_order_id:
            raise ValidationError({"group_order_id": ["Group orders must reference their group order"]})
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one item"]})
        if isinstance(delivery_address, dict):
            delivery_address = DeliveryAddress(**delivery_address)

        now = utcnow()
        order = cls(
            order_number=order_number,
            vendor_id=vendor_id,
            supplier_id=supplier_id,
            order_type=order_type.value,
            group_order_id=group_order_id,
            payment_method=payment_method,
            delivery_address=delivery_address,
            vendor_notes=vendor_notes,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )

        for item in items_data:
            unit_price = float(item["unit_price"])
            quantity = int(item["quantity"])
            order.add_items(
                OrderItem(
                    product_id=item["product_id"],
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=round(unit_price * quantity, 2),
                    discount_applied=float(item.get("discount_applied", 0.0)),
                )
            )
        order._recalculate_totals()

        order.raise_(
            OrderCreated(
                order_id=str(order.id),
                order_number=order_number,
                order_type=order.order_type,
                vendor_id=str(vendor_id),
                supplier_id=str(supplier_id),
                group_order_id=str(group_order_id) if group_order_id else None,
                items=json.dumps(
                    [
                        {
                            "product_id": str(i.product_id),
                            "quantity": i.quantity,
                            "unit_price": i.unit_price,
                            "discount_applied": i.discount_applied,
                        }
                        for i in order.items
                    ]
                ),
                total_amount=order.total_amount,
                discount_amount=order.discount_amount,
                final_amount=order.final_amount,
                created_at=now,
            )
        )
        return order

    def _recalculate_totals(self):
        """List-price total, bulk discount and amount payable."""
        self.final_amount = round(sum(item.total_price for item in self.items), 2)
        self.discount_amount = round(sum(item.discount_applied * item.quantity for item in self.items), 2)
        self.total_amount = round(self.final_amount + self.discount_amount, 2)

    def calculate_savings(self) -> float:
        return self.discount_amount

    # -------------------------------------------------------------------
    # State transition helper
    # -------------------------------------------------------------------
    def _transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise InvalidStateTransition(
                f"Cannot transition from {current.value} to {target_status.value}",
                from_status=current.value,
                to_status=target_status.value,
            )

        now = utcnow()
        self.status = target_status.value
        self.updated_at = now

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                from_status=current.value,
                to_status=target_status.value,
                changed_at=now,
            )
        )
        return now

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def confirm(self):
        self._transition(OrderStatus.CONFIRMED)

    def start_processing(self):
        self._transition(OrderStatus.PROCESSING)

    def ship(self, tracking_number=None, carrier=None, expected_delivery_date=None):
        now = self._transition(OrderStatus.SHIPPED)
        self.tracking_number = tracking_number
        self.carrier = carrier
        self.expected_delivery_date = expected_delivery_date
        self.add_tracking_updates(
            TrackingUpdate(
                status=OrderStatus.SHIPPED.value,
                message=f"Shipped via {carrier}" if carrier else "Shipped",
                recorded_at=now,
            )
        )

        self.raise_(
            OrderShipped(
                order_id=str(self.id),
                tracking_number=tracking_number,
                carrier=carrier,
                expected_delivery_date=expected_delivery_date,
                shipped_at=now,
            )
        )

    def deliver(self):
        now = self._transition(OrderStatus.DELIVERED)
        self.actual_delivery_date = now
        self.add_tracking_updates(
            TrackingUpdate(status=OrderStatus.DELIVERED.value, message="Delivered", recorded_at=now)
        )

    @property
    def tracking_history(self) -> list[TrackingUpdate]:
        """Tracking updates, oldest first."""
        return sorted(self.tracking_updates or [], key=lambda update: as_utc(update.recorded_at))

    def add_tracking_update(self, status, message=None, location=None):
        """Record carrier progress between shipping and delivery."""
        if not status or not str(status).strip():
            raise ValidationError({"status": ["Tracking status is required"]})
        if OrderStatus(self.status) not in _TRACKABLE:
            raise ValidationError({"status": ["Tracking updates can only be added after shipment"]})

        now = utcnow()
        update = TrackingUpdate(status=str(status).strip(), message=message, location=location, recorded_at=now)
        self.add_tracking_updates(update)
        self.updated_at = now

        self.raise_(
            TrackingUpdateRecorded(
                order_id=str(self.id),
                order_number=self.order_number,
                status=update.status,
                message=message,
                location=location,
                recorded_at=now,
            )
        )
        return update

    def update_notes(self, vendor_notes=None, supplier_notes=None, delivery_notes=None):
        """Replace the notes that are given; notes left as ``None`` are kept."""
        if vendor_notes is None and supplier_notes is None and delivery_notes is None:
            raise ValidationError({"notes": ["Provide at least one of vendor, supplier or delivery notes"]})

        if vendor_notes is not None:
            self.vendor_notes = vendor_notes
        if supplier_notes is not None:
            self.supplier_notes = supplier_notes
        if delivery_notes is not None:
            self.delivery_notes = delivery_notes

        now = utcnow()
        self.updated_at = now
        self.raise_(
            OrderNotesUpdated(
                order_id=str(self.id),
                vendor_notes=self.vendor_notes,
                supplier_notes=self.supplier_notes,
                delivery_notes=self.delivery_notes,
                updated_at=now,
            )
        )

    def cancel(self, reason):
        now = self._transition(OrderStatus.CANCELLED)
        self.cancellation_reason = reason

        self.raise_(
            OrderCancelled(
                order_id=str(self.id),
                reason=reason,
                cancelled_at=now,
            )
        )

    def update_payment_status(self, payment_status):
        try:
            new_status = PaymentStatus(payment_status)
        except ValueError as exc:
            raise ValidationError({"payment_status": [f"Unknown payment status: {payment_status}"]}) from exc
        previous = self.payment_status
        if previous == new_status.value:
            return

        now = utcnow()
        self.payment_status = new_status.value
        self.updated_at = now

        self.raise_(
            PaymentStatusUpdated(
                order_id=str(self.id),
                from_status=previous,
                to_status=new_status.value,
                updated_at=now,
            )
        )
