"""Order lifecycle — fulfillment, tracking, notes and payment-status updates.

Every change is applied through the Order store's atomic update, so a
supplier shipping an order and a vendor cancelling it at the same moment are
serialized and exactly one of them wins.
"""

import structlog
from protean.utils.globals import current_domain

from group_buying.order.order import Order
from group_buying.store import AtomicStore

logger = structlog.get_logger(__name__)


class OrderLifecycle:
    def __init__(self, store: AtomicStore | None = None):
        self.store = store or AtomicStore(Order)

    def _apply(self, order_id, action: str, mutation) -> Order:
        order = self.store.atomic_update(order_id, mutation)
        logger.info(
            "Order updated",
            order_id=str(order.id),
            order_number=order.order_number,
            action=action,
            status=order.status,
        )
        return order

    def get(self, order_id) -> Order:
        return self.store.get(order_id)

    def confirm(self, order_id) -> Order:
        return self._apply(order_id, "confirm", lambda order: order.confirm())

    def start_processing(self, order_id) -> Order:
        return self._apply(order_id, "process", lambda order: order.start_processing())

    def ship(self, order_id, tracking_number=None, carrier=None, expected_delivery_date=None) -> Order:
        return self._apply(
            order_id,
            "ship",
            lambda order: order.ship(
                tracking_number=tracking_number,
                carrier=carrier,
                expected_delivery_date=expected_delivery_date,
            ),
        )

    def deliver(self, order_id) -> Order:
        return self._apply(order_id, "deliver", lambda order: order.deliver())

    def cancel(self, order_id, reason: str) -> Order:
        return self._apply(order_id, "cancel", lambda order: order.cancel(reason))

    def update_payment_status(self, order_id, payment_status: str) -> Order:
        return self._apply(
            order_id,
            "payment_status",
            lambda order: order.update_payment_status(payment_status),
        )

    def add_tracking_update(self, order_id, status: str, message=None, location=None) -> Order:
        return self._apply(
            order_id,
            "tracking_update",
            lambda order: order.add_tracking_update(status, message=message, location=location),
        )

    def update_notes(self, order_id, vendor_notes=None, supplier_notes=None, delivery_notes=None) -> Order:
        return self._apply(
            order_id,
            "notes",
            lambda order: order.update_notes(
                vendor_notes=vendor_notes,
                supplier_notes=supplier_notes,
                delivery_notes=delivery_notes,
            ),
        )

    def orders_for_group_order(self, group_order_id) -> list[Order]:
        return sorted(
            current_domain.repository_for(Order).find_by_group_order(group_order_id),
            key=lambda order: order.order_number,
        )

    def orders_for_vendor(self, vendor_id) -> list[Order]:
        return sorted(
            current_domain.repository_for(Order).find_by_vendor(vendor_id),
            key=lambda order: order.order_number,
        )
