"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, String, Text

from group_buying.domain import group_buying


@group_buying.event(part_of="Order")
class OrderCreated:
    """A purchase order was created and assigned its order number."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    order_type = String(required=True)
    vendor_id = Identifier(required=True)
    supplier_id = Identifier(required=True)
    group_order_id = Identifier()
    items = Text(required=True)  # JSON: list of item dicts
    total_amount = Float(required=True)
    discount_amount = Float(required=True)
    final_amount = Float(required=True)
    created_at = DateTime(required=True)


@group_buying.event(part_of="Order")
class OrderStatusChanged:
    """The order moved along its fulfillment state machine."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    changed_at = DateTime(required=True)


@group_buying.event(part_of="Order")
class OrderShipped:
    __version__ = "v1"

    order_id = Identifier(required=True)
    tracking_number = String()
    carrier = String()
    expected_delivery_date = DateTime()
    shipped_at = DateTime(required=True)


@group_buying.event(part_of="Order")
class OrderCancelled:
    __version__ = "v1"

    order_id = Identifier(required=True)
    reason = String(required=True)
    cancelled_at = DateTime(required=True)


@group_buying.event(part_of="Order")
class PaymentStatusUpdated:
    __version__ = "v1"

    order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    updated_at = DateTime(required=True)


@group_buying.event(part_of="Order")
class TrackingUpdateRecorded:
    """A carrier or supplier reported progress on a shipped order."""

    __version__ = "v1"

    order_id = Identifier(required=True)
    order_number = String(required=True)
    status = String(required=True)
    message = String()
    location = String()
    recorded_at = DateTime(required=True)


@group_buying.event(part_of="Order")
class OrderNotesUpdated:
    __version__ = "v1"

    order_id = Identifier(required=True)
    vendor_notes = Text()
    supplier_notes = Text()
    delivery_notes = Text()
    updated_at = DateTime(required=True)
