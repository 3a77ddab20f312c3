"""Domain events for the GroupOrder aggregate.

Events are immutable facts raised on the aggregate and persisted to the event
store when the record is committed. Real-time fan-out to vendors watching a
group order is handled separately by the NotificationPublisher.
"""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from group_buying.domain import group_buying


@group_buying.event(part_of="GroupOrder")
class GroupOrderCreated:
    """A supplier opened a group order for pooled purchasing."""

    __version__ = "v1"

    group_order_id = Identifier(required=True)
    creator_id = Identifier(required=True)
    product_id = Identifier()
    title = String(required=True)
    target_quantity = Integer(required=True)
    max_participants = Integer(required=True)
    base_price = Float(required=True)
    bulk_discounts = Text()  # JSON: list of tier dicts
    deadline = DateTime(required=True)
    created_at = DateTime(required=True)


@group_buying.event(part_of="GroupOrder")
class ParticipantJoined:
    """A vendor joined, or added quantity to an existing participation."""

    __version__ = "v1"

    group_order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    quantity = Integer(required=True)
    vendor_quantity = Integer(required=True)
    current_quantity = Integer(required=True)
    price_per_unit = Float(required=True)
    estimated_savings = Float(required=True)
    joined_at = DateTime(required=True)


@group_buying.event(part_of="GroupOrder")
class ParticipantLeft:
    """A vendor withdrew their whole participation."""

    __version__ = "v1"

    group_order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    withdrawn_quantity = Integer(required=True)
    current_quantity = Integer(required=True)
    price_per_unit = Float(required=True)
    estimated_savings = Float(required=True)
    left_at = DateTime(required=True)


@group_buying.event(part_of="GroupOrder")
class GroupOrderStatusChanged:
    """The group order moved along an edge of its state machine."""

    __version__ = "v1"

    group_order_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    current_quantity = Integer(required=True)
    changed_at = DateTime(required=True)


@group_buying.event(part_of="GroupOrder")
class GroupOrderPlaced:
    """The supplier placed the pooled order with the final participant list."""

    __version__ = "v1"

    group_order_id = Identifier(required=True)
    participants = Text(required=True)  # JSON: vendor_id -> quantity
    current_quantity = Integer(required=True)
    price_per_unit = Float(required=True)
    placed_at = DateTime(required=True)


@group_buying.event(part_of="GroupOrder")
class GroupOrderDelivered:
    """Fulfillment of the pooled order was confirmed."""

    __version__ = "v1"

    group_order_id = Identifier(required=True)
    delivered_at = DateTime(required=True)


@group_buying.event(part_of="GroupOrder")
class GroupOrderCancelled:
    """The group order was cancelled before being placed."""

    __version__ = "v1"

    group_order_id = Identifier(required=True)
    reason = String(required=True)
    cancelled_by = String(required=True)
    cancelled_at = DateTime(required=True)


@group_buying.event(part_of="GroupOrder")
class ChatMessagePosted:
    """The supplier or a participating vendor posted to the group order's chat."""

    __version__ = "v1"

    group_order_id = Identifier(required=True)
    message_id = Identifier(required=True)
    sender_id = Identifier(required=True)
    message = Text(required=True)
    sent_at = DateTime(required=True)
