"""GroupOrder aggregate — pooled demand from many vendors for one product.

Vendors join with a quantity; once the pooled quantity reaches the target,
the supplier can place the order at the bulk price. The aggregate owns the
participant mapping, the derived totals and pricing, and the status state
machine:

    ACTIVE ⇄ TARGET_REACHED → ORDERED → DELIVERED
    ACTIVE | TARGET_REACHED → CANCELLED

The ACTIVE ⇄ TARGET_REACHED edges are driven only by quantity crossing the
target on join/leave. DELIVERED and CANCELLED are terminal.

Mutations happen on snapshots handed out by the GroupOrderStore; see
``group_buying.group_order.aggregator`` for the atomic update path.
"""

import json
from datetime import datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Dict, Float, HasMany, Identifier, Integer, String, Text

from group_buying.domain import group_buying
from group_buying.exceptions import (
    CapacityExceeded,
    DeadlinePassed,
    InvalidStateTransition,
    NotAParticipant,
    OrderClosed,
    OrderLocked,
)
from group_buying.group_order.events import (
    ChatMessagePosted,
    GroupOrderCancelled,
    GroupOrderCreated,
    GroupOrderDelivered,
    GroupOrderPlaced,
    GroupOrderStatusChanged,
    ParticipantJoined,
    ParticipantLeft,
)
from group_buying.pricing import DiscountSchedule
from group_buying.utils.clock import as_utc, utcnow

DEFAULT_MAX_PARTICIPANTS = 50
MAX_MESSAGE_LENGTH = 1000


class GroupOrderStatus(Enum):
    ACTIVE = "active"
    TARGET_REACHED = "target_reached"
    ORDERED = "ordered"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class GroupPaymentStatus(Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


_VALID_TRANSITIONS = {
    GroupOrderStatus.ACTIVE: {GroupOrderStatus.TARGET_REACHED, GroupOrderStatus.CANCELLED},
    GroupOrderStatus.TARGET_REACHED: {
        GroupOrderStatus.ACTIVE,  # Leave dropped quantity below target
        GroupOrderStatus.ORDERED,
        GroupOrderStatus.CANCELLED,
    },
    GroupOrderStatus.ORDERED: {GroupOrderStatus.DELIVERED},
    GroupOrderStatus.DELIVERED: set(),  # Terminal
    GroupOrderStatus.CANCELLED: set(),  # Terminal
}

# Edges only join/leave may take
_QUANTITY_DRIVEN = {GroupOrderStatus.ACTIVE, GroupOrderStatus.TARGET_REACHED}

_OPEN_FOR_PARTICIPATION = {GroupOrderStatus.ACTIVE, GroupOrderStatus.TARGET_REACHED}


@group_buying.entity(part_of="GroupOrder")
class ChatMessage:
    """A message in the group order's chat between supplier and vendors."""

    sender_id = Identifier(required=True)
    message = String(required=True, max_length=MAX_MESSAGE_LENGTH)
    sent_at = DateTime(required=True)


@group_buying.aggregate
class GroupOrder:
    title = String(required=True, max_length=255)
    description = Text()
    product_id = Identifier()
    creator_id = Identifier(required=True)
    target_quantity = Integer(required=True, min_value=1)
    current_quantity = Integer(default=0, min_value=0)
    max_participants = Integer(default=DEFAULT_MAX_PARTICIPANTS, min_value=1)
    participants = Dict()  # vendor_id -> quantity
    base_price = Float(required=True, min_value=0.0)
    bulk_discounts = Text()  # JSON: list of {min_quantity, discount_percentage}
    price_per_unit = Float(default=0.0)
    estimated_savings = Float(default=0.0)
    status = String(
        choices=GroupOrderStatus,
        default=GroupOrderStatus.ACTIVE.value,
    )
    payment_status = String(
        choices=GroupPaymentStatus,
        default=GroupPaymentStatus.PENDING.value,
    )
    deadline = DateTime(required=True)
    delivery_date = DateTime()
    delivery_address = Text()
    notes = Text()
    order_placed_at = DateTime()
    delivered_at = DateTime()
    cancelled_at = DateTime()
    cancellation_reason = String(max_length=500)
    cancelled_by = String(max_length=255)
    chat_messages = HasMany(ChatMessage)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        creator_id,
        title,
        target_quantity,
        base_price,
        deadline,
        bulk_discounts=None,
        max_participants=DEFAULT_MAX_PARTICIPANTS,
        product_id=None,
        description=None,
        delivery_date=None,
        delivery_address=None,
        notes=None,
        now=None,
    ):
        now = now or utcnow()
        if as_utc(deadline) <= as_utc(now):
            raise ValidationError({"deadline": ["Deadline must be in the future"]})

        schedule = DiscountSchedule.parse(bulk_discounts)

        group_order = cls(
            creator_id=creator_id,
            title=title,
            description=description,
            product_id=product_id,
            target_quantity=target_quantity,
            current_quantity=0,
            max_participants=max_participants,
            participants={},
            base_price=base_price,
            bulk_discounts=schedule.to_json(),
            status=GroupOrderStatus.ACTIVE.value,
            deadline=deadline,
            delivery_date=delivery_date,
            delivery_address=delivery_address,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        group_order._reprice()

        group_order.raise_(
            GroupOrderCreated(
                group_order_id=str(group_order.id),
                creator_id=str(creator_id),
                product_id=str(product_id) if product_id else None,
                title=title,
                target_quantity=group_order.target_quantity,
                max_participants=group_order.max_participants,
                base_price=group_order.base_price,
                bulk_discounts=group_order.bulk_discounts,
                deadline=deadline,
                created_at=now,
            )
        )
        return group_order

    # -------------------------------------------------------------------
    # Derived values
    # -------------------------------------------------------------------
    @property
    def discount_schedule(self) -> DiscountSchedule:
        return DiscountSchedule.parse(self.bulk_discounts)

    @property
    def progress_percentage(self) -> float:
        return min(self.current_quantity / self.target_quantity * 100, 100.0)

    @property
    def is_target_reached(self) -> bool:
        return self.current_quantity >= self.target_quantity

    def quantity_for(self, vendor_id) -> int:
        return (self.participants or {}).get(str(vendor_id), 0)

    def _reprice(self):
        """Recompute unit price and savings for the current pooled quantity."""
        self.price_per_unit = self.discount_schedule.unit_price(self.base_price, self.current_quantity)
        self.estimated_savings = round((self.base_price - self.price_per_unit) * self.current_quantity, 2)

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = GroupOrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise InvalidStateTransition(
                f"Cannot transition from {current.value} to {target_status.value}",
                from_status=current.value,
                to_status=target_status.value,
            )

    def _transition(self, target_status, now):
        self._assert_can_transition(target_status)
        previous = self.status
        self.status = target_status.value
        self.updated_at = now

        self.raise_(
            GroupOrderStatusChanged(
                group_order_id=str(self.id),
                from_status=previous,
                to_status=target_status.value,
                current_quantity=self.current_quantity,
                changed_at=now,
            )
        )

    def _apply_participants(self, participants, now):
        self.participants = participants
        self.current_quantity = sum(participants.values())
        self._reprice()
        self.updated_at = now

    # -------------------------------------------------------------------
    # Participation
    # -------------------------------------------------------------------
    def join(self, vendor_id, quantity, now=None):
        """Add ``quantity`` for ``vendor_id``, accumulating on repeat joins."""
        if quantity is None or quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        now = now or utcnow()
        status = GroupOrderStatus(self.status)
        if status != GroupOrderStatus.ACTIVE:
            raise OrderClosed(
                f"Group order is {status.value} and not accepting participants",
                status=status.value,
            )
        if as_utc(now) >= as_utc(self.deadline):
            raise DeadlinePassed("Group order deadline has passed", deadline=str(self.deadline))

        participants = dict(self.participants or {})
        vendor_key = str(vendor_id)
        if vendor_key not in participants and len(participants) >= self.max_participants:
            raise CapacityExceeded(
                f"Group order already has {self.max_participants} participants",
                max_participants=self.max_participants,
            )

        participants[vendor_key] = participants.get(vendor_key, 0) + quantity
        self._apply_participants(participants, now)

        self.raise_(
            ParticipantJoined(
                group_order_id=str(self.id),
                vendor_id=vendor_key,
                quantity=quantity,
                vendor_quantity=participants[vendor_key],
                current_quantity=self.current_quantity,
                price_per_unit=self.price_per_unit,
                estimated_savings=self.estimated_savings,
                joined_at=now,
            )
        )

        if self.current_quantity >= self.target_quantity:
            self._transition(GroupOrderStatus.TARGET_REACHED, now)

    def leave(self, vendor_id, now=None):
        """Withdraw the vendor's whole participation."""
        now = now or utcnow()
        status = GroupOrderStatus(self.status)
        if status not in _OPEN_FOR_PARTICIPATION:
            raise OrderLocked(
                f"Group order is {status.value}; participation can no longer change",
                status=status.value,
            )

        participants = dict(self.participants or {})
        vendor_key = str(vendor_id)
        if vendor_key not in participants:
            raise NotAParticipant(f"Vendor {vendor_key} is not a participant", vendor_id=vendor_key)

        withdrawn = participants.pop(vendor_key)
        self._apply_participants(participants, now)

        self.raise_(
            ParticipantLeft(
                group_order_id=str(self.id),
                vendor_id=vendor_key,
                withdrawn_quantity=withdrawn,
                current_quantity=self.current_quantity,
                price_per_unit=self.price_per_unit,
                estimated_savings=self.estimated_savings,
                left_at=now,
            )
        )

        if status == GroupOrderStatus.TARGET_REACHED and self.current_quantity < self.target_quantity:
            self._transition(GroupOrderStatus.ACTIVE, now)

    # -------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------
    @property
    def conversation(self) -> list[ChatMessage]:
        """Chat messages, oldest first."""
        return sorted(self.chat_messages or [], key=lambda chat_message: as_utc(chat_message.sent_at))

    def post_message(self, sender_id, message, now=None) -> ChatMessage:
        """Append a chat message from the creator or a current participant."""
        text = (message or "").strip()
        if not text:
            raise ValidationError({"message": ["Message cannot be empty"]})

        now = now or utcnow()
        if self.status == GroupOrderStatus.CANCELLED.value:
            raise OrderClosed("Group order is cancelled; its chat is closed", status=self.status)

        sender_key = str(sender_id)
        if sender_key != str(self.creator_id) and sender_key not in (self.participants or {}):
            raise NotAParticipant(f"Vendor {sender_key} is not a participant", vendor_id=sender_key)

        chat_message = ChatMessage(sender_id=sender_key, message=text, sent_at=now)
        self.add_chat_messages(chat_message)
        self.updated_at = now

        self.raise_(
            ChatMessagePosted(
                group_order_id=str(self.id),
                message_id=str(chat_message.id),
                sender_id=sender_key,
                message=text,
                sent_at=now,
            )
        )
        return chat_message

    # -------------------------------------------------------------------
    # Explicit lifecycle transitions
    # -------------------------------------------------------------------
    def place_order(self, now=None):
        """Lock the participant list and place the pooled order."""
        now = now or utcnow()
        self._assert_can_transition(GroupOrderStatus.ORDERED)
        if self.current_quantity < self.target_quantity:
            raise InvalidStateTransition(
                "Cannot place an order below the target quantity",
                current_quantity=self.current_quantity,
                target_quantity=self.target_quantity,
            )

        self._transition(GroupOrderStatus.ORDERED, now)
        self.order_placed_at = now

        self.raise_(
            GroupOrderPlaced(
                group_order_id=str(self.id),
                participants=json.dumps(self.participants or {}),
                current_quantity=self.current_quantity,
                price_per_unit=self.price_per_unit,
                placed_at=now,
            )
        )

    def confirm_delivery(self, now=None):
        now = now or utcnow()
        self._transition(GroupOrderStatus.DELIVERED, now)
        self.delivered_at = now

        self.raise_(
            GroupOrderDelivered(
                group_order_id=str(self.id),
                delivered_at=now,
            )
        )

    def cancel(self, reason, cancelled_by, now=None):
        now = now or utcnow()
        self._transition(GroupOrderStatus.CANCELLED, now)
        self.cancelled_at = now
        self.cancellation_reason = reason
        self.cancelled_by = str(cancelled_by)

        self.raise_(
            GroupOrderCancelled(
                group_order_id=str(self.id),
                reason=reason,
                cancelled_by=str(cancelled_by),
                cancelled_at=now,
            )
        )

    def transition_to(self, target_status, now=None, **kwargs):
        """Request an explicit status change by target status.

        Only ORDERED, DELIVERED and CANCELLED can be requested; ACTIVE and
        TARGET_REACHED follow quantity and are never set directly.
        """
        target_status = GroupOrderStatus(target_status)
        if target_status in _QUANTITY_DRIVEN:
            raise InvalidStateTransition(
                f"Cannot transition from {self.status} to {target_status.value}",
                from_status=self.status,
                to_status=target_status.value,
            )
        if target_status == GroupOrderStatus.ORDERED:
            self.place_order(now=now)
        elif target_status == GroupOrderStatus.DELIVERED:
            self.confirm_delivery(now=now)
        else:
            self.cancel(
                reason=kwargs.get("reason", "Cancelled"),
                cancelled_by=kwargs.get("cancelled_by", self.creator_id),
                now=now,
            )

    def is_overdue(self, now: datetime) -> bool:
        """An active group order whose deadline has passed."""
        return self.status == GroupOrderStatus.ACTIVE.value and as_utc(now) >= as_utc(self.deadline)

    def expire(self, now=None) -> bool:
        """Cancel the group order if it is still active past its deadline.

        Returns whether the group order was cancelled. Orders that reached
        their target are left for the supplier to place or cancel.
        """
        now = now or utcnow()
        if not self.is_overdue(now):
            return False
        self.cancel(reason="Deadline passed", cancelled_by="system", now=now)
        return True
