"""GroupOrderAggregator — application service for group-order participation.

Every join, leave and lifecycle transition follows the same path:

1. Validate the request (no store interaction on malformed input).
2. Run the aggregate method inside ``GroupOrderStore.atomic_update`` so the
   read-modify-write of participants, quantity and status is one unit per
   group order.
3. After the commit, and outside any lock, publish notifications to the
   group order's channel. Publishing is fire-and-forget: a failure is logged
   and never undoes the committed change.
"""

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from group_buying.exceptions import UpdateConflict
from group_buying.group_order.group_order import GroupOrder, GroupOrderStatus
from group_buying.order.factory import MaterializationResult, OrderFactory
from group_buying.publisher import get_publisher
from group_buying.publisher.port import NotificationEvent, NotificationPublisher
from group_buying.store import AtomicStore
from group_buying.utils.clock import as_utc, utcnow

logger = structlog.get_logger(__name__)


class GroupOrderStore(AtomicStore):
    """Atomic-update store for GroupOrder records."""

    def __init__(self, **kwargs):
        super().__init__(GroupOrder, **kwargs)


def _require_vendor(vendor_id) -> str:
    vendor_key = str(vendor_id).strip() if vendor_id is not None else ""
    if not vendor_key:
        raise ValidationError({"vendor_id": ["Vendor id is required"]})
    return vendor_key


def _require_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError({"quantity": ["Quantity must be a whole number of at least 1"]})
    return quantity


class _StatusWatch:
    """Records the status before and after a mutation attempt."""

    def __init__(self):
        self.before = None
        self.after = None

    def wrap(self, action):
        def mutation(group_order):
            self.before = group_order.status
            action(group_order)
            self.after = group_order.status

        return mutation

    @property
    def changed(self) -> bool:
        return self.before != self.after


class GroupOrderAggregator:
    def __init__(
        self,
        store: GroupOrderStore | None = None,
        publisher: NotificationPublisher | None = None,
        order_factory: OrderFactory | None = None,
        clock=None,
    ):
        self.store = store or GroupOrderStore()
        self._publisher = publisher
        self.order_factory = order_factory or OrderFactory()
        self.clock = clock or utcnow

    @property
    def publisher(self) -> NotificationPublisher:
        return self._publisher or get_publisher()

    # -------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------
    def _publish(self, group_order, event: NotificationEvent, **payload):
        channel = str(group_order.id)
        body = {
            "group_order_id": channel,
            "status": group_order.status,
            "current_quantity": group_order.current_quantity,
            "target_quantity": group_order.target_quantity,
            "participant_count": len(group_order.participants or {}),
            "price_per_unit": group_order.price_per_unit,
            "estimated_savings": group_order.estimated_savings,
            **payload,
        }
        try:
            self.publisher.publish(channel, event.value, body)
        except Exception as exc:
            logger.warning(
                "Notification publish failed",
                group_order_id=channel,
                notification=event.value,
                error=str(exc),
            )

    def _publish_status_change(self, group_order, watch: _StatusWatch):
        if watch.changed:
            self._publish(
                group_order,
                NotificationEvent.STATUS_CHANGED,
                from_status=watch.before,
                to_status=watch.after,
            )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def get(self, group_order_id) -> GroupOrder:
        return self.store.get(group_order_id)

    def find(self, participant=None, status=None) -> list[GroupOrder]:
        """Group orders a vendor takes part in, or all in one status, or both."""
        if participant is None and status is None:
            raise ValidationError({"query": ["Filter by participant, status or both"]})
        if status is not None:
            try:
                status = GroupOrderStatus(status)
            except ValueError as exc:
                raise ValidationError({"status": [f"Unknown group order status: {status}"]}) from exc

        repository = current_domain.repository_for(GroupOrder)
        if participant is not None:
            group_orders = repository.find_by_participant(_require_vendor(participant))
            if status is not None:
                group_orders = [group_order for group_order in group_orders if group_order.status == status.value]
        else:
            group_orders = repository.find_by_status(status)
        return sorted(group_orders, key=lambda group_order: as_utc(group_order.deadline))

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def create(self, creator_id, title, target_quantity, base_price, deadline, **details) -> GroupOrder:
        group_order = GroupOrder.create(
            creator_id=creator_id,
            title=title,
            target_quantity=target_quantity,
            base_price=base_price,
            deadline=deadline,
            now=self.clock(),
            **details,
        )
        self.store.create(group_order)
        logger.info(
            "Group order created",
            group_order_id=str(group_order.id),
            creator_id=str(creator_id),
            target_quantity=target_quantity,
        )
        return group_order

    # -------------------------------------------------------------------
    # Participation
    # -------------------------------------------------------------------
    def join(self, group_order_id, vendor_id, quantity) -> GroupOrder:
        vendor_key = _require_vendor(vendor_id)
        quantity = _require_quantity(quantity)
        now = self.clock()

        watch = _StatusWatch()
        group_order = self.store.atomic_update(
            group_order_id,
            watch.wrap(lambda record: record.join(vendor_key, quantity, now=now)),
        )
        logger.info(
            "Participant joined",
            group_order_id=str(group_order.id),
            vendor_id=vendor_key,
            quantity=quantity,
            current_quantity=group_order.current_quantity,
        )

        self._publish(
            group_order,
            NotificationEvent.PARTICIPANT_JOINED,
            vendor_id=vendor_key,
            quantity=quantity,
            vendor_quantity=group_order.quantity_for(vendor_key),
        )
        self._publish_status_change(group_order, watch)
        return group_order

    def leave(self, group_order_id, vendor_id) -> GroupOrder:
        vendor_key = _require_vendor(vendor_id)
        now = self.clock()

        withdrawn = {}

        def action(record):
            withdrawn["quantity"] = record.quantity_for(vendor_key)
            record.leave(vendor_key, now=now)

        watch = _StatusWatch()
        group_order = self.store.atomic_update(group_order_id, watch.wrap(action))
        logger.info(
            "Participant left",
            group_order_id=str(group_order.id),
            vendor_id=vendor_key,
            current_quantity=group_order.current_quantity,
        )

        self._publish(
            group_order,
            NotificationEvent.PARTICIPANT_LEFT,
            vendor_id=vendor_key,
            withdrawn_quantity=withdrawn["quantity"],
        )
        self._publish_status_change(group_order, watch)
        return group_order

    # -------------------------------------------------------------------
    # Chat
    # -------------------------------------------------------------------
    def post_message(self, group_order_id, sender_id, message):
        """Append a chat message and broadcast it on the group order's channel."""
        sender_key = _require_vendor(sender_id)
        now = self.clock()

        posted = {}

        def action(record):
            posted["message"] = record.post_message(sender_key, message, now=now)

        group_order = self.store.atomic_update(group_order_id, action)
        chat_message = posted["message"]
        logger.info(
            "Chat message posted",
            group_order_id=str(group_order.id),
            sender_id=sender_key,
            message_id=str(chat_message.id),
        )

        self._publish(
            group_order,
            NotificationEvent.CHAT_MESSAGE,
            message_id=str(chat_message.id),
            sender_id=sender_key,
            message=chat_message.message,
            sent_at=chat_message.sent_at.isoformat(),
        )
        return chat_message

    # -------------------------------------------------------------------
    # Lifecycle transitions
    # -------------------------------------------------------------------
    def place_order(self, group_order_id) -> MaterializationResult:
        """Move a target-reached group order to ORDERED and create its Orders."""
        now = self.clock()
        watch = _StatusWatch()
        group_order = self.store.atomic_update(
            group_order_id,
            watch.wrap(lambda record: record.place_order(now=now)),
        )
        logger.info(
            "Group order placed",
            group_order_id=str(group_order.id),
            current_quantity=group_order.current_quantity,
        )
        self._publish_status_change(group_order, watch)

        result = self.order_factory.materialize(group_order)
        self._publish(
            group_order,
            NotificationEvent.ORDER_PLACED,
            order_numbers=result.order_numbers,
            failed_vendors=sorted(result.failed),
        )
        return result

    def rematerialize(self, group_order_id, vendor_ids=None) -> MaterializationResult:
        """Retry Order creation, e.g. for the vendors that failed at placement."""
        group_order = self.store.get(group_order_id)
        return self.order_factory.materialize(group_order, vendor_ids=vendor_ids)

    def confirm_delivery(self, group_order_id) -> GroupOrder:
        now = self.clock()
        watch = _StatusWatch()
        group_order = self.store.atomic_update(
            group_order_id,
            watch.wrap(lambda record: record.confirm_delivery(now=now)),
        )
        logger.info("Group order delivered", group_order_id=str(group_order.id))
        self._publish_status_change(group_order, watch)
        return group_order

    def cancel(self, group_order_id, reason: str, cancelled_by) -> GroupOrder:
        if not reason:
            raise ValidationError({"reason": ["A cancellation reason is required"]})
        now = self.clock()
        watch = _StatusWatch()
        group_order = self.store.atomic_update(
            group_order_id,
            watch.wrap(lambda record: record.cancel(reason=reason, cancelled_by=cancelled_by, now=now)),
        )
        logger.info(
            "Group order cancelled",
            group_order_id=str(group_order.id),
            reason=reason,
            cancelled_by=str(cancelled_by),
        )
        self._publish_status_change(group_order, watch)
        return group_order

    def transition(self, group_order_id, target_status, **kwargs) -> GroupOrder:
        """Request a status change by name; illegal edges raise InvalidStateTransition."""
        target = GroupOrderStatus(target_status)
        if target == GroupOrderStatus.ORDERED:
            self.place_order(group_order_id)
            return self.store.get(group_order_id)

        now = self.clock()
        watch = _StatusWatch()
        group_order = self.store.atomic_update(
            group_order_id,
            watch.wrap(lambda record: record.transition_to(target, now=now, **kwargs)),
        )
        self._publish_status_change(group_order, watch)
        return group_order

    # -------------------------------------------------------------------
    # Maintenance
    # -------------------------------------------------------------------
    def expire_overdue(self, now=None) -> list[str]:
        """Cancel active group orders whose deadline has passed.

        Designed to be triggered periodically by an external scheduler. Each
        candidate is re-checked under its own lock, so a concurrent join that
        reached the target first keeps the order alive.

        Returns the ids of the group orders that were cancelled.
        """
        now = now or self.clock()
        candidates = current_domain.repository_for(GroupOrder).find_overdue(now)
        if not candidates:
            logger.info("No overdue group orders found")
            return []

        expired = []
        for candidate in candidates:
            watch = _StatusWatch()
            try:
                group_order = self.store.atomic_update(
                    candidate.id,
                    watch.wrap(lambda record: record.expire(now=now)),
                )
            except UpdateConflict as exc:
                logger.warning(
                    "Failed to expire group order",
                    group_order_id=str(candidate.id),
                    error=str(exc),
                )
                continue

            if watch.changed:
                expired.append(str(group_order.id))
                logger.info(
                    "Expired overdue group order",
                    group_order_id=str(group_order.id),
                    current_quantity=group_order.current_quantity,
                    target_quantity=group_order.target_quantity,
                )
                self._publish_status_change(group_order, watch)

        logger.info("Overdue group order sweep complete", expired_count=len(expired))
        return expired
