"""Tests for GroupOrder status transitions."""

from datetime import timedelta

import pytest
from group_buying.exceptions import InvalidStateTransition
from group_buying.group_order.events import GroupOrderCancelled, GroupOrderDelivered, GroupOrderPlaced
from group_buying.group_order.group_order import GroupOrder, GroupOrderStatus


@pytest.fixture()
def group_order(now, deadline):
    group_order = GroupOrder.create(
        creator_id="supplier-001",
        title="Lentils, 50kg",
        target_quantity=5,
        base_price=10.0,
        deadline=deadline,
        now=now,
    )
    group_order._events.clear()
    return group_order


@pytest.fixture()
def placed(group_order, now):
    group_order.join("vendor-1", 5, now=now)
    group_order.place_order(now=now)
    group_order._events.clear()
    return group_order


class TestPlaceOrder:
    def test_place_from_target_reached(self, group_order, now):
        group_order.join("vendor-1", 5, now=now)
        group_order.place_order(now=now)
        assert group_order.status == GroupOrderStatus.ORDERED.value
        assert group_order.order_placed_at == now

    def test_place_raises_placed_event_with_participants(self, group_order, now):
        group_order.join("vendor-1", 3, now=now)
        group_order.join("vendor-2", 2, now=now)
        group_order.place_order(now=now)
        event = next(e for e in group_order._events if isinstance(e, GroupOrderPlaced))
        assert '"vendor-1": 3' in event.participants

    def test_place_from_active_is_rejected(self, group_order, now):
        group_order.join("vendor-1", 2, now=now)
        with pytest.raises(InvalidStateTransition):
            group_order.place_order(now=now)
        assert group_order.status == GroupOrderStatus.ACTIVE.value


class TestDelivery:
    def test_deliver_from_ordered(self, placed, now):
        placed.confirm_delivery(now=now)
        assert placed.status == GroupOrderStatus.DELIVERED.value
        assert placed.delivered_at == now
        assert isinstance(placed._events[-1], GroupOrderDelivered)

    def test_deliver_from_active_is_rejected(self, group_order, now):
        with pytest.raises(InvalidStateTransition):
            group_order.confirm_delivery(now=now)


class TestCancel:
    def test_cancel_active(self, group_order, now):
        group_order.cancel(reason="Supplier out of stock", cancelled_by="supplier-001", now=now)
        assert group_order.status == GroupOrderStatus.CANCELLED.value
        assert group_order.cancellation_reason == "Supplier out of stock"
        assert group_order.cancelled_by == "supplier-001"
        assert isinstance(group_order._events[-1], GroupOrderCancelled)

    def test_cancel_target_reached(self, group_order, now):
        group_order.join("vendor-1", 5, now=now)
        group_order.cancel(reason="Price changed", cancelled_by="supplier-001", now=now)
        assert group_order.status == GroupOrderStatus.CANCELLED.value

    def test_cancel_ordered_is_rejected(self, placed, now):
        with pytest.raises(InvalidStateTransition):
            placed.cancel(reason="Too late", cancelled_by="supplier-001", now=now)
        assert placed.status == GroupOrderStatus.ORDERED.value


class TestTerminalStates:
    @pytest.mark.parametrize("target", ["active", "target_reached", "ordered", "delivered", "cancelled"])
    def test_delivered_is_terminal(self, placed, now, target):
        placed.confirm_delivery(now=now)
        with pytest.raises(InvalidStateTransition):
            placed.transition_to(target, now=now)
        assert placed.status == GroupOrderStatus.DELIVERED.value

    @pytest.mark.parametrize("target", ["active", "target_reached", "ordered", "delivered", "cancelled"])
    def test_cancelled_is_terminal(self, group_order, now, target):
        group_order.cancel(reason="Withdrawn", cancelled_by="supplier-001", now=now)
        with pytest.raises(InvalidStateTransition):
            group_order.transition_to(target, now=now)
        assert group_order.status == GroupOrderStatus.CANCELLED.value


class TestTransitionTo:
    def test_ordered_cannot_go_back_to_active(self, placed, now):
        with pytest.raises(InvalidStateTransition):
            placed.transition_to("active", now=now)
        assert placed.status == GroupOrderStatus.ORDERED.value

    @pytest.mark.parametrize("target", ["active", "target_reached"])
    def test_quantity_driven_states_cannot_be_requested(self, group_order, now, target):
        with pytest.raises(InvalidStateTransition):
            group_order.transition_to(target, now=now)

    def test_transition_to_cancelled_records_reason(self, group_order, now):
        group_order.transition_to("cancelled", now=now, reason="Duplicate listing", cancelled_by="admin")
        assert group_order.cancellation_reason == "Duplicate listing"
        assert group_order.cancelled_by == "admin"

    def test_transition_to_unknown_status_is_rejected(self, group_order, now):
        with pytest.raises(ValueError):
            group_order.transition_to("shipped", now=now)


class TestExpiry:
    def test_active_past_deadline_is_overdue(self, group_order, deadline):
        assert group_order.is_overdue(deadline + timedelta(minutes=1))

    def test_active_before_deadline_is_not_overdue(self, group_order, now):
        assert not group_order.is_overdue(now)

    def test_expire_cancels_as_system(self, group_order, deadline):
        assert group_order.expire(now=deadline + timedelta(hours=1)) is True
        assert group_order.status == GroupOrderStatus.CANCELLED.value
        assert group_order.cancellation_reason == "Deadline passed"
        assert group_order.cancelled_by == "system"

    def test_expire_leaves_target_reached_alone(self, group_order, now, deadline):
        group_order.join("vendor-1", 5, now=now)
        assert group_order.expire(now=deadline + timedelta(hours=1)) is False
        assert group_order.status == GroupOrderStatus.TARGET_REACHED.value
