"""Application tests for joining and leaving through GroupOrderAggregator."""

import pytest
from group_buying.exceptions import CapacityExceeded, DeadlinePassed, NotAParticipant, OrderClosed
from group_buying.group_order.group_order import GroupOrder, GroupOrderStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError


class TestCreate:
    def test_create_persists_group_order(self, create_group_order):
        group_order = create_group_order()
        stored = current_domain.repository_for(GroupOrder).get(group_order.id)
        assert stored.title == "Basmati rice, 25kg sacks"
        assert stored.status == GroupOrderStatus.ACTIVE.value

    def test_get_unknown_group_order(self, aggregator):
        with pytest.raises(ObjectNotFoundError):
            aggregator.get("does-not-exist")


class TestJoin:
    def test_join_persists_participant(self, aggregator, create_group_order):
        group_order = create_group_order()
        aggregator.join(group_order.id, "vendor-1", 30)

        stored = aggregator.get(group_order.id)
        assert stored.participants == {"vendor-1": 30}
        assert stored.current_quantity == 30

    def test_repeat_join_accumulates(self, aggregator, create_group_order):
        group_order = create_group_order()
        aggregator.join(group_order.id, "vendor-1", 30)
        aggregator.join(group_order.id, "vendor-1", 25)

        stored = aggregator.get(group_order.id)
        assert stored.participants == {"vendor-1": 55}
        assert stored.price_per_unit == 38.0

    def test_join_publishes_participant_joined(self, aggregator, create_group_order, publisher):
        group_order = create_group_order()
        aggregator.join(group_order.id, "vendor-1", 10)

        record = publisher.published[-1]
        assert record["channel"] == str(group_order.id)
        assert record["event"] == "participant_joined"
        assert record["payload"]["vendor_id"] == "vendor-1"
        assert record["payload"]["current_quantity"] == 10

    def test_reaching_target_publishes_status_change(self, aggregator, create_group_order, publisher):
        group_order = create_group_order(target_quantity=20)
        aggregator.join(group_order.id, "vendor-1", 20)

        assert publisher.events_for(str(group_order.id)) == ["participant_joined", "status_changed"]
        status_change = publisher.published[-1]["payload"]
        assert status_change["from_status"] == "active"
        assert status_change["to_status"] == "target_reached"

    def test_subscribers_receive_notifications(self, aggregator, create_group_order, publisher):
        group_order = create_group_order()
        received = []
        publisher.subscribe(str(group_order.id), lambda event, payload: received.append(event))

        aggregator.join(group_order.id, "vendor-1", 1)
        assert received == ["participant_joined"]

    @pytest.mark.parametrize("vendor_id", ["", "   ", None])
    def test_blank_vendor_is_rejected(self, aggregator, create_group_order, vendor_id):
        group_order = create_group_order()
        with pytest.raises(ValidationError):
            aggregator.join(group_order.id, vendor_id, 1)

    @pytest.mark.parametrize("quantity", [0, -1, 2.5, True])
    def test_invalid_quantity_is_rejected(self, aggregator, create_group_order, publisher, quantity):
        group_order = create_group_order()
        with pytest.raises(ValidationError):
            aggregator.join(group_order.id, "vendor-1", quantity)
        assert publisher.published == []

    def test_rejected_join_leaves_record_unchanged(self, aggregator, create_group_order, clock):
        group_order = create_group_order(target_quantity=5)
        aggregator.join(group_order.id, "vendor-1", 5)

        with pytest.raises(OrderClosed):
            aggregator.join(group_order.id, "vendor-2", 1)

        stored = aggregator.get(group_order.id)
        assert stored.participants == {"vendor-1": 5}
        assert stored.status == GroupOrderStatus.TARGET_REACHED.value

    def test_join_after_deadline(self, aggregator, create_group_order, clock):
        group_order = create_group_order()
        clock.advance(days=4)
        with pytest.raises(DeadlinePassed):
            aggregator.join(group_order.id, "vendor-1", 1)

    def test_join_beyond_cap(self, aggregator, create_group_order):
        group_order = create_group_order(max_participants=2)
        aggregator.join(group_order.id, "vendor-1", 1)
        aggregator.join(group_order.id, "vendor-2", 1)
        with pytest.raises(CapacityExceeded):
            aggregator.join(group_order.id, "vendor-3", 1)

    def test_join_unknown_group_order(self, aggregator):
        with pytest.raises(ObjectNotFoundError):
            aggregator.join("does-not-exist", "vendor-1", 1)


class TestLeave:
    def test_leave_removes_participant(self, aggregator, create_group_order, publisher):
        group_order = create_group_order()
        aggregator.join(group_order.id, "vendor-1", 10)
        aggregator.join(group_order.id, "vendor-2", 5)

        aggregator.leave(group_order.id, "vendor-1")

        stored = aggregator.get(group_order.id)
        assert stored.participants == {"vendor-2": 5}
        assert stored.current_quantity == 5
        assert publisher.published[-1]["event"] == "participant_left"
        assert publisher.published[-1]["payload"]["withdrawn_quantity"] == 10

    def test_leave_below_target_reopens(self, aggregator, create_group_order, publisher):
        group_order = create_group_order(target_quantity=10)
        aggregator.join(group_order.id, "vendor-1", 4)
        aggregator.join(group_order.id, "vendor-2", 6)

        aggregator.leave(group_order.id, "vendor-2")

        assert aggregator.get(group_order.id).status == GroupOrderStatus.ACTIVE.value
        assert publisher.events_for(str(group_order.id))[-2:] == ["participant_left", "status_changed"]

    def test_non_participant_cannot_leave(self, aggregator, create_group_order):
        group_order = create_group_order()
        with pytest.raises(NotAParticipant):
            aggregator.leave(group_order.id, "vendor-1")


class TestPublishFailures:
    def test_failed_publish_does_not_undo_join(self, aggregator, create_group_order, publisher):
        group_order = create_group_order()
        publisher.configure(should_succeed=False)

        returned = aggregator.join(group_order.id, "vendor-1", 3)

        assert returned.current_quantity == 3
        assert aggregator.get(group_order.id).participants == {"vendor-1": 3}
        assert publisher.published == []
