"""Application tests for placing, delivering, cancelling and generic transitions."""

import pytest
from group_buying.exceptions import InvalidStateTransition, OrderLocked
from group_buying.group_order.group_order import GroupOrderStatus
from group_buying.order.order import Order, OrderType
from protean import current_domain
from protean.exceptions import ValidationError


@pytest.fixture()
def reached(aggregator, create_group_order):
    group_order = create_group_order(target_quantity=100)
    aggregator.join(group_order.id, "vendor-a", 60)
    aggregator.join(group_order.id, "vendor-b", 40)
    return group_order


class TestPlaceOrder:
    def test_place_creates_one_order_per_participant(self, aggregator, reached):
        result = aggregator.place_order(reached.id)

        assert result.succeeded
        assert aggregator.get(reached.id).status == GroupOrderStatus.ORDERED.value

        orders = current_domain.repository_for(Order).find_by_group_order(reached.id)
        assert {str(order.vendor_id) for order in orders} == {"vendor-a", "vendor-b"}
        assert all(order.order_type == OrderType.GROUP.value for order in orders)

    def test_orders_are_priced_at_the_bulk_tier(self, aggregator, reached):
        result = aggregator.place_order(reached.id)

        by_vendor = {str(order.vendor_id): order for order in result.orders}
        vendor_a = by_vendor["vendor-a"]
        assert vendor_a.final_amount == 2112.0  # 60 x 35.20
        assert vendor_a.discount_amount == 288.0  # 60 x 4.80
        assert vendor_a.total_amount == 2400.0
        assert str(vendor_a.supplier_id) == "supplier-001"

    def test_order_numbers_use_the_placement_date(self, aggregator, reached):
        result = aggregator.place_order(reached.id)
        assert sorted(result.order_numbers) == ["VC202405010001", "VC202405010002"]

    def test_place_publishes_status_change_and_order_placed(self, aggregator, reached, publisher):
        result = aggregator.place_order(reached.id)

        events = publisher.events_for(str(reached.id))
        assert events[-2:] == ["status_changed", "order_placed"]
        payload = publisher.published[-1]["payload"]
        assert payload["order_numbers"] == result.order_numbers
        assert payload["failed_vendors"] == []

    def test_place_below_target_is_rejected(self, aggregator, create_group_order):
        group_order = create_group_order(target_quantity=100)
        aggregator.join(group_order.id, "vendor-a", 10)
        with pytest.raises(InvalidStateTransition):
            aggregator.place_order(group_order.id)

    def test_participation_is_locked_after_placement(self, aggregator, reached):
        aggregator.place_order(reached.id)
        with pytest.raises(OrderLocked):
            aggregator.leave(reached.id, "vendor-a")


class TestDeliveryAndCancellation:
    def test_confirm_delivery(self, aggregator, reached, clock):
        aggregator.place_order(reached.id)
        clock.advance(days=2)

        delivered = aggregator.confirm_delivery(reached.id)
        assert delivered.status == GroupOrderStatus.DELIVERED.value
        assert delivered.delivered_at == clock()

    def test_cancel_records_reason(self, aggregator, create_group_order, publisher):
        group_order = create_group_order()
        cancelled = aggregator.cancel(group_order.id, reason="Supplier out of stock", cancelled_by="supplier-001")

        assert cancelled.status == GroupOrderStatus.CANCELLED.value
        assert cancelled.cancellation_reason == "Supplier out of stock"
        assert publisher.published[-1]["payload"]["to_status"] == "cancelled"

    def test_cancel_requires_reason(self, aggregator, create_group_order):
        group_order = create_group_order()
        with pytest.raises(ValidationError):
            aggregator.cancel(group_order.id, reason="", cancelled_by="supplier-001")

    def test_cancel_after_placement_is_rejected(self, aggregator, reached):
        aggregator.place_order(reached.id)
        with pytest.raises(InvalidStateTransition):
            aggregator.cancel(reached.id, reason="Changed mind", cancelled_by="supplier-001")
        assert aggregator.get(reached.id).status == GroupOrderStatus.ORDERED.value


class TestTransition:
    def test_transition_to_ordered_places_and_materializes(self, aggregator, reached):
        group_order = aggregator.transition(reached.id, "ordered")
        assert group_order.status == GroupOrderStatus.ORDERED.value
        assert len(current_domain.repository_for(Order).find_by_group_order(reached.id)) == 2

    def test_transition_to_cancelled(self, aggregator, create_group_order):
        group_order = create_group_order()
        cancelled = aggregator.transition(group_order.id, "cancelled", reason="Duplicate", cancelled_by="admin")
        assert cancelled.status == GroupOrderStatus.CANCELLED.value

    def test_quantity_driven_transition_is_rejected(self, aggregator, create_group_order):
        group_order = create_group_order()
        with pytest.raises(InvalidStateTransition):
            aggregator.transition(group_order.id, "target_reached")
