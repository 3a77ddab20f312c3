import pytest
from group_buying.group_order.aggregator import GroupOrderAggregator
from group_buying.order.factory import OrderFactory


@pytest.fixture()
def order_factory(clock):
    return OrderFactory(clock=clock)


@pytest.fixture()
def aggregator(publisher, order_factory, clock):
    return GroupOrderAggregator(publisher=publisher, order_factory=order_factory, clock=clock)


@pytest.fixture()
def create_group_order(aggregator, deadline, tiers):
    """Factory for persisted group orders with sensible defaults."""

    def _create(**overrides):
        values = {
            "creator_id": "supplier-001",
            "title": "Basmati rice, 25kg sacks",
            "target_quantity": 100,
            "base_price": 40.0,
            "deadline": deadline,
            "bulk_discounts": tiers,
        }
        values.update(overrides)
        return aggregator.create(**values)

    return _create
