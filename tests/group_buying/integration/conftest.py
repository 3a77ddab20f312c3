import pytest
from group_buying.order.factory import OrderFactory


@pytest.fixture()
def order_factory(clock):
    return OrderFactory(clock=clock)
