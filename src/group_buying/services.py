"""Process-wide service instances used by the API layer.

Follows the same get/set/reset pattern as the publisher factory so tests can
swap in services built with fakes or custom clocks.
"""

from group_buying.group_order.aggregator import GroupOrderAggregator
from group_buying.order.factory import OrderFactory
from group_buying.order.lifecycle import OrderLifecycle

_aggregator: GroupOrderAggregator | None = None
_order_factory: OrderFactory | None = None
_order_lifecycle: OrderLifecycle | None = None


def get_order_factory() -> OrderFactory:
    global _order_factory
    if _order_factory is None:
        _order_factory = OrderFactory()
    return _order_factory


def get_aggregator() -> GroupOrderAggregator:
    global _aggregator
    if _aggregator is None:
        _aggregator = GroupOrderAggregator(order_factory=get_order_factory())
    return _aggregator


def get_order_lifecycle() -> OrderLifecycle:
    global _order_lifecycle
    if _order_lifecycle is None:
        _order_lifecycle = OrderLifecycle()
    return _order_lifecycle


def set_aggregator(aggregator: GroupOrderAggregator) -> None:
    """Override the active aggregator (useful for tests)."""
    global _aggregator
    _aggregator = aggregator


def reset_services() -> None:
    global _aggregator, _order_factory, _order_lifecycle
    _aggregator = None
    _order_factory = None
    _order_lifecycle = None
