"""Shared BDD fixtures and step definitions for the Group Buying domain."""

import pytest
from group_buying.exceptions import GroupBuyingError
from group_buying.group_order.events import GroupOrderStatusChanged
from group_buying.group_order.group_order import GroupOrder
from pytest_bdd import given, parsers, then, when

# Map event name strings to classes for dynamic lookup
_EVENT_CLASSES = {
    "GroupOrderStatusChanged": GroupOrderStatusChanged,
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------
@pytest.fixture()
def error():
    """Container for captured domain errors."""
    return {"exc": None}


def _attempt(error, action):
    try:
        action()
    except GroupBuyingError as exc:
        error["exc"] = exc


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse("an active group order with target quantity {target:d} and a cap of {cap:d} participants"),
    target_fixture="group_order",
)
def active_group_order(target, cap, now, deadline):
    group_order = GroupOrder.create(
        creator_id="supplier-001",
        title="Wheat flour, 10kg",
        target_quantity=target,
        max_participants=cap,
        base_price=12.0,
        deadline=deadline,
        now=now,
    )
    group_order._events.clear()
    return group_order


@given(parsers.cfparse('vendor "{vendor_id}" has joined with quantity {quantity:d}'))
def vendor_has_joined(group_order, vendor_id, quantity, now):
    group_order.join(vendor_id, quantity, now=now)
    group_order._events.clear()


@given("the supplier has placed the order")
def supplier_has_placed(group_order, now):
    group_order.place_order(now=now)
    group_order._events.clear()


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('vendor "{vendor_id}" joins with quantity {quantity:d}'))
def vendor_joins(group_order, vendor_id, quantity, now, error):
    _attempt(error, lambda: group_order.join(vendor_id, quantity, now=now))


@when(parsers.cfparse('vendor "{vendor_id}" leaves'))
def vendor_leaves(group_order, vendor_id, now, error):
    _attempt(error, lambda: group_order.leave(vendor_id, now=now))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the group order status is "{status}"'))
def status_is(group_order, status):
    assert group_order.status == status


@then(parsers.cfparse("the current quantity is {quantity:d}"))
def current_quantity_is(group_order, quantity):
    assert group_order.current_quantity == quantity
    assert sum((group_order.participants or {}).values()) == quantity


@then(parsers.cfparse('the action fails with "{error_name}"'))
def action_fails(error, error_name):
    assert error["exc"] is not None
    assert error["exc"].code == error_name


@then(parsers.cfparse("a {event_type} event is raised"))
def event_raised(group_order, event_type):
    event_cls = _EVENT_CLASSES[event_type]
    assert any(isinstance(e, event_cls) for e in group_order._events)
