"""FastAPI routes for group orders and the orders they produce.

Handlers that write through the atomic store are plain ``def``: their lock
waits and retry backoff block, so FastAPI runs them in its threadpool
instead of on the event loop. Read-only handlers stay ``async``.
"""

from fastapi import APIRouter, Depends, Query
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from group_buying.api.schemas import (
    CancelGroupOrderRequest,
    CancelOrderRequest,
    ChatMessageListResponse,
    ChatMessageResponse,
    CreateGroupOrderRequest,
    CreateOrderRequest,
    ExpiredGroupOrdersResponse,
    ExpireGroupOrdersRequest,
    GroupOrderListResponse,
    GroupOrderResponse,
    JoinGroupOrderRequest,
    MaterializationResponse,
    OrderListResponse,
    OrderNotesRequest,
    OrderResponse,
    PaymentStatusRequest,
    PostMessageRequest,
    RematerializeRequest,
    ShipOrderRequest,
    TrackingUpdateRequest,
)
from group_buying.group_order.aggregator import GroupOrderAggregator
from group_buying.order.factory import MaterializationResult, OrderFactory
from group_buying.order.lifecycle import OrderLifecycle
from group_buying.order.order import Order
from group_buying.services import get_aggregator, get_order_factory, get_order_lifecycle


def _materialization_response(result: MaterializationResult) -> MaterializationResponse:
    return MaterializationResponse(
        group_order_id=result.group_order_id,
        order_numbers=result.order_numbers,
        failed=result.failed,
    )


def _order_list(orders) -> OrderListResponse:
    return OrderListResponse(orders=[OrderResponse.from_aggregate(order) for order in orders])


# ---------------------------------------------------------------------------
# Group Order Router
# ---------------------------------------------------------------------------
group_order_router = APIRouter(prefix="/group-orders", tags=["group-orders"])


@group_order_router.post("", status_code=201, response_model=GroupOrderResponse)
def create_group_order(
    body: CreateGroupOrderRequest,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> GroupOrderResponse:
    group_order = aggregator.create(
        creator_id=body.creator_id,
        title=body.title,
        target_quantity=body.target_quantity,
        base_price=body.base_price,
        deadline=body.deadline,
        bulk_discounts=[tier.model_dump() for tier in body.bulk_discounts],
        max_participants=body.max_participants,
        product_id=body.product_id,
        description=body.description,
        delivery_date=body.delivery_date,
        delivery_address=body.delivery_address,
        notes=body.notes,
    )
    return GroupOrderResponse.from_aggregate(group_order)


@group_order_router.get("", response_model=GroupOrderListResponse)
async def list_group_orders(
    participant: str | None = Query(default=None),
    status: str | None = Query(default=None),
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> GroupOrderListResponse:
    """Group orders a vendor takes part in and/or those in a given status."""
    group_orders = aggregator.find(participant=participant, status=status)
    return GroupOrderListResponse(
        group_orders=[GroupOrderResponse.from_aggregate(group_order) for group_order in group_orders]
    )


@group_order_router.post("/expire", response_model=ExpiredGroupOrdersResponse)
def expire_group_orders(
    body: ExpireGroupOrdersRequest,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> ExpiredGroupOrdersResponse:
    """Maintenance endpoint for an external scheduler (cron, K8s CronJob)."""
    expired = aggregator.expire_overdue(now=body.as_of)
    return ExpiredGroupOrdersResponse(expired=expired)


@group_order_router.get("/{group_order_id}", response_model=GroupOrderResponse)
async def get_group_order(
    group_order_id: str,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> GroupOrderResponse:
    return GroupOrderResponse.from_aggregate(aggregator.get(group_order_id))


@group_order_router.post("/{group_order_id}/participants", response_model=GroupOrderResponse)
def join_group_order(
    group_order_id: str,
    body: JoinGroupOrderRequest,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> GroupOrderResponse:
    group_order = aggregator.join(group_order_id, body.vendor_id, body.quantity)
    return GroupOrderResponse.from_aggregate(group_order)


@group_order_router.delete("/{group_order_id}/participants/{vendor_id}", response_model=GroupOrderResponse)
def leave_group_order(
    group_order_id: str,
    vendor_id: str,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> GroupOrderResponse:
    group_order = aggregator.leave(group_order_id, vendor_id)
    return GroupOrderResponse.from_aggregate(group_order)


@group_order_router.post("/{group_order_id}/messages", status_code=201, response_model=ChatMessageResponse)
def post_group_order_message(
    group_order_id: str,
    body: PostMessageRequest,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> ChatMessageResponse:
    chat_message = aggregator.post_message(group_order_id, body.sender_id, body.message)
    return ChatMessageResponse.from_entity(chat_message)


@group_order_router.get("/{group_order_id}/messages", response_model=ChatMessageListResponse)
async def get_group_order_messages(
    group_order_id: str,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> ChatMessageListResponse:
    group_order = aggregator.get(group_order_id)
    return ChatMessageListResponse(
        messages=[ChatMessageResponse.from_entity(chat_message) for chat_message in group_order.conversation]
    )


@group_order_router.put("/{group_order_id}/place", response_model=MaterializationResponse)
def place_group_order(
    group_order_id: str,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> MaterializationResponse:
    return _materialization_response(aggregator.place_order(group_order_id))


@group_order_router.get("/{group_order_id}/orders", response_model=OrderListResponse)
async def get_group_order_orders(
    group_order_id: str,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderListResponse:
    aggregator.get(group_order_id)
    return _order_list(lifecycle.orders_for_group_order(group_order_id))


@group_order_router.post("/{group_order_id}/orders", response_model=MaterializationResponse)
def rematerialize_orders(
    group_order_id: str,
    body: RematerializeRequest,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> MaterializationResponse:
    return _materialization_response(aggregator.rematerialize(group_order_id, vendor_ids=body.vendor_ids))


@group_order_router.put("/{group_order_id}/deliver", response_model=GroupOrderResponse)
def deliver_group_order(
    group_order_id: str,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> GroupOrderResponse:
    return GroupOrderResponse.from_aggregate(aggregator.confirm_delivery(group_order_id))


@group_order_router.put("/{group_order_id}/cancel", response_model=GroupOrderResponse)
def cancel_group_order(
    group_order_id: str,
    body: CancelGroupOrderRequest,
    aggregator: GroupOrderAggregator = Depends(get_aggregator),
) -> GroupOrderResponse:
    group_order = aggregator.cancel(group_order_id, reason=body.reason, cancelled_by=body.cancelled_by)
    return GroupOrderResponse.from_aggregate(group_order)


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=OrderResponse)
def create_order(
    body: CreateOrderRequest,
    factory: OrderFactory = Depends(get_order_factory),
) -> OrderResponse:
    order = factory.create_individual(
        vendor_id=body.vendor_id,
        supplier_id=body.supplier_id,
        items=[item.model_dump() for item in body.items],
        payment_method=body.payment_method,
        delivery_address=body.delivery_address.model_dump() if body.delivery_address else None,
        vendor_notes=body.vendor_notes,
    )
    return OrderResponse.from_aggregate(order)


@order_router.get("", response_model=OrderListResponse)
async def list_vendor_orders(
    vendor_id: str = Query(min_length=1),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderListResponse:
    return _order_list(lifecycle.orders_for_vendor(vendor_id))


@order_router.get("/by-number/{order_number}", response_model=OrderResponse)
async def get_order_by_number(order_number: str) -> OrderResponse:
    order = current_domain.repository_for(Order).find_by_order_number(order_number)
    if order is None:
        raise ObjectNotFoundError(f"Order {order_number} does not exist")
    return OrderResponse.from_aggregate(order)


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: str,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    return OrderResponse.from_aggregate(lifecycle.get(order_id))


@order_router.put("/{order_id}/confirm", response_model=OrderResponse)
def confirm_order(
    order_id: str,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    return OrderResponse.from_aggregate(lifecycle.confirm(order_id))


@order_router.put("/{order_id}/process", response_model=OrderResponse)
def process_order(
    order_id: str,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    return OrderResponse.from_aggregate(lifecycle.start_processing(order_id))


@order_router.put("/{order_id}/ship", response_model=OrderResponse)
def ship_order(
    order_id: str,
    body: ShipOrderRequest,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    order = lifecycle.ship(
        order_id,
        tracking_number=body.tracking_number,
        carrier=body.carrier,
        expected_delivery_date=body.expected_delivery_date,
    )
    return OrderResponse.from_aggregate(order)


@order_router.post("/{order_id}/tracking", response_model=OrderResponse)
def add_tracking_update(
    order_id: str,
    body: TrackingUpdateRequest,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    order = lifecycle.add_tracking_update(order_id, body.status, message=body.message, location=body.location)
    return OrderResponse.from_aggregate(order)


@order_router.put("/{order_id}/notes", response_model=OrderResponse)
def update_order_notes(
    order_id: str,
    body: OrderNotesRequest,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    order = lifecycle.update_notes(
        order_id,
        vendor_notes=body.vendor_notes,
        supplier_notes=body.supplier_notes,
        delivery_notes=body.delivery_notes,
    )
    return OrderResponse.from_aggregate(order)


@order_router.put("/{order_id}/deliver", response_model=OrderResponse)
def deliver_order(
    order_id: str,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    return OrderResponse.from_aggregate(lifecycle.deliver(order_id))


@order_router.put("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: str,
    body: CancelOrderRequest,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    return OrderResponse.from_aggregate(lifecycle.cancel(order_id, body.reason))


@order_router.put("/{order_id}/payment-status", response_model=OrderResponse)
def update_payment_status(
    order_id: str,
    body: PaymentStatusRequest,
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
) -> OrderResponse:
    return OrderResponse.from_aggregate(lifecycle.update_payment_status(order_id, body.payment_status))
