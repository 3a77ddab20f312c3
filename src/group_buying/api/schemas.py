"""Pydantic request/response schemas for the Group Buying API.

These are external contracts (anti-corruption layer), kept separate from the
Protean aggregates they are built from.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class DiscountTierSchema(BaseModel):
    min_quantity: int = Field(ge=1)
    discount_percentage: float = Field(ge=0, le=100)


class OrderItemSchema(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)
    unit_price: float = Field(ge=0)
    discount_applied: float = Field(ge=0, default=0.0)


class DeliveryAddressSchema(BaseModel):
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: str | None = None
    pincode: str = Field(min_length=1, max_length=10)
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)


# ---------------------------------------------------------------------------
# Group order requests
# ---------------------------------------------------------------------------
class CreateGroupOrderRequest(BaseModel):
    creator_id: str
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    product_id: str | None = None
    target_quantity: int = Field(ge=1)
    max_participants: int = Field(ge=1, default=50)
    base_price: float = Field(ge=0)
    bulk_discounts: list[DiscountTierSchema] = Field(default_factory=list)
    deadline: datetime
    delivery_date: datetime | None = None
    delivery_address: str | None = None
    notes: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "creator_id": "supplier-001",
                    "title": "Basmati rice, 25kg sacks",
                    "product_id": "prod-rice-25",
                    "target_quantity": 100,
                    "base_price": 40.0,
                    "bulk_discounts": [
                        {"min_quantity": 50, "discount_percentage": 5},
                        {"min_quantity": 100, "discount_percentage": 12},
                    ],
                    "deadline": "2030-05-01T18:00:00Z",
                }
            ]
        }
    }


class JoinGroupOrderRequest(BaseModel):
    vendor_id: str = Field(min_length=1)
    quantity: int = Field(ge=1)


class CancelGroupOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)
    cancelled_by: str


class RematerializeRequest(BaseModel):
    vendor_ids: list[str] | None = None


class ExpireGroupOrdersRequest(BaseModel):
    as_of: datetime | None = None


class PostMessageRequest(BaseModel):
    sender_id: str = Field(min_length=1)
    message: str = Field(min_length=1, max_length=1000)


# ---------------------------------------------------------------------------
# Order requests
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    vendor_id: str
    supplier_id: str
    items: list[OrderItemSchema] = Field(min_length=1)
    payment_method: str = "cash"
    delivery_address: DeliveryAddressSchema | None = None
    vendor_notes: str | None = None


class ShipOrderRequest(BaseModel):
    tracking_number: str | None = None
    carrier: str | None = None
    expected_delivery_date: datetime | None = None


class CancelOrderRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=500)


class PaymentStatusRequest(BaseModel):
    payment_status: str


class TrackingUpdateRequest(BaseModel):
    status: str = Field(min_length=1, max_length=100)
    message: str | None = Field(default=None, max_length=500)
    location: str | None = Field(default=None, max_length=200)


class OrderNotesRequest(BaseModel):
    vendor_notes: str | None = None
    supplier_notes: str | None = None
    delivery_notes: str | None = None


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class GroupOrderResponse(BaseModel):
    group_order_id: str
    title: str
    creator_id: str
    product_id: str | None = None
    status: str
    target_quantity: int
    current_quantity: int
    max_participants: int
    participants: dict[str, int]
    base_price: float
    price_per_unit: float
    estimated_savings: float
    progress_percentage: float
    deadline: datetime

    @classmethod
    def from_aggregate(cls, group_order) -> "GroupOrderResponse":
        return cls(
            group_order_id=str(group_order.id),
            title=group_order.title,
            creator_id=str(group_order.creator_id),
            product_id=str(group_order.product_id) if group_order.product_id else None,
            status=group_order.status,
            target_quantity=group_order.target_quantity,
            current_quantity=group_order.current_quantity,
            max_participants=group_order.max_participants,
            participants=dict(group_order.participants or {}),
            base_price=group_order.base_price,
            price_per_unit=group_order.price_per_unit,
            estimated_savings=group_order.estimated_savings,
            progress_percentage=group_order.progress_percentage,
            deadline=group_order.deadline,
        )


class GroupOrderListResponse(BaseModel):
    group_orders: list[GroupOrderResponse]


class ChatMessageResponse(BaseModel):
    message_id: str
    sender_id: str
    message: str
    sent_at: datetime

    @classmethod
    def from_entity(cls, chat_message) -> "ChatMessageResponse":
        return cls(
            message_id=str(chat_message.id),
            sender_id=str(chat_message.sender_id),
            message=chat_message.message,
            sent_at=chat_message.sent_at,
        )


class ChatMessageListResponse(BaseModel):
    messages: list[ChatMessageResponse]


class TrackingUpdateResponse(BaseModel):
    status: str
    message: str | None = None
    location: str | None = None
    recorded_at: datetime


class OrderResponse(BaseModel):
    order_id: str
    order_number: str
    order_type: str
    vendor_id: str
    supplier_id: str
    group_order_id: str | None = None
    status: str
    payment_status: str
    total_amount: float
    discount_amount: float
    final_amount: float
    delivery_address: DeliveryAddressSchema | None = None
    vendor_notes: str | None = None
    supplier_notes: str | None = None
    delivery_notes: str | None = None
    tracking_number: str | None = None
    carrier: str | None = None
    tracking_updates: list[TrackingUpdateResponse] = []

    @classmethod
    def from_aggregate(cls, order) -> "OrderResponse":
        address = order.delivery_address
        return cls(
            order_id=str(order.id),
            order_number=order.order_number,
            order_type=order.order_type,
            vendor_id=str(order.vendor_id),
            supplier_id=str(order.supplier_id),
            group_order_id=str(order.group_order_id) if order.group_order_id else None,
            status=order.status,
            payment_status=order.payment_status,
            total_amount=order.total_amount,
            discount_amount=order.discount_amount,
            final_amount=order.final_amount,
            delivery_address=(
                DeliveryAddressSchema(
                    street=address.street,
                    city=address.city,
                    state=address.state,
                    pincode=address.pincode,
                    latitude=address.latitude,
                    longitude=address.longitude,
                )
                if address
                else None
            ),
            vendor_notes=order.vendor_notes,
            supplier_notes=order.supplier_notes,
            delivery_notes=order.delivery_notes,
            tracking_number=order.tracking_number,
            carrier=order.carrier,
            tracking_updates=[
                TrackingUpdateResponse(
                    status=update.status,
                    message=update.message,
                    location=update.location,
                    recorded_at=update.recorded_at,
                )
                for update in order.tracking_history
            ],
        )


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]


class MaterializationResponse(BaseModel):
    group_order_id: str
    order_numbers: list[str]
    failed: dict[str, str]


class ExpiredGroupOrdersResponse(BaseModel):
    expired: list[str]
