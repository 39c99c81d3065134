"""Order request and response schemas."""

import typing as t
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import EmailStr, Field, model_validator

from common.schema import OneToOneFiftyString, StrippedString
from orders.models import DiscountedTicket, EventOrderGroup, Order, TicketLine
from orders.types import BillingAddress, CardDetails


class CreateOrderSchema(Schema):
    payment_intent_id: StrippedString = Field(..., min_length=1, alias="paymentIntentId")
    first_name: OneToOneFiftyString = Field(..., alias="firstName")
    last_name: OneToOneFiftyString = Field(..., alias="lastName")
    email: EmailStr

    model_config = {"populate_by_name": True}


class TicketTypeInOrderSchema(Schema):
    id: UUID
    name: str
    price: Decimal
    currency: str


class TicketLineSchema(ModelSchema):
    ticket_type: TicketTypeInOrderSchema
    used_markers: list[int]

    class Meta:
        model = TicketLine
        fields = ["quantity"]


class EventInOrderSchema(Schema):
    id: UUID
    title: str
    location: str
    start_time: datetime
    end_time: datetime
    image_urls: list[str] = []


class EventOrderGroupSchema(ModelSchema):
    event: EventInOrderSchema
    tickets: list[TicketLineSchema]

    class Meta:
        model = EventOrderGroup
        fields = ["id"]


class OrderSchema(ModelSchema):
    id: UUID
    user_id: UUID
    events: list[EventOrderGroupSchema]

    class Meta:
        model = Order
        fields = [
            "first_name",
            "last_name",
            "email",
            "total_price",
            "currency",
            "payment_status",
            "payment_intent_id",
            "delivery_status",
            "delivered_at",
            "created_at",
        ]


class DiscountedTicketSchema(ModelSchema):
    event_id: UUID
    ticket_type_id: UUID

    class Meta:
        model = DiscountedTicket
        fields = ["discount_code", "original_price", "discount_per_ticket", "new_price", "quantity"]


class PaymentMethodSchema(Schema):
    card: CardDetails | None = None
    billing_address: BillingAddress | None = None
    billing_name: str | None = None


class OrderDetailSchema(Schema):
    order: OrderSchema
    payment_method: PaymentMethodSchema | None = None
    payment_created: datetime | None = None
    discounted_tickets: list[DiscountedTicketSchema] = []


class RedeemTicketSchema(Schema):
    """Identify the unit to redeem, either by its parts or by the scanned payload."""

    order_id: UUID | None = Field(None, alias="orderId")
    event_id: UUID | None = Field(None, alias="eventId")
    ticket_type_id: UUID | None = Field(None, alias="ticketId")
    index: int | None = None
    qr_payload: str | None = Field(None, alias="qrPayload")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def check_identifier(self) -> t.Self:
        parts = (self.order_id, self.event_id, self.ticket_type_id, self.index)
        if self.qr_payload is None and any(part is None for part in parts):
            raise ValueError("Provide either qr_payload or order_id, event_id, ticket_type_id and index.")
        return self


class RedeemedTicketSchema(Schema):
    message: str = "Ticket Verified"
    order_id: UUID
    event_id: UUID
    ticket_type_id: UUID
    quantity: int
    used_markers: list[int]


class CartItemSchema(Schema):
    event_id: UUID
    ticket_type_id: UUID
    quantity: int = Field(..., ge=1)
    discount_code: StrippedString | None = None


class PaymentIntentRequestSchema(Schema):
    items: list[CartItemSchema] = Field(..., min_length=1)


class PaymentIntentSchema(Schema):
    client_secret: str
    payment_intent_id: str
    amount: int
    currency: str


class OrderDeliveryFailedSchema(Schema):
    detail: str
    code: str
    stage: str | None = None
    order_id: UUID
