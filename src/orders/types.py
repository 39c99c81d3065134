"""Provider-neutral views of the payment data the workflow consumes."""

import typing as t
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus:
    REQUIRES_PAYMENT_METHOD = "requires_payment_method"
    REQUIRES_CONFIRMATION = "requires_confirmation"
    REQUIRES_ACTION = "requires_action"
    PROCESSING = "processing"
    REQUIRES_CAPTURE = "requires_capture"
    CANCELED = "canceled"
    SUCCEEDED = "succeeded"


class ManifestEntry(BaseModel):
    """One row of the purchase manifest stored in the payment metadata."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    event_id: UUID = Field(alias="eventId")
    ticket_type_id: UUID = Field(alias="ticketId")
    quantity: int


class PaymentConfirmation(BaseModel):
    """A payment intent as reported by the payment provider."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: str
    amount: int
    currency: str
    buyer_id: str | None = None
    manifest: list[ManifestEntry] | None = None
    payment_method_id: str | None = None
    created: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == PaymentStatus.SUCCEEDED


class CardDetails(BaseModel):
    brand: str | None = None
    exp_month: int | None = None
    exp_year: int | None = None
    last4: str | None = None


class BillingAddress(BaseModel):
    line1: str | None = None
    line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None


class PaymentMethodDetails(BaseModel):
    id: str
    card: CardDetails | None = None
    billing_address: BillingAddress | None = None
    billing_name: str | None = None


class CreatedPaymentIntent(BaseModel):
    id: str
    client_secret: str
    amount: int
    currency: str


PaymentMetadata = dict[str, t.Any]
