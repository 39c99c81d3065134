"""Pricing a cart and opening a payment intent for it."""

from collections import defaultdict
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction

from accounts.models import StagepassUser
from events.models import Discount, TicketType
from orders.exceptions import InsufficientInventoryError, NotFoundError, OrderValidationError
from orders.models import DiscountApplication, DiscountedTicket
from orders.types import CreatedPaymentIntent, ManifestEntry

from .payment_gateway import PaymentGateway, get_payment_gateway, manifest_metadata

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CartItem:
    event_id: UUID
    ticket_type_id: UUID
    quantity: int
    discount_code: str | None = None


@dataclass
class QuoteLine:
    item: CartItem
    ticket_type: TicketType
    unit_price: Decimal
    discount: Discount | None = None

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.item.quantity


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quote(items: list[CartItem]) -> list[QuoteLine]:
    """Price a cart against current inventory and discounts. Nothing is reserved."""
    if not items:
        raise OrderValidationError("The cart is empty.")
    total_quantity = sum(item.quantity for item in items)
    if total_quantity > settings.MAX_TICKETS_PER_ORDER:
        raise OrderValidationError(f"An order may contain at most {settings.MAX_TICKETS_PER_ORDER} tickets.")
    ticket_types = TicketType.objects.in_bulk([item.ticket_type_id for item in items])

    requested: dict[UUID, int] = defaultdict(int)
    discount_uses: dict[UUID, int] = defaultdict(int)
    lines: list[QuoteLine] = []
    for item in items:
        if item.quantity <= 0:
            raise OrderValidationError(f"Invalid quantity {item.quantity} for ticket {item.ticket_type_id}.")
        ticket_type = ticket_types.get(item.ticket_type_id)
        if ticket_type is None:
            raise NotFoundError(f"Ticket type {item.ticket_type_id} not found.")
        if ticket_type.event_id != item.event_id:
            raise OrderValidationError(f"Ticket type {item.ticket_type_id} does not belong to event {item.event_id}.")

        requested[ticket_type.id] += item.quantity
        if requested[ticket_type.id] > ticket_type.quantity_available:
            raise InsufficientInventoryError(ticket_type.id)

        line = QuoteLine(item=item, ticket_type=ticket_type, unit_price=ticket_type.price)
        if item.discount_code:
            discount = Discount.objects.active().filter(code=item.discount_code, ticket_type=ticket_type).first()
            if discount is None:
                raise OrderValidationError(f"Invalid discount code {item.discount_code}.")
            discount_uses[discount.id] += item.quantity
            remaining = discount.remaining_uses()
            if remaining is not None and discount_uses[discount.id] > remaining:
                raise OrderValidationError(f"Discount code {item.discount_code} has no uses left.")
            line.discount = discount
            line.unit_price = discount.price_for(ticket_type.price)
        lines.append(line)

    if len({line.ticket_type.currency for line in lines}) > 1:
        raise OrderValidationError("All tickets in a cart must share one currency.")
    return lines


def build_manifest(lines: list[QuoteLine]) -> list[ManifestEntry]:
    """One manifest row per ticket type, quantities summed, in cart order."""
    quantities: dict[tuple[UUID, UUID], int] = {}
    for line in lines:
        key = (line.item.event_id, line.item.ticket_type_id)
        quantities[key] = quantities.get(key, 0) + line.item.quantity
    return [
        ManifestEntry(event_id=event_id, ticket_type_id=ticket_type_id, quantity=quantity)
        for (event_id, ticket_type_id), quantity in quantities.items()
    ]


def create_payment_intent(
    user: StagepassUser, items: list[CartItem], gateway: PaymentGateway | None = None
) -> CreatedPaymentIntent:
    """Open a payment intent whose metadata carries the buyer and the ticket manifest."""
    lines = quote(items)
    amount = to_minor_units(sum((line.subtotal for line in lines), Decimal("0")))
    if amount <= 0:
        raise OrderValidationError("The cart total must be positive.")
    currency = lines[0].ticket_type.currency

    manifest = build_manifest(lines)
    gateway = gateway or get_payment_gateway()
    intent = gateway.create_payment_intent(
        amount=amount,
        currency=currency,
        metadata={"userId": str(user.id), **manifest_metadata(manifest)},
    )

    discounted = [line for line in lines if line.discount is not None]
    if discounted:
        with transaction.atomic():
            application = DiscountApplication.objects.create(payment_intent_id=intent.id, user=user)
            DiscountedTicket.objects.bulk_create(
                DiscountedTicket(
                    application=application,
                    discount=line.discount,
                    event_id=line.item.event_id,
                    ticket_type=line.ticket_type,
                    discount_code=line.discount.code,  # type: ignore[union-attr]
                    original_price=line.ticket_type.price,
                    discount_per_ticket=line.discount.discount_per_ticket,  # type: ignore[union-attr]
                    new_price=line.unit_price,
                    quantity=line.item.quantity,
                )
                for line in discounted
            )
    logger.info(
        "checkout_payment_intent_created",
        payment_intent_id=intent.id,
        user_id=str(user.id),
        amount=amount,
        discounted_lines=len(discounted),
    )
    return intent
