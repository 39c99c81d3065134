"""Read side of orders. Nothing in here writes to the database."""

import typing as t
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

import structlog

from accounts.models import StagepassUser
from orders.exceptions import AuthorizationError, NotFoundError, OrderValidationError
from orders.models import DiscountApplication, DiscountedTicket, Order
from orders.types import PaymentMethodDetails

from .payment_gateway import PaymentGateway, get_payment_gateway
from .qr_service import QRCodeRecord

logger = structlog.get_logger(__name__)


@dataclass
class OrderDetails:
    order: Order
    payment_method: PaymentMethodDetails | None = None
    payment_created: datetime | None = None
    discounted_tickets: list[DiscountedTicket] = field(default_factory=list)


def get_order(order_id: UUID) -> Order:
    try:
        return Order.objects.full().get(pk=order_id)
    except Order.DoesNotExist as e:
        raise NotFoundError(f"Order {order_id} not found.") from e


def organizes_event_in(order: Order, user: StagepassUser) -> bool:
    return any(group.event.organizer_id == user.id for group in order.events.all())


def ensure_can_view(order: Order, user: StagepassUser, *, allow_organizer: bool = False) -> None:
    if user.is_staff or order.user_id == user.id:
        return
    if allow_organizer and organizes_event_in(order, user):
        return
    logger.warning("order_access_denied", order_id=str(order.id), user_id=str(user.id))
    raise AuthorizationError()


def get_order_details(order_id: UUID, user: StagepassUser, gateway: PaymentGateway | None = None) -> OrderDetails:
    """An order with its payment method, payment timestamp and applied discounts."""
    order = get_order(order_id)
    ensure_can_view(order, user)

    gateway = gateway or get_payment_gateway()
    payment_method = gateway.retrieve_payment_method(order.payment_method_id)
    confirmation = gateway.retrieve_payment_intent(order.payment_intent_id)

    application = (
        DiscountApplication.objects.prefetch_related("discounted_tickets")
        .filter(payment_intent_id=order.payment_intent_id)
        .first()
    )
    return OrderDetails(
        order=order,
        payment_method=payment_method,
        payment_created=confirmation.created,
        discounted_tickets=list(application.discounted_tickets.all()) if application else [],
    )


def list_orders(user: StagepassUser) -> t.Any:
    return Order.objects.full().for_buyer(user)


def resolve_qr_code_id(qr_code_id: str) -> UUID:
    """Accept either an order id or a full QR payload."""
    try:
        return UUID(qr_code_id)
    except ValueError:
        pass
    try:
        return QRCodeRecord.decode(qr_code_id).order_id
    except OrderValidationError as e:
        raise NotFoundError(f"Order {qr_code_id} not found.") from e


def get_order_by_qr(qr_code_id: str, user: StagepassUser) -> Order:
    order = get_order(resolve_qr_code_id(qr_code_id))
    ensure_can_view(order, user, allow_organizer=True)
    return order
