"""The order workflow: from a succeeded payment to delivered tickets.

The commit phase is a saga (validate payment, reserve inventory, persist the
order). Once the order is committed it is never rolled back; the delivery
phase (QR codes, PDF, email) only records its outcome on the order.
"""

import typing as t
from contextlib import contextmanager
from dataclasses import dataclass
from enum import StrEnum
from functools import partial

import structlog
from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounts.models import StagepassUser
from events.models import Discount
from orders.exceptions import (
    DeliveryError,
    OrderError,
    OrderValidationError,
    PaymentMismatchError,
    TicketDeliveryError,
)
from orders.models import DiscountApplication, EventOrderGroup, Order, TicketLine
from orders.types import PaymentConfirmation

from . import inventory, notification, qr_service
from .assembler import BuyerDetails, OrderDraft, assemble
from .document_renderer import render_document
from .payment_gateway import PaymentGateway, get_payment_gateway
from .saga import Saga

logger = structlog.get_logger(__name__)


class WorkflowStage(StrEnum):
    VALIDATING_PAYMENT = "validating_payment"
    RESERVING_INVENTORY = "reserving_inventory"
    PERSISTING_ORDER = "persisting_order"
    ISSUING_QR_CODES = "issuing_qr_codes"
    RENDERING_DOCUMENT = "rendering_document"
    NOTIFYING = "notifying"
    DONE = "done"


@dataclass
class OrderResult:
    order: Order
    created: bool


@contextmanager
def at_stage(stage: WorkflowStage) -> t.Iterator[None]:
    """Stamp ``stage`` on order errors raised inside the block."""
    try:
        yield
    except OrderError as e:
        if e.stage is None:
            e.stage = stage
        raise


class OrderWorkflow:
    def __init__(self, gateway: PaymentGateway | None = None) -> None:
        self.gateway = gateway or get_payment_gateway()

    def place_order(self, user: StagepassUser, payment_intent_id: str, buyer: BuyerDetails) -> OrderResult:
        """Create the order for a payment and deliver its tickets.

        A replayed payment returns the existing order without delivering again.

        Raises:
            OrderError: A commit-phase failure. Nothing was persisted and all
                reservations made by this call were released.
            TicketDeliveryError: The order was persisted but delivery failed.
        """
        result = self.create_order(user, payment_intent_id, buyer)
        if result.created:
            result.order = deliver_tickets(result.order)
        return result

    def create_order(self, user: StagepassUser, payment_intent_id: str, buyer: BuyerDetails) -> OrderResult:
        log = logger.bind(payment_intent_id=payment_intent_id, user_id=str(user.id))

        with at_stage(WorkflowStage.VALIDATING_PAYMENT):
            confirmation = self.validate_payment(user, payment_intent_id)

        existing = Order.objects.filter(payment_intent_id=confirmation.id).first()
        if existing is not None:
            log.info("order_replayed", order_id=str(existing.id))
            return OrderResult(order=existing, created=False)

        with at_stage(WorkflowStage.VALIDATING_PAYMENT):
            draft = assemble(confirmation, buyer, max_tickets=settings.MAX_TICKETS_PER_ORDER)

        saga = Saga("create_order")
        for ticket_type_id, quantity in draft.reservations:
            saga.add_step(
                WorkflowStage.RESERVING_INVENTORY,
                partial(inventory.reserve, ticket_type_id, quantity),
                partial(inventory.release, ticket_type_id, quantity),
            )
        saga.add_step(WorkflowStage.PERSISTING_ORDER, partial(self.persist_order, draft, user))

        try:
            order = saga.run()[-1]
        except (IntegrityError, DjangoValidationError) as e:
            winner = Order.objects.filter(payment_intent_id=confirmation.id).first()
            if winner is None:
                raise
            log.info("order_duplicate_resolved", order_id=str(winner.id), error=str(e))
            return OrderResult(order=winner, created=False)

        log.info("order_created", order_id=str(order.id), tickets=draft.ticket_count, total=str(order.total_price))
        return OrderResult(order=order, created=True)

    def validate_payment(self, user: StagepassUser, payment_intent_id: str) -> PaymentConfirmation:
        if not payment_intent_id:
            raise OrderValidationError("Payment intent id is required.")
        confirmation = self.gateway.retrieve_payment_intent(payment_intent_id)
        if confirmation.buyer_id != str(user.id):
            raise PaymentMismatchError(PaymentMismatchError.Reason.MISMATCH)
        if not confirmation.succeeded:
            raise PaymentMismatchError(
                PaymentMismatchError.Reason.NOT_SUCCEEDED,
                f"Payment intent not succeeded. Status: {confirmation.status}",
            )
        if not confirmation.payment_method_id:
            raise OrderValidationError("Payment method is missing.")
        if not confirmation.manifest:
            raise OrderValidationError("The payment has no ticket details.")
        return confirmation

    @staticmethod
    @transaction.atomic
    def persist_order(draft: OrderDraft, user: StagepassUser) -> Order:
        order = Order.objects.create(
            user=user,
            first_name=draft.buyer.first_name,
            last_name=draft.buyer.last_name,
            email=draft.buyer.email,
            total_price=draft.total_price,
            currency=draft.currency,
            payment_intent_id=draft.payment_intent_id,
            payment_method_id=draft.payment_method_id,
        )
        for position, group in enumerate(draft.groups):
            order_group = EventOrderGroup.objects.create(order=order, event=group.event, position=position)
            TicketLine.objects.bulk_create(
                TicketLine(group=order_group, ticket_type=line.ticket_type, quantity=line.quantity)
                for line in group.lines
            )
        record_discount_usage(draft.payment_intent_id)
        return order


def record_discount_usage(payment_intent_id: str) -> int:
    """Count the discounts applied to a payment, at most once per payment."""
    claimed = DiscountApplication.objects.filter(
        payment_intent_id=payment_intent_id, usage_recorded_at__isnull=True
    ).update(usage_recorded_at=timezone.now())
    if not claimed:
        return 0
    application = DiscountApplication.objects.prefetch_related("discounted_tickets").get(
        payment_intent_id=payment_intent_id
    )
    recorded = 0
    for ticket in application.discounted_tickets.all():
        if ticket.discount_id is not None:
            if not Discount.objects.record_usage(ticket.discount_id, ticket.quantity):
                logger.warning(
                    "discount_usage_over_limit",
                    payment_intent_id=payment_intent_id,
                    discount_id=str(ticket.discount_id),
                    quantity=ticket.quantity,
                )
            recorded += ticket.quantity
    logger.info("discount_usage_recorded", payment_intent_id=payment_intent_id, quantity=recorded)
    return recorded


def deliver_tickets(order: Order) -> Order:
    """Issue, render and send the tickets of a committed order.

    The outcome is recorded on the order. On failure the order stays in
    place and a :class:`TicketDeliveryError` is raised.
    """
    order = Order.objects.full().get(pk=order.pk)
    stage = WorkflowStage.ISSUING_QR_CODES
    try:
        records = qr_service.issue_for_order(order)
        stage = WorkflowStage.RENDERING_DOCUMENT
        document = render_document(order, records)
        stage = WorkflowStage.NOTIFYING
        notification.send(order, document)
    except Exception as e:
        cause = e if isinstance(e, OrderError) else DeliveryError()
        cause.stage = cause.stage or stage
        logger.exception("ticket_delivery_failed", order_id=str(order.id), stage=stage)
        mark_delivery(order, Order.DeliveryStatus.FAILED, error=f"{stage}: {cause.message}")
        raise TicketDeliveryError(order.id, cause, stage=stage) from e

    mark_delivery(order, Order.DeliveryStatus.SENT)
    logger.info("tickets_delivered", order_id=str(order.id), codes=len(records))
    return order


def mark_delivery(order: Order, status: str, error: str = "") -> None:
    order.delivery_status = status
    order.delivery_error = error
    order.delivered_at = timezone.now() if status == Order.DeliveryStatus.SENT else None
    Order.objects.filter(pk=order.pk).update(
        delivery_status=order.delivery_status, delivery_error=error, delivered_at=order.delivered_at
    )


def create_order(
    user: StagepassUser, payment_intent_id: str, buyer: BuyerDetails, gateway: PaymentGateway | None = None
) -> OrderResult:
    """Run the whole workflow with the configured payment gateway."""
    return OrderWorkflow(gateway).place_order(user, payment_intent_id, buyer)

