"""Marking ticket units as used at the door."""

from uuid import UUID

import structlog
from django.db import transaction

from accounts.models import StagepassUser
from orders.exceptions import AlreadyUsedError, AuthorizationError, NotFoundError, OrderValidationError
from orders.models import TicketLine

from .qr_service import QRCodeRecord

logger = structlog.get_logger(__name__)


def can_redeem(user: StagepassUser, line: TicketLine) -> bool:
    return user.is_staff or line.group.event.organizer_id == user.id


@transaction.atomic
def redeem_ticket(user: StagepassUser, order_id: UUID, event_id: UUID, ticket_type_id: UUID, index: int) -> TicketLine:
    """Record that unit ``index`` of a ticket line has been used.

    The line is locked for the duration of the check and the write, so two
    scanners cannot both admit the same unit. SQLite has no row locks and
    serializes the whole transaction instead.

    Raises:
        NotFoundError: No such ticket line in the order.
        AuthorizationError: The user is neither staff nor the event's organizer.
        OrderValidationError: ``index`` is outside 1..quantity.
        AlreadyUsedError: The unit was already redeemed.
    """
    line = (
        TicketLine.objects.select_for_update(of=("self",))
        .select_related("group__event")
        .filter(group__order_id=order_id, group__event_id=event_id, ticket_type_id=ticket_type_id)
        .first()
    )
    if line is None:
        raise NotFoundError("Ticket not found in order.")
    if not can_redeem(user, line):
        raise AuthorizationError("Only the event organizer can redeem tickets.")
    if not 1 <= index <= line.quantity:
        raise OrderValidationError(f"Ticket index {index} is out of range 1..{line.quantity}.")
    if line.is_used(index):
        logger.info("ticket_redeem_rejected", order_id=str(order_id), ticket_type_id=str(ticket_type_id), index=index)
        raise AlreadyUsedError()

    line.used_markers = sorted([*line.used_markers, index])
    line.save(update_fields=["used_markers"])
    logger.info(
        "ticket_redeemed",
        order_id=str(order_id),
        ticket_type_id=str(ticket_type_id),
        index=index,
        redeemed_by=str(user.id),
    )
    return line


def redeem_qr_payload(user: StagepassUser, payload: str) -> TicketLine:
    record = QRCodeRecord.decode(payload)
    return redeem_ticket(user, record.order_id, record.event_id, record.ticket_type_id, record.index)
