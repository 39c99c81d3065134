"""Remaining-quantity bookkeeping for ticket types.

Every change is a single conditional UPDATE, so two concurrent buyers can
never take the last unit twice.
"""

from uuid import UUID

import structlog
from django.db.models import F

from events.models import TicketType
from orders.exceptions import InsufficientInventoryError, NotFoundError, OrderValidationError

logger = structlog.get_logger(__name__)


def reserve(ticket_type_id: UUID, quantity: int) -> None:
    """Take ``quantity`` units of a ticket type.

    Raises:
        OrderValidationError: quantity is not positive.
        NotFoundError: the ticket type does not exist.
        InsufficientInventoryError: fewer than ``quantity`` units remain. Nothing is changed.
    """
    if quantity <= 0:
        raise OrderValidationError(f"Invalid quantity {quantity} for ticket {ticket_type_id}.")
    updated = TicketType.objects.filter(pk=ticket_type_id, quantity_available__gte=quantity).update(
        quantity_available=F("quantity_available") - quantity
    )
    if updated:
        logger.info("inventory_reserved", ticket_type_id=str(ticket_type_id), quantity=quantity)
        return
    if not TicketType.objects.filter(pk=ticket_type_id).exists():
        raise NotFoundError(f"Ticket type {ticket_type_id} not found.")
    logger.info("inventory_insufficient", ticket_type_id=str(ticket_type_id), quantity=quantity)
    raise InsufficientInventoryError(ticket_type_id)


def release(ticket_type_id: UUID, quantity: int) -> None:
    """Give back units taken by :func:`reserve`."""
    if quantity <= 0:
        raise OrderValidationError(f"Invalid quantity {quantity} for ticket {ticket_type_id}.")
    TicketType.objects.filter(pk=ticket_type_id).update(quantity_available=F("quantity_available") + quantity)
    logger.info("inventory_released", ticket_type_id=str(ticket_type_id), quantity=quantity)

