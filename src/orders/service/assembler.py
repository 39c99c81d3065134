"""Turns a verified payment confirmation into an unsaved order draft."""

from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from events.models import Event, TicketType
from orders.exceptions import NotFoundError, OrderValidationError
from orders.types import ManifestEntry, PaymentConfirmation


@dataclass
class BuyerDetails:
    first_name: str
    last_name: str
    email: str


@dataclass
class DraftLine:
    ticket_type: TicketType
    quantity: int


@dataclass
class DraftGroup:
    event: Event
    lines: list[DraftLine] = field(default_factory=list)


@dataclass
class OrderDraft:
    buyer: BuyerDetails
    payment_intent_id: str
    payment_method_id: str
    total_price: Decimal
    currency: str
    groups: list[DraftGroup]

    @property
    def reservations(self) -> list[tuple[UUID, int]]:
        """(ticket_type_id, quantity) pairs in manifest order."""
        return [(line.ticket_type.id, line.quantity) for group in self.groups for line in group.lines]

    @property
    def ticket_count(self) -> int:
        return sum(quantity for _, quantity in self.reservations)


def aggregate_manifest(manifest: list[ManifestEntry]) -> "OrderedDict[UUID, OrderedDict[UUID, int]]":
    """Group manifest rows by event, summing duplicate ticket types.

    Events and ticket types keep the order of their first appearance.
    """
    if not manifest:
        raise OrderValidationError("The order has no tickets.")
    grouped: OrderedDict[UUID, OrderedDict[UUID, int]] = OrderedDict()
    for entry in manifest:
        if entry.quantity <= 0:
            raise OrderValidationError(f"Invalid quantity {entry.quantity} for ticket {entry.ticket_type_id}.")
        lines = grouped.setdefault(entry.event_id, OrderedDict())
        lines[entry.ticket_type_id] = lines.get(entry.ticket_type_id, 0) + entry.quantity
    return grouped


def assemble(confirmation: PaymentConfirmation, buyer: BuyerDetails, max_tickets: int | None = None) -> OrderDraft:
    """Build the order draft for a confirmation.

    The captured amount is authoritative for the total; the catalogue is only
    used to resolve and validate references.
    """
    if not confirmation.payment_method_id:
        raise OrderValidationError("Payment method is missing.")
    grouped = aggregate_manifest(confirmation.manifest or [])

    events = Event.objects.in_bulk(list(grouped))
    ticket_type_ids = [tt_id for lines in grouped.values() for tt_id in lines]
    ticket_types = TicketType.objects.in_bulk(ticket_type_ids)

    groups: list[DraftGroup] = []
    for event_id, lines in grouped.items():
        event = events.get(event_id)
        if event is None:
            raise NotFoundError(f"Event {event_id} not found.")
        group = DraftGroup(event=event)
        for ticket_type_id, quantity in lines.items():
            ticket_type = ticket_types.get(ticket_type_id)
            if ticket_type is None:
                raise NotFoundError(f"Ticket type {ticket_type_id} not found.")
            if ticket_type.event_id != event.id:
                raise OrderValidationError(f"Ticket type {ticket_type_id} does not belong to event {event_id}.")
            group.lines.append(DraftLine(ticket_type=ticket_type, quantity=quantity))
        groups.append(group)

    draft = OrderDraft(
        buyer=buyer,
        payment_intent_id=confirmation.id,
        payment_method_id=confirmation.payment_method_id,
        total_price=Decimal(confirmation.amount) / Decimal(100),
        currency=confirmation.currency.upper(),
        groups=groups,
    )
    if max_tickets is not None and draft.ticket_count > max_tickets:
        raise OrderValidationError(f"An order may contain at most {max_tickets} tickets.")
    return draft
