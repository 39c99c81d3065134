import uuid
from decimal import Decimal

import pytest

from accounts.models import StagepassUser
from events.models import TicketType
from orders.exceptions import NotFoundError, OrderValidationError
from orders.service.assembler import BuyerDetails, assemble
from orders.types import ManifestEntry, PaymentConfirmation

pytestmark = pytest.mark.django_db


def confirmation_for(user: StagepassUser, manifest: list[ManifestEntry], amount: int = 10000) -> PaymentConfirmation:
    return PaymentConfirmation(
        id="pi_assemble",
        status="succeeded",
        amount=amount,
        currency="cad",
        buyer_id=str(user.id),
        manifest=manifest,
        payment_method_id="pm_1",
    )


def entry(ticket_type: TicketType, quantity: int) -> ManifestEntry:
    return ManifestEntry(event_id=ticket_type.event_id, ticket_type_id=ticket_type.id, quantity=quantity)


def test_groups_by_event_in_first_appearance_order(
    user: StagepassUser,
    buyer_details: BuyerDetails,
    ticket_type: TicketType,
    vip_ticket_type: TicketType,
    other_ticket_type: TicketType,
) -> None:
    confirmation = confirmation_for(
        user, [entry(other_ticket_type, 1), entry(ticket_type, 2), entry(vip_ticket_type, 1)]
    )

    draft = assemble(confirmation, buyer_details)

    assert [group.event.id for group in draft.groups] == [other_ticket_type.event_id, ticket_type.event_id]
    assert [(line.ticket_type.id, line.quantity) for line in draft.groups[1].lines] == [
        (ticket_type.id, 2),
        (vip_ticket_type.id, 1),
    ]
    assert draft.ticket_count == 4


def test_duplicate_rows_are_aggregated(
    user: StagepassUser, buyer_details: BuyerDetails, ticket_type: TicketType
) -> None:
    draft = assemble(confirmation_for(user, [entry(ticket_type, 1), entry(ticket_type, 2)]), buyer_details)

    assert len(draft.groups) == 1
    assert draft.reservations == [(ticket_type.id, 3)]


def test_total_comes_from_captured_amount(
    user: StagepassUser, buyer_details: BuyerDetails, ticket_type: TicketType
) -> None:
    draft = assemble(confirmation_for(user, [entry(ticket_type, 2)], amount=8999), buyer_details)

    assert draft.total_price == Decimal("89.99")
    assert draft.currency == "CAD"
    assert draft.buyer == buyer_details


def test_empty_manifest(user: StagepassUser, buyer_details: BuyerDetails) -> None:
    with pytest.raises(OrderValidationError):
        assemble(confirmation_for(user, []), buyer_details)


def test_unknown_ticket_type(user: StagepassUser, buyer_details: BuyerDetails, ticket_type: TicketType) -> None:
    manifest = [ManifestEntry(event_id=ticket_type.event_id, ticket_type_id=uuid.uuid4(), quantity=1)]

    with pytest.raises(NotFoundError):
        assemble(confirmation_for(user, manifest), buyer_details)


def test_unknown_event(user: StagepassUser, buyer_details: BuyerDetails, ticket_type: TicketType) -> None:
    manifest = [ManifestEntry(event_id=uuid.uuid4(), ticket_type_id=ticket_type.id, quantity=1)]

    with pytest.raises(NotFoundError):
        assemble(confirmation_for(user, manifest), buyer_details)


def test_ticket_type_from_another_event(
    user: StagepassUser, buyer_details: BuyerDetails, ticket_type: TicketType, other_ticket_type: TicketType
) -> None:
    manifest = [ManifestEntry(event_id=ticket_type.event_id, ticket_type_id=other_ticket_type.id, quantity=1)]

    with pytest.raises(OrderValidationError):
        assemble(confirmation_for(user, manifest), buyer_details)


def test_non_positive_quantity(user: StagepassUser, buyer_details: BuyerDetails, ticket_type: TicketType) -> None:
    with pytest.raises(OrderValidationError):
        assemble(confirmation_for(user, [entry(ticket_type, 0)]), buyer_details)


def test_ticket_limit(user: StagepassUser, buyer_details: BuyerDetails, ticket_type: TicketType) -> None:
    with pytest.raises(OrderValidationError):
        assemble(confirmation_for(user, [entry(ticket_type, 3)]), buyer_details, max_tickets=2)
