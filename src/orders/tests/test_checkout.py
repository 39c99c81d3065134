from decimal import Decimal

import orjson
import pytest
from pytest_django.fixtures import SettingsWrapper

from accounts.models import StagepassUser
from events.models import Discount, Event, TicketType
from orders.exceptions import InsufficientInventoryError, OrderValidationError
from orders.models import DiscountApplication
from orders.service import checkout
from orders.service.checkout import CartItem
from orders.service.payment_gateway import METADATA_VALUE_LIMIT, manifest_from_metadata

from .conftest import FakePaymentGateway

pytestmark = pytest.mark.django_db


def item(ticket_type: TicketType, quantity: int, code: str | None = None) -> CartItem:
    return CartItem(event_id=ticket_type.event_id, ticket_type_id=ticket_type.id, quantity=quantity, discount_code=code)


def test_creates_intent_with_manifest_metadata(
    gateway: FakePaymentGateway, user: StagepassUser, ticket_type: TicketType, vip_ticket_type: TicketType
) -> None:
    intent = checkout.create_payment_intent(user, [item(ticket_type, 2), item(vip_ticket_type, 1)], gateway)

    assert intent.amount == 22000
    created = gateway.created[0]
    assert created["currency"] == "CAD"
    assert created["metadata"]["userId"] == str(user.id)
    assert orjson.loads(created["metadata"]["allTicketsDetails"]) == [
        {"eventId": str(ticket_type.event_id), "ticketId": str(ticket_type.id), "quantity": 2},
        {"eventId": str(vip_ticket_type.event_id), "ticketId": str(vip_ticket_type.id), "quantity": 1},
    ]
    assert not DiscountApplication.objects.exists()


def test_does_not_reserve_inventory(gateway: FakePaymentGateway, user: StagepassUser, ticket_type: TicketType) -> None:
    checkout.create_payment_intent(user, [item(ticket_type, 2)], gateway)

    ticket_type.refresh_from_db()
    assert ticket_type.quantity_available == 5


def test_rejects_more_than_available(gateway: FakePaymentGateway, user: StagepassUser, ticket_type: TicketType) -> None:
    with pytest.raises(InsufficientInventoryError):
        checkout.create_payment_intent(user, [item(ticket_type, 3), item(ticket_type, 3)], gateway)

    assert gateway.created == []


def test_applies_discount_and_records_application(
    gateway: FakePaymentGateway, user: StagepassUser, event: Event, ticket_type: TicketType
) -> None:
    discount = Discount.objects.create(
        code="EARLY", event=event, ticket_type=ticket_type, discount_per_ticket=Decimal("12.50")
    )

    intent = checkout.create_payment_intent(user, [item(ticket_type, 2, "EARLY")], gateway)

    assert intent.amount == 7500
    application = DiscountApplication.objects.get(payment_intent_id=intent.id)
    discounted = application.discounted_tickets.get()
    assert discounted.discount == discount
    assert discounted.new_price == Decimal("37.50")
    assert discounted.quantity == 2
    discount.refresh_from_db()
    assert discount.used_count == 0


def test_unknown_discount_code(gateway: FakePaymentGateway, user: StagepassUser, ticket_type: TicketType) -> None:
    with pytest.raises(OrderValidationError):
        checkout.create_payment_intent(user, [item(ticket_type, 1, "NOPE")], gateway)


def test_exhausted_discount(
    gateway: FakePaymentGateway, user: StagepassUser, event: Event, ticket_type: TicketType
) -> None:
    Discount.objects.create(
        code="ONCE", event=event, ticket_type=ticket_type, discount_per_ticket=Decimal("5"), max_uses=1
    )

    with pytest.raises(OrderValidationError):
        checkout.create_payment_intent(user, [item(ticket_type, 2, "ONCE")], gateway)


def test_empty_cart(gateway: FakePaymentGateway, user: StagepassUser) -> None:
    with pytest.raises(OrderValidationError):
        checkout.create_payment_intent(user, [], gateway)


def test_free_cart_is_rejected(
    gateway: FakePaymentGateway, user: StagepassUser, event: Event, ticket_type: TicketType
) -> None:
    Discount.objects.create(code="FREE", event=event, ticket_type=ticket_type, discount_per_ticket=Decimal("80"))

    with pytest.raises(OrderValidationError):
        checkout.create_payment_intent(user, [item(ticket_type, 1, "FREE")], gateway)


def test_cart_at_ticket_limit(
    gateway: FakePaymentGateway, user: StagepassUser, ticket_type: TicketType, settings: SettingsWrapper
) -> None:
    settings.MAX_TICKETS_PER_ORDER = 3

    checkout.create_payment_intent(user, [item(ticket_type, 2), item(ticket_type, 1)], gateway)

    assert len(gateway.created) == 1


def test_cart_over_ticket_limit_never_reaches_the_gateway(
    gateway: FakePaymentGateway,
    user: StagepassUser,
    ticket_type: TicketType,
    vip_ticket_type: TicketType,
    settings: SettingsWrapper,
) -> None:
    settings.MAX_TICKETS_PER_ORDER = 3

    with pytest.raises(OrderValidationError, match="at most 3 tickets"):
        checkout.create_payment_intent(user, [item(ticket_type, 2), item(vip_ticket_type, 2)], gateway)

    assert gateway.created == []


def test_repeated_ticket_type_is_one_manifest_row(
    gateway: FakePaymentGateway, user: StagepassUser, ticket_type: TicketType
) -> None:
    checkout.create_payment_intent(user, [item(ticket_type, 2), item(ticket_type, 1)], gateway)

    assert orjson.loads(gateway.created[0]["metadata"]["allTicketsDetails"]) == [
        {"eventId": str(ticket_type.event_id), "ticketId": str(ticket_type.id), "quantity": 3},
    ]


def test_long_manifest_is_split_across_metadata_values(
    gateway: FakePaymentGateway, user: StagepassUser, event: Event
) -> None:
    tiers = [
        TicketType.objects.create(event=event, name=f"Tier {n}", price=Decimal("10.00"), quantity_available=5)
        for n in range(5)
    ]

    checkout.create_payment_intent(user, [item(tier, 1) for tier in tiers], gateway)

    metadata = gateway.created[0]["metadata"]
    assert set(metadata) == {"userId", "allTicketsDetails", "allTicketsDetails_1"}
    assert all(len(value) <= METADATA_VALUE_LIMIT for value in metadata.values())
    assert len(orjson.loads(metadata["allTicketsDetails"])) == 4
    manifest = manifest_from_metadata(metadata)
    assert manifest is not None
    assert [(entry.ticket_type_id, entry.quantity) for entry in manifest] == [(tier.id, 1) for tier in tiers]
