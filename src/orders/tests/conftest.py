import itertools
import typing as t
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from pytest import MonkeyPatch

from accounts.models import StagepassUser
from events.models import TicketType
from orders.exceptions import NotFoundError
from orders.models import Order
from orders.service.assembler import BuyerDetails
from orders.types import CardDetails, CreatedPaymentIntent, ManifestEntry, PaymentConfirmation, PaymentMethodDetails

FAKE_PDF = b"%PDF-1.7\n% test document\n"


class FakePaymentGateway:
    """In-memory stand-in for the payment provider."""

    def __init__(self) -> None:
        self.intents: dict[str, PaymentConfirmation] = {}
        self.created: list[dict[str, t.Any]] = []
        self.retrieved: list[str] = []
        self._ids = itertools.count(1)

    def add(self, confirmation: PaymentConfirmation) -> PaymentConfirmation:
        self.intents[confirmation.id] = confirmation
        return confirmation

    def retrieve_payment_intent(self, payment_intent_id: str) -> PaymentConfirmation:
        self.retrieved.append(payment_intent_id)
        try:
            return self.intents[payment_intent_id]
        except KeyError:
            raise NotFoundError(f"{payment_intent_id} not found.")

    def retrieve_payment_method(self, payment_method_id: str) -> PaymentMethodDetails:
        return PaymentMethodDetails(
            id=payment_method_id,
            card=CardDetails(brand="visa", exp_month=12, exp_year=2031, last4="4242"),
            billing_name="Test Buyer",
        )

    def create_payment_intent(self, *, amount: int, currency: str, metadata: dict[str, t.Any]) -> CreatedPaymentIntent:
        intent_id = f"pi_test_{next(self._ids)}"
        self.created.append({"id": intent_id, "amount": amount, "currency": currency, "metadata": metadata})
        return CreatedPaymentIntent(id=intent_id, client_secret=f"{intent_id}_secret", amount=amount, currency=currency)


@pytest.fixture
def gateway(monkeypatch: MonkeyPatch) -> FakePaymentGateway:
    """A fake payment gateway, also used by the API controllers."""
    fake = FakePaymentGateway()
    monkeypatch.setattr("orders.controllers.orders.get_payment_gateway", lambda: fake)
    return fake


@pytest.fixture(autouse=True)
def pdf_writer(monkeypatch: MonkeyPatch) -> MagicMock:
    """Replace the PDF engine; the HTML it receives is still rendered from the real template."""
    writer = MagicMock(return_value=FAKE_PDF)
    monkeypatch.setattr("orders.service.document_renderer.html_to_pdf", writer)
    return writer


ConfirmationFactory = t.Callable[..., PaymentConfirmation]


@pytest.fixture
def make_confirmation(gateway: FakePaymentGateway) -> ConfirmationFactory:
    """Register a payment confirmation with the fake gateway."""
    counter = itertools.count(1)

    def factory(
        buyer: StagepassUser,
        lines: list[tuple[TicketType, int]],
        *,
        amount: int = 10000,
        status: str = "succeeded",
        intent_id: str | None = None,
        payment_method_id: str | None = "pm_card_visa",
    ) -> PaymentConfirmation:
        return gateway.add(
            PaymentConfirmation(
                id=intent_id or f"pi_confirmed_{next(counter)}",
                status=status,
                amount=amount,
                currency="cad",
                buyer_id=str(buyer.id),
                manifest=[
                    ManifestEntry(event_id=ticket_type.event_id, ticket_type_id=ticket_type.id, quantity=quantity)
                    for ticket_type, quantity in lines
                ],
                payment_method_id=payment_method_id,
                created=datetime(2026, 5, 1, 18, 30, tzinfo=timezone.utc),
            )
        )

    return factory


@pytest.fixture
def buyer_details(user: StagepassUser) -> BuyerDetails:
    return BuyerDetails(first_name="Ada", last_name="Lovelace", email=user.email)


@pytest.fixture
def placed_order(
    gateway: FakePaymentGateway,
    make_confirmation: ConfirmationFactory,
    user: StagepassUser,
    buyer_details: BuyerDetails,
    ticket_type: TicketType,
) -> Order:
    """A committed order for two T1 tickets, tickets not yet delivered."""
    from orders.service.order_workflow import OrderWorkflow

    confirmation = make_confirmation(user, [(ticket_type, 2)], amount=10000)
    return OrderWorkflow(gateway).create_order(user, confirmation.id, buyer_details).order
