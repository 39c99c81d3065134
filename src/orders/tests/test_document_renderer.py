from unittest.mock import MagicMock

import pytest

from orders.exceptions import DocumentRenderingError
from orders.models import Order
from orders.service import qr_service
from orders.service.document_renderer import render_document

from .conftest import FAKE_PDF

pytestmark = pytest.mark.django_db


@pytest.fixture
def full_order(placed_order: Order) -> Order:
    return Order.objects.full().get(pk=placed_order.pk)


def test_renders_summary_and_one_code_per_unit(full_order: Order, pdf_writer: MagicMock) -> None:
    records = qr_service.issue_for_order(full_order)

    assert render_document(full_order, records) == FAKE_PDF

    html = pdf_writer.call_args.args[0]
    assert str(full_order.id) in html
    assert "Midnight Echoes" in html
    assert "2 &times; General" in html
    assert html.count("data:image/png;base64,") == 2


def test_engine_failure(full_order: Order, pdf_writer: MagicMock) -> None:
    pdf_writer.side_effect = RuntimeError("pango missing")

    with pytest.raises(DocumentRenderingError):
        render_document(full_order, qr_service.issue_for_order(full_order))


def test_empty_output(full_order: Order, pdf_writer: MagicMock) -> None:
    pdf_writer.return_value = b""

    with pytest.raises(DocumentRenderingError):
        render_document(full_order, [])
