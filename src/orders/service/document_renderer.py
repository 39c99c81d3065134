import typing as t
from collections import defaultdict

import structlog
from django.template.loader import render_to_string
from django.utils import timezone

from orders.exceptions import DocumentRenderingError
from orders.models import Order

from .qr_service import QRCodeRecord

logger = structlog.get_logger(__name__)

TEMPLATE_NAME = "orders/tickets.html"


def html_to_pdf(html_string: str) -> bytes:
    """Render an HTML document to PDF bytes with weasyprint."""
    from weasyprint import HTML  # imported lazily, it loads pango on import

    return t.cast(bytes, HTML(string=html_string).write_pdf())


def build_context(order: Order, records: list[QRCodeRecord]) -> dict[str, t.Any]:
    codes: dict[tuple[t.Any, t.Any], list[dict[str, t.Any]]] = defaultdict(list)
    for record in records:
        codes[(record.event_id, record.ticket_type_id)].append(
            {"index": record.index, "payload": record.encode(), "qr_code_base64": record.as_png_base64()}
        )

    groups = []
    for group in order.events.all():
        event = group.event
        groups.append(
            {
                "title": event.title,
                "location": event.location,
                "start_datetime": timezone.localtime(event.start_time).strftime("%A, %B %d, %Y at %I:%M %p %Z"),
                "lines": [
                    {
                        "name": line.ticket_type.name,
                        "price": line.ticket_type.price,
                        "quantity": line.quantity,
                        "codes": codes.get((event.id, line.ticket_type_id), []),
                    }
                    for line in group.tickets.all()
                ],
            }
        )
    return {
        "order_id": str(order.id),
        "buyer_name": f"{order.first_name} {order.last_name}".strip(),
        "email": order.email,
        "total_price": order.total_price,
        "currency": order.currency,
        "groups": groups,
    }


def render_document(order: Order, records: list[QRCodeRecord]) -> bytes:
    """Render the printable tickets of an order.

    Args:
        order: The persisted order, with groups, lines, events and ticket types prefetched.
        records: One QR record per ticket unit.

    Returns:
        The PDF content as bytes.

    Raises:
        DocumentRenderingError: The template or the PDF engine failed.
    """
    try:
        html_string = render_to_string(TEMPLATE_NAME, context=build_context(order, records))
        pdf = html_to_pdf(html_string)
    except Exception as e:
        logger.exception("ticket_document_render_failed", order_id=str(order.id))
        raise DocumentRenderingError() from e
    if not pdf:
        raise DocumentRenderingError()
    logger.info("ticket_document_rendered", order_id=str(order.id), codes=len(records), size=len(pdf))
    return pdf
