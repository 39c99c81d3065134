"""One QR code per physical ticket unit.

The payload is canonical JSON (sorted keys, compact separators, no timestamps)
so that issuing the same ticket twice yields byte-identical codes.
"""

import base64
import typing as t
from dataclasses import dataclass
from io import BytesIO
from uuid import UUID

import orjson
import qrcode

from orders.exceptions import OrderValidationError


@dataclass(frozen=True)
class QRCodeRecord:
    order_id: UUID
    event_id: UUID
    ticket_type_id: UUID
    index: int

    def encode(self) -> str:
        payload = {
            "orderId": str(self.order_id),
            "eventId": str(self.event_id),
            "ticketId": str(self.ticket_type_id),
            "index": self.index,
        }
        return orjson.dumps(payload, option=orjson.OPT_SORT_KEYS).decode()

    @classmethod
    def decode(cls, payload: str | bytes) -> "QRCodeRecord":
        """Parse a scanned payload back into the record it was issued from."""
        try:
            data = orjson.loads(payload)
            record = cls(
                order_id=UUID(data["orderId"]),
                event_id=UUID(data["eventId"]),
                ticket_type_id=UUID(data["ticketId"]),
                index=data["index"],
            )
        except (orjson.JSONDecodeError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise OrderValidationError("Malformed QR code payload.") from e
        if not isinstance(record.index, int) or isinstance(record.index, bool) or record.index < 1:
            raise OrderValidationError("Malformed QR code payload.")
        return record

    def as_png_base64(self) -> str:
        return render_png_base64(self.encode())


def issue(order_id: UUID, event_id: UUID, ticket_type_id: UUID, quantity: int) -> list[QRCodeRecord]:
    """Return the records for indices 1..quantity of a ticket line."""
    if quantity <= 0:
        raise OrderValidationError(f"Invalid quantity {quantity} for ticket {ticket_type_id}.")
    return [
        QRCodeRecord(order_id=order_id, event_id=event_id, ticket_type_id=ticket_type_id, index=index)
        for index in range(1, quantity + 1)
    ]


def issue_for_order(order: t.Any) -> list[QRCodeRecord]:
    """Records for every unit of every line of a persisted order, in order."""
    records: list[QRCodeRecord] = []
    for group in order.events.all():
        for line in group.tickets.all():
            records.extend(issue(order.id, group.event_id, line.ticket_type_id, line.quantity))
    return records


def render_png_base64(data: str) -> str:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffered = BytesIO()
    img.save(buffered, "PNG")
    return base64.b64encode(buffered.getvalue()).decode("utf-8")
