"""Error taxonomy for the order workflow.

Every error carries an HTTP status, a stable machine-readable ``code`` and a
user-safe message. The workflow stamps ``stage`` on errors raised while it is
running so callers can tell at which step an order failed.
"""

import typing as t
from uuid import UUID

from django.utils.translation import gettext_lazy as _


class OrderError(Exception):
    """Base class for expected order workflow failures."""

    status_code: int = 400
    code: str = "order_error"
    default_message: t.Any = _("The order could not be processed.")

    def __init__(self, message: str | None = None, *, stage: str | None = None) -> None:
        self.message = message or str(self.default_message)
        self.stage = stage
        super().__init__(self.message)


class OrderValidationError(OrderError):
    """Missing or malformed input. Never mutates state."""

    code = "validation_error"
    default_message = _("Invalid request.")


class NotFoundError(OrderError):
    status_code = 404
    code = "not_found"
    default_message = _("Not found.")


class AuthorizationError(OrderError):
    status_code = 403
    code = "forbidden"
    default_message = _("You are not allowed to access this order.")


class InsufficientInventoryError(OrderError):
    code = "insufficient_inventory"

    def __init__(self, ticket_type_id: UUID | str, *, stage: str | None = None) -> None:
        self.ticket_type_id = str(ticket_type_id)
        super().__init__(
            str(_("Not enough tickets available for {ticket_type_id}.")).format(ticket_type_id=ticket_type_id),
            stage=stage,
        )


class PaymentMismatchError(OrderError):
    """The payment confirmation is not succeeded or belongs to someone else."""

    class Reason:
        MISMATCH = "mismatch"
        NOT_SUCCEEDED = "not_succeeded"

    def __init__(self, reason: str, message: str | None = None, *, stage: str | None = None) -> None:
        self.reason = reason
        self.code = "payment_mismatch" if reason == self.Reason.MISMATCH else "payment_not_succeeded"
        super().__init__(message or str(_("Payment Intent Mismatch")), stage=stage)


class AlreadyUsedError(OrderError):
    code = "already_used"
    default_message = _("Ticket already used")


class DependencyError(OrderError):
    """A payment, rendering or mail provider failed."""

    status_code = 502
    code = "dependency_error"
    default_message = _("An upstream service failed. Please try again later.")


class DependencyTimeoutError(DependencyError):
    status_code = 504
    code = "dependency_timeout"
    default_message = _("An upstream service timed out. Please try again later.")


class DocumentRenderingError(DependencyError):
    code = "rendering_failed"
    default_message = _("The ticket document could not be rendered.")


class DeliveryError(DependencyError):
    code = "delivery_failed"
    default_message = _("The ticket email could not be delivered.")


class TicketDeliveryError(OrderError):
    """The order exists but its tickets could not be issued or delivered.

    Distinct from every pre-commit failure: the payment was taken, the order is
    persisted, and the tickets can be re-sent.
    """

    status_code = 502
    code = "ticket_delivery_failed"

    def __init__(self, order_id: UUID, cause: OrderError, *, stage: str | None = None) -> None:
        self.order_id = order_id
        self.cause = cause
        super().__init__(
            str(_("Your order {order_id} was created but the tickets could not be delivered.")).format(
                order_id=order_id
            ),
            stage=stage or cause.stage,
        )
