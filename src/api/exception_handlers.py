"""Exception handlers for the API."""

import traceback
import typing as t
from copy import deepcopy

import orjson
import structlog
from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.errors import ValidationError as NinjaValidationError
from ninja.responses import Response

from orders.exceptions import OrderError, TicketDeliveryError

logger = structlog.get_logger(__name__)


def handle_general_exception(request: HttpRequest, exc: Exception | t.Type[Exception]) -> Response:
    """Handle a general exception.

    Args:
        request: The incoming HTTP request.
        exc: The exception.

    Returns:
        The response.
    """
    is_staff = getattr(request, "user", None) and request.user.is_staff
    metadata = {
        "headers": obfuscate(dict(request.headers)),
        "method": request.method,
        "path": request.path,
        "GET": obfuscate(request.GET.dict()),
    }
    if request.method in ("POST", "PUT", "PATCH") and request.headers.get("Content-Type") == "application/json":
        try:
            metadata["json_payload"] = obfuscate(orjson.loads(request.body))
        except orjson.JSONDecodeError:  # pragma: no cover
            metadata["json_payload"] = None
    logger.exception("internal_server_error", **metadata)
    data = {"detail": "Internal Server Error."}
    if settings.DEBUG or is_staff:  # pragma: no cover
        data["traceback"] = traceback.format_exc()
    return Response(status=500, data=data)


def handle_django_validation_error(request: HttpRequest, exc: ValidationError | t.Type[ValidationError]) -> Response:
    """Handle a validation error.

    Args:
        request: The incoming HTTP request.
        exc: The exception.
    """
    logger.warning("validation_error", path=request.path)
    if hasattr(exc, "error_dict"):
        error_dict = {k: [ee for e in v for ee in e] for k, v in exc.error_dict.items()}
    else:
        error_dict = {"__all__": list(exc.messages)}  # type: ignore[union-attr]
    return Response(status=400, data={"errors": error_dict})


def handle_request_validation_error(
    request: HttpRequest, exc: NinjaValidationError | t.Type[NinjaValidationError]
) -> Response:
    """Malformed or incomplete request input is a 400, like every other validation failure."""
    assert isinstance(exc, NinjaValidationError)
    logger.info("request_validation_error", path=request.path, errors=len(exc.errors))
    return Response(
        status=400,
        data={"detail": "Invalid request.", "code": "validation_error", "errors": list(exc.errors)},
    )


def order_error_payload(exc: OrderError) -> dict[str, t.Any]:
    data: dict[str, t.Any] = {"detail": exc.message, "code": exc.code}
    if exc.stage:
        data["stage"] = str(exc.stage)
    return data


def handle_order_error(request: HttpRequest, exc: OrderError | t.Type[OrderError]) -> Response:
    """Map an order workflow error to its status code."""
    assert isinstance(exc, OrderError)
    log = logger.error if exc.status_code >= 500 else logger.info
    log("order_error", code=exc.code, stage=exc.stage, status=exc.status_code, path=request.path)
    return Response(status=exc.status_code, data=order_error_payload(exc))


def handle_ticket_delivery_error(
    request: HttpRequest, exc: TicketDeliveryError | t.Type[TicketDeliveryError]
) -> Response:
    """The order exists; tell the client which one so the tickets can be re-sent."""
    assert isinstance(exc, TicketDeliveryError)
    logger.error("ticket_delivery_error", order_id=str(exc.order_id), stage=exc.stage, cause=exc.cause.code)
    data = order_error_payload(exc)
    data["order_id"] = str(exc.order_id)
    return Response(status=exc.status_code, data=data)


SENSITIVE_KEYS = {"password", "token", "x-api-key", "authorization", "authentication", "cookie"}


def obfuscate(data: dict[str, t.Any]) -> dict[str, t.Any]:
    """Obfuscate sensitive data in payloads and headers."""
    if not isinstance(data, dict):
        return data
    new_data = deepcopy(data)
    for key in data.keys():
        if key.lower() in SENSITIVE_KEYS:
            new_data[key] = "********"
    return new_data
