from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja.errors import ValidationError as NinjaValidationError
from ninja_extra import NinjaExtraAPI
from ninja_jwt.controller import NinjaJWTDefaultController

from common.schema import ResponseOk, VersionResponse
from common.throttling import AnonDefaultThrottle, UserDefaultThrottle
from events.controllers.events import EventController
from orders.controllers.orders import OrderController
from orders.exceptions import OrderError, TicketDeliveryError

from .exception_handlers import (
    handle_django_validation_error,
    handle_general_exception,
    handle_order_error,
    handle_request_validation_error,
    handle_ticket_delivery_error,
)

api = NinjaExtraAPI(
    title="Stagepass API",
    docs_url="/docs",
    version=settings.VERSION,
    description=f"Stagepass API {settings.VERSION}",
    app_name=f"stagepass-api-{settings.VERSION}",
    urls_namespace="api",
    servers=[
        {"url": settings.SERVICE_URL, "description": settings.SERVICE_DESCRIPTION},
    ],
    throttle=[AnonDefaultThrottle(), UserDefaultThrottle()],
)


@api.get("/version", tags=["Version"], response={200: VersionResponse})
def version(request: HttpRequest) -> tuple[int, VersionResponse]:
    """Get the API version.

    Args:
        request: The incoming HTTP request.

    Returns:
        The response status code and message.
    """
    return 200, VersionResponse(version=settings.VERSION)


@api.get("/healthcheck", tags=["Healthcheck"], response={200: ResponseOk})
def healthcheck(request: HttpRequest) -> tuple[int, ResponseOk]:
    """Check the health of the API."""
    return 200, ResponseOk()


api.register_controllers(
    NinjaJWTDefaultController,
    EventController,
    OrderController,
)

EXCEPTION_HANDLERS = {
    Exception: handle_general_exception,
    ValidationError: handle_django_validation_error,
    NinjaValidationError: handle_request_validation_error,
    OrderError: handle_order_error,
    TicketDeliveryError: handle_ticket_delivery_error,
}

for exc, handler in EXCEPTION_HANDLERS.items():
    api.add_exception_handler(exc, handler)
