import typing as t
from uuid import UUID

from django.shortcuts import get_object_or_404
from ninja import Query
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate

from common.auth_base import BaseJWTAuth
from common.controllers import UserAwareController
from common.schema import ValidationErrorResponse
from common.throttling import WriteThrottle
from events import schema
from events.models import Event
from events.service import event_service


@api_controller("/events", tags=["Events"])
class EventController(UserAwareController):
    @route.post(
        "/",
        url_name="create_event",
        auth=BaseJWTAuth(requires_organizer=True),
        response={201: schema.EventDetailSchema, 400: ValidationErrorResponse},
        throttle=WriteThrottle(),
    )
    def create_event(self, payload: schema.EventCreateSchema) -> tuple[int, Event]:
        """Create an event with its ticket types. Organizers only.

        An event with the same title, start time and location is rejected with 400.
        """
        return 201, event_service.create_event(self.user(), payload)

    @route.get("/search", url_name="search_events", response=PaginatedResponseSchema[schema.EventDetailSchema])
    @paginate(PageNumberPaginationExtra, page_size=20)
    def search_events(self, filters: Query[schema.EventSearchSchema]) -> t.Any:
        """Search events by keyword and location.

        Keyword matches title or description, case-insensitively. With a
        `start_date` the results are limited to events that start or end in the
        window; without an `end_date` the window is one day long.
        """
        return event_service.search_events(filters)

    @route.get("/{event_id}/ticket-types", url_name="list_ticket_types", response=list[schema.TicketTypeSchema])
    def list_ticket_types(self, event_id: UUID) -> t.Any:
        get_object_or_404(Event, pk=event_id)
        return event_service.ticket_types_for(event_id)
