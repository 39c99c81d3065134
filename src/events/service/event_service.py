from uuid import UUID

import structlog
from django.conf import settings
from django.core.exceptions import NON_FIELD_ERRORS, ValidationError
from django.db import IntegrityError, transaction
from django.db.models import QuerySet

from accounts.models import StagepassUser
from events.models import Event, TicketType
from events.schema import EventCreateSchema, EventSearchSchema

logger = structlog.get_logger(__name__)

DUPLICATE_EVENT_MESSAGE = "An event with the same title, start time and location already exists."


def search_events(filters: EventSearchSchema) -> QuerySet[Event]:
    return (
        Event.objects.with_ticket_types()
        .select_related("organizer")
        .search(
            keyword=filters.keyword,
            location=filters.location,
            start=filters.start_date,
            end=filters.end_date,
        )
    )


def ticket_types_for(event_id: UUID) -> QuerySet[TicketType]:
    return TicketType.objects.filter(event_id=event_id).order_by("price", "name")


def create_event(organizer: StagepassUser, payload: EventCreateSchema) -> Event:
    """Create an event together with its ticket types.

    Raises:
        ValidationError: an event with the same title, start time and location exists,
            or the event or one of its ticket types is invalid.
    """
    data = payload.model_dump(exclude={"ticket_types"})
    if Event.objects.filter(
        title=payload.title, start_time=payload.start_time, location=payload.location
    ).exists():
        raise ValidationError({NON_FIELD_ERRORS: [DUPLICATE_EVENT_MESSAGE]})
    try:
        with transaction.atomic():
            event = Event.objects.create(organizer=organizer, **data)
            for ticket_type in payload.ticket_types:
                TicketType.objects.create(
                    event=event,
                    name=ticket_type.name,
                    price=ticket_type.price,
                    currency=ticket_type.currency or settings.DEFAULT_CURRENCY,
                    quantity_available=ticket_type.quantity_available,
                )
    except IntegrityError as e:
        raise ValidationError({NON_FIELD_ERRORS: [DUPLICATE_EVENT_MESSAGE]}) from e
    logger.info("event_created", event_id=str(event.id), organizer_id=str(organizer.id))
    return Event.objects.with_ticket_types().select_related("organizer").get(pk=event.pk)
