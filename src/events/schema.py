import typing as t
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import AwareDatetime, Field, model_validator

from common.schema import OneToOneFiftyString, StrippedString
from events.models import Event, TicketType


class EventSearchSchema(Schema):
    keyword: StrippedString | None = None
    location: StrippedString | None = None
    start_date: AwareDatetime | None = None
    end_date: AwareDatetime | None = None

    @model_validator(mode="after")
    def check_window(self) -> t.Self:
        if self.end_date and not self.start_date:
            raise ValueError("end_date requires start_date.")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date.")
        return self


class TicketTypeSchema(ModelSchema):
    id: UUID
    event_id: UUID
    price: Decimal

    class Meta:
        model = TicketType
        fields = ["name", "currency", "quantity_available"]


class EventSchema(ModelSchema):
    id: UUID
    organizer_id: UUID
    organizer_name: str
    start_time: datetime
    end_time: datetime

    class Meta:
        model = Event
        fields = ["title", "description", "location", "artist_name", "categories", "image_urls", "capacity"]

    @staticmethod
    def resolve_organizer_name(obj: Event) -> str:
        return obj.organizer.get_display_name()


class EventDetailSchema(EventSchema):
    ticket_types: list[TicketTypeSchema]


class TicketTypeCreateSchema(Schema):
    name: OneToOneFiftyString
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    quantity_available: int = Field(ge=0)


class EventCreateSchema(Schema):
    title: OneToOneFiftyString
    description: StrippedString = Field(min_length=1)
    location: OneToOneFiftyString
    start_time: AwareDatetime
    end_time: AwareDatetime
    artist_name: OneToOneFiftyString
    categories: list[str]
    image_urls: list[str]
    capacity: int | None = Field(default=None, ge=1)
    ticket_types: list[TicketTypeCreateSchema] = Field(min_length=1)

    @model_validator(mode="after")
    def check_times(self) -> t.Self:
        if self.end_time < self.start_time:
            raise ValueError("end_time must not be before start_time.")
        return self
