import typing as t

from django.contrib import admin
from django.forms import ModelChoiceField
from django.http import HttpRequest
from unfold.admin import ModelAdmin, TabularInline

from accounts.models import StagepassUser
from events.models import Discount, Event, TicketType


class TicketTypeInline(TabularInline):  # type: ignore[misc]
    model = TicketType
    extra = 0
    fields = ["name", "price", "currency", "quantity_available"]


@admin.register(Event)
class EventAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["title", "organizer", "location", "start_time", "end_time"]
    list_filter = ["start_time"]
    search_fields = ["title", "description", "location", "artist_name"]
    date_hierarchy = "start_time"
    inlines = [TicketTypeInline]

    def formfield_for_foreignkey(
        self, db_field: t.Any, request: HttpRequest, **kwargs: t.Any
    ) -> ModelChoiceField:
        if db_field.name == "organizer":
            kwargs["queryset"] = StagepassUser.objects.organizers()
        return super().formfield_for_foreignkey(db_field, request, **kwargs)  # type: ignore[no-any-return]


@admin.register(TicketType)
class TicketTypeAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["name", "event", "price", "currency", "quantity_available"]
    search_fields = ["name", "event__title"]
    list_select_related = ["event"]


@admin.register(Discount)
class DiscountAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["code", "event", "ticket_type", "discount_per_ticket", "used_count", "max_uses", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["code", "event__title"]
    readonly_fields = ["used_count"]
    list_select_related = ["event", "ticket_type"]
