from django.contrib import admin
from django.db.models import QuerySet
from django.http import HttpRequest
from unfold.admin import ModelAdmin, TabularInline

from orders.models import DiscountApplication, DiscountedTicket, EventOrderGroup, Order, TicketLine
from orders.tasks import resend_order_tickets


class EventOrderGroupInline(TabularInline):  # type: ignore[misc]
    model = EventOrderGroup
    extra = 0
    can_delete = False
    fields = ["event", "position"]
    readonly_fields = ["event", "position"]


@admin.register(Order)
class OrderAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["id", "email", "total_price", "currency", "payment_status", "delivery_status", "created_at"]
    list_filter = ["payment_status", "delivery_status", "created_at"]
    search_fields = ["id", "email", "payment_intent_id", "last_name"]
    readonly_fields = [
        "user",
        "total_price",
        "currency",
        "payment_intent_id",
        "payment_method_id",
        "delivery_status",
        "delivery_error",
        "delivered_at",
        "created_at",
    ]
    date_hierarchy = "created_at"
    inlines = [EventOrderGroupInline]
    actions = ["resend_tickets"]

    @admin.action(description="Resend tickets")
    def resend_tickets(self, request: HttpRequest, queryset: QuerySet[Order]) -> None:
        for order_id in queryset.values_list("id", flat=True):
            resend_order_tickets.delay(str(order_id))
        self.message_user(request, f"Queued ticket delivery for {queryset.count()} order(s).")


@admin.register(TicketLine)
class TicketLineAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["id", "group", "ticket_type", "quantity", "used_markers"]
    list_select_related = ["group", "ticket_type"]
    readonly_fields = ["used_markers"]


class DiscountedTicketInline(TabularInline):  # type: ignore[misc]
    model = DiscountedTicket
    extra = 0
    can_delete = False


@admin.register(DiscountApplication)
class DiscountApplicationAdmin(ModelAdmin):  # type: ignore[misc]
    list_display = ["payment_intent_id", "user", "usage_recorded_at", "created_at"]
    search_fields = ["payment_intent_id"]
    readonly_fields = ["usage_recorded_at"]
    inlines = [DiscountedTicketInline]
