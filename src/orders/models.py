import typing as t
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Prefetch, Q

from accounts.models import StagepassUser
from common.models import TimeStampedModel
from events.models import Discount, Event, TicketType


class OrderQuerySet(models.QuerySet["Order"]):
    def full(self) -> t.Self:
        """Prefetch groups, lines, events and ticket types for serialization."""
        return self.prefetch_related(
            Prefetch(
                "events",
                queryset=EventOrderGroup.objects.select_related("event").prefetch_related(
                    Prefetch("tickets", queryset=TicketLine.objects.select_related("ticket_type"))
                ),
            )
        )

    def for_buyer(self, user: StagepassUser) -> t.Self:
        return self.filter(user=user)


class Order(TimeStampedModel):
    """The durable record of a completed purchase, grouped by event."""

    class PaymentStatus(models.TextChoices):
        COMPLETED = "completed", "Completed"
        REFUNDED = "refunded", "Refunded"

    class DeliveryStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        SENT = "sent", "Sent"
        FAILED = "failed", "Failed"

    user = models.ForeignKey(StagepassUser, on_delete=models.PROTECT, related_name="orders")
    first_name = models.CharField(max_length=150)
    last_name = models.CharField(max_length=150)
    email = models.EmailField()
    total_price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    payment_status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.COMPLETED)
    payment_intent_id = models.CharField(max_length=255, unique=True)
    payment_method_id = models.CharField(max_length=255)
    delivery_status = models.CharField(
        max_length=16, choices=DeliveryStatus.choices, default=DeliveryStatus.PENDING, db_index=True
    )
    delivery_error = models.TextField(blank=True, default="")
    delivered_at = models.DateTimeField(null=True, blank=True)

    objects = OrderQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Order {self.id} ({self.email})"

    @property
    def ticket_count(self) -> int:
        return sum(line.quantity for group in self.events.all() for line in group.tickets.all())


class EventOrderGroup(models.Model):
    """The tickets of one order that belong to one event."""

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="events")
    event = models.ForeignKey(Event, on_delete=models.PROTECT, related_name="order_groups")
    position = models.PositiveSmallIntegerField(default=0)

    class Meta:
        ordering = ["position"]
        constraints = [
            models.UniqueConstraint(fields=["order", "event"], name="unique_event_per_order"),
        ]

    def __str__(self) -> str:
        return f"{self.order_id} / {self.event_id}"


class TicketLine(models.Model):
    """``quantity`` physical tickets of one ticket type.

    ``used_markers`` holds the sorted sequence indices (1..quantity) that have
    been redeemed. It is only written by ``orders.service.redemption`` while the
    row is locked.
    """

    group = models.ForeignKey(EventOrderGroup, on_delete=models.CASCADE, related_name="tickets")
    ticket_type = models.ForeignKey(TicketType, on_delete=models.PROTECT, related_name="order_lines")
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    used_markers = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.UniqueConstraint(fields=["group", "ticket_type"], name="unique_ticket_type_per_group"),
            models.CheckConstraint(condition=Q(quantity__gte=1), name="ticket_line_quantity_positive"),
        ]

    def __str__(self) -> str:
        return f"{self.quantity} x {self.ticket_type_id}"

    def is_used(self, index: int) -> bool:
        return index in self.used_markers


class DiscountApplication(TimeStampedModel):
    """Discount codes applied when the payment intent was priced.

    Usage counters of the referenced discounts are incremented once, when the
    order for the payment intent is persisted (``usage_recorded_at``).
    """

    payment_intent_id = models.CharField(max_length=255, unique=True)
    user = models.ForeignKey(StagepassUser, on_delete=models.CASCADE, related_name="discount_applications")
    usage_recorded_at = models.DateTimeField(null=True, blank=True)

    def __str__(self) -> str:
        return f"Discounts for {self.payment_intent_id}"


class DiscountedTicket(models.Model):
    application = models.ForeignKey(DiscountApplication, on_delete=models.CASCADE, related_name="discounted_tickets")
    discount = models.ForeignKey(Discount, on_delete=models.SET_NULL, null=True, related_name="applications")
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="+")
    ticket_type = models.ForeignKey(TicketType, on_delete=models.CASCADE, related_name="+")
    discount_code = models.CharField(max_length=64)
    original_price = models.DecimalField(max_digits=10, decimal_places=2)
    discount_per_ticket = models.DecimalField(max_digits=10, decimal_places=2)
    new_price = models.DecimalField(max_digits=10, decimal_places=2)
    quantity = models.PositiveIntegerField()

    def __str__(self) -> str:
        return f"{self.discount_code} x {self.quantity}"
