from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import F, Q

from common.models import TimeStampedModel

from .event import Event


class TicketType(TimeStampedModel):
    """A purchasable category of admission for one event.

    ``quantity_available`` is the remaining inventory. It is only ever changed
    through conditional UPDATEs in ``orders.service.inventory``.
    """

    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="ticket_types")
    name = models.CharField(max_length=100)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0"))])
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    quantity_available = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["price"]
        constraints = [
            models.UniqueConstraint(fields=["event", "name"], name="unique_ticket_type_name_per_event"),
            models.CheckConstraint(condition=Q(quantity_available__gte=0), name="ticket_type_quantity_non_negative"),
        ]

    def __str__(self) -> str:
        return f"{self.name} - {self.price}"


class DiscountQuerySet(models.QuerySet["Discount"]):
    def record_usage(self, discount_id: object, quantity: int) -> bool:
        """Count ``quantity`` uses of a discount without reading it first.

        ``used_count`` never passes ``max_uses``. When the uses do not fit, the count
        is clamped to the limit and ``False`` is returned.
        """
        within_limit = Q(max_uses__isnull=True) | Q(max_uses__gte=F("used_count") + quantity)
        if self.filter(within_limit, pk=discount_id).update(used_count=F("used_count") + quantity):
            return True
        self.filter(pk=discount_id, max_uses__isnull=False).update(used_count=F("max_uses"))
        return False

    def active(self) -> "DiscountQuerySet":
        return self.filter(is_active=True)


class Discount(TimeStampedModel):
    """A discount code valid for one ticket type."""

    code = models.CharField(max_length=64, db_index=True)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="discounts")
    ticket_type = models.ForeignKey(TicketType, on_delete=models.CASCADE, related_name="discounts")
    discount_per_ticket = models.DecimalField(
        max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0"))]
    )
    max_uses = models.PositiveIntegerField(null=True, blank=True, help_text="Leave empty for unlimited uses.")
    used_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    objects = DiscountQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["code", "ticket_type"], name="unique_discount_code_per_ticket_type"),
        ]

    def __str__(self) -> str:
        return self.code

    def remaining_uses(self) -> int | None:
        if self.max_uses is None:
            return None
        return max(self.max_uses - self.used_count, 0)

    def price_for(self, price: Decimal) -> Decimal:
        """Discounted unit price, floored at zero."""
        return max(price - self.discount_per_ticket, Decimal("0"))
