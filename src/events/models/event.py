import typing as t
from datetime import datetime, timedelta

from django.db import models
from django.db.models import Q

from accounts.models import StagepassUser
from common.models import TimeStampedModel


class EventQuerySet(models.QuerySet["Event"]):
    def with_ticket_types(self) -> t.Self:
        return self.prefetch_related("ticket_types")

    def search(
        self,
        *,
        keyword: str | None = None,
        location: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> t.Self:
        """Case-insensitive keyword/location match, optionally restricted to a date window.

        An event matches the window when it starts or ends inside it. When only
        ``start`` is given the window spans one day.
        """
        qs = self
        if keyword:
            qs = qs.filter(Q(description__icontains=keyword) | Q(title__icontains=keyword))
        if location:
            qs = qs.filter(location__icontains=location)
        if start:
            end = end or start + timedelta(days=1)
            qs = qs.filter(Q(start_time__range=(start, end)) | Q(end_time__range=(start, end)))
        return qs


class Event(TimeStampedModel):
    organizer = models.ForeignKey(StagepassUser, on_delete=models.CASCADE, related_name="organized_events")
    title = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True, default="")
    location = models.CharField(max_length=255, db_index=True)
    start_time = models.DateTimeField(db_index=True)
    end_time = models.DateTimeField()
    artist_name = models.CharField(max_length=255, blank=True, default="")
    categories = models.JSONField(default=list, blank=True)
    image_urls = models.JSONField(default=list, blank=True)
    capacity = models.PositiveIntegerField(null=True, blank=True)

    objects = EventQuerySet.as_manager()

    class Meta:
        ordering = ["start_time"]
        constraints = [
            models.UniqueConstraint(
                fields=["title", "start_time", "location"], name="unique_event_title_start_location"
            ),
            models.CheckConstraint(condition=Q(end_time__gte=models.F("start_time")), name="event_ends_after_start"),
        ]

    def __str__(self) -> str:
        return self.title
