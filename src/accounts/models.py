import re
import uuid

from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


class StagepassUserManager(UserManager["StagepassUser"]):
    def organizers(self) -> models.QuerySet["StagepassUser"]:
        """Users allowed to run events."""
        return self.get_queryset().filter(role=StagepassUser.Role.ORGANIZER)


class StagepassUser(AbstractUser):
    class Role(models.TextChoices):
        ATTENDEE = "attendee", "Attendee"
        ORGANIZER = "organizer", "Organizer"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.ATTENDEE, db_index=True)
    image_url = models.URLField(max_length=500, blank=True, default="")
    bio = models.TextField(blank=True, default="")

    objects = StagepassUserManager()  # type: ignore[misc]

    class Meta:
        ordering = ["username"]

    @property
    def is_organizer(self) -> bool:
        return self.role == self.Role.ORGANIZER

    def get_display_name(self) -> str:
        """Returns the user's full name, or a prettified username as a fallback."""
        return self.get_full_name() or re.sub(r"(\W|_)+", " ", self.username.split("@")[0]).title()
