import pytest
from django.contrib import admin
from django.test import RequestFactory

from accounts.models import StagepassUser
from events.admin import EventAdmin
from events.models import Event

pytestmark = pytest.mark.django_db


def test_only_organizers_can_be_picked_as_event_organizer(
    rf: RequestFactory, user: StagepassUser, organizer: StagepassUser, staff_user: StagepassUser
) -> None:
    model_admin = EventAdmin(Event, admin.site)
    request = rf.get("/admin/events/event/add/")
    request.user = staff_user

    field = model_admin.formfield_for_foreignkey(Event._meta.get_field("organizer"), request)

    assert list(field.queryset) == [organizer]
