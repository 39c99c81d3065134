"""Shared fixtures: users, authenticated API clients, events and ticket types."""

import secrets
import string
import typing as t
from datetime import datetime, time, timedelta
from decimal import Decimal

import faker
import pytest
from django.core.cache import cache
from django.test.client import Client
from django.utils import timezone
from ninja_jwt.tokens import RefreshToken

from accounts.models import StagepassUser
from events.models import Event, TicketType


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> None:
    """Enable Celery eager mode for tests so tasks execute synchronously."""
    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True


@pytest.fixture(autouse=True)
def clear_cache() -> None:
    """Throttle counters live in the cache; start every test from zero."""
    cache.clear()


@pytest.fixture(autouse=True)
def spool_dir(settings: t.Any, tmp_path: t.Any) -> t.Any:
    """Spool ticket documents into a per-test directory."""
    path = tmp_path / "spool"
    settings.TICKET_SPOOL_DIR = str(path)
    return path


class StagepassUserFactory:
    """Factory for creating StagepassUser instances for testing."""

    fake = faker.Faker()

    def create_user(self, **kwargs: t.Any) -> StagepassUser:
        username = kwargs.pop(
            "username", "".join(secrets.choice(string.ascii_lowercase) for _ in range(8)) + "@user.test"
        )
        email = kwargs.pop("email", username)
        password = kwargs.pop("password", "password")
        first_name = kwargs.pop("first_name", self.fake.first_name())
        last_name = kwargs.pop("last_name", self.fake.last_name())
        return StagepassUser.objects.create_user(
            username=username,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            **kwargs,
        )

    def __call__(self, **kwargs: t.Any) -> StagepassUser:
        return self.create_user(**kwargs)


@pytest.fixture
def user_factory() -> StagepassUserFactory:
    return StagepassUserFactory()


@pytest.fixture
def user(user_factory: StagepassUserFactory) -> StagepassUser:
    """An attendee."""
    return user_factory()


@pytest.fixture
def organizer(user_factory: StagepassUserFactory) -> StagepassUser:
    """The organizer of the test events."""
    return user_factory(role=StagepassUser.Role.ORGANIZER)


@pytest.fixture
def staff_user(user_factory: StagepassUserFactory) -> StagepassUser:
    return user_factory(is_staff=True)


def client_for(user: StagepassUser) -> Client:
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")  # type: ignore[attr-defined]


@pytest.fixture
def user_client(user: StagepassUser) -> Client:
    return client_for(user)


@pytest.fixture
def organizer_client(organizer: StagepassUser) -> Client:
    return client_for(organizer)


@pytest.fixture
def staff_client(staff_user: StagepassUser) -> Client:
    return client_for(staff_user)


@pytest.fixture
def next_week() -> datetime:
    same_time_next_week = timezone.now() + timedelta(days=7)
    noon = time(hour=20, minute=0)
    return timezone.make_aware(
        datetime.combine(same_time_next_week.date(), noon),
        timezone.get_current_timezone(),
    )


@pytest.fixture
def event(organizer: StagepassUser, next_week: datetime) -> Event:
    """E1: a concert next week."""
    return Event.objects.create(
        organizer=organizer,
        title="Midnight Echoes",
        description="An evening of synth pop",
        location="Vancouver",
        start_time=next_week,
        end_time=next_week + timedelta(hours=3),
        artist_name="The Echoes",
    )


@pytest.fixture
def other_event(organizer: StagepassUser, next_week: datetime) -> Event:
    return Event.objects.create(
        organizer=organizer,
        title="Harbour Jazz",
        description="Open-air jazz by the water",
        location="Toronto",
        start_time=next_week + timedelta(days=1),
        end_time=next_week + timedelta(days=1, hours=2),
    )


@pytest.fixture
def ticket_type(event: Event) -> TicketType:
    """T1: general admission, five left."""
    return TicketType.objects.create(event=event, name="General", price=Decimal("50.00"), quantity_available=5)


@pytest.fixture
def vip_ticket_type(event: Event) -> TicketType:
    return TicketType.objects.create(event=event, name="VIP", price=Decimal("120.00"), quantity_available=2)


@pytest.fixture
def other_ticket_type(other_event: Event) -> TicketType:
    return TicketType.objects.create(event=other_event, name="Lawn", price=Decimal("30.00"), quantity_available=10)
