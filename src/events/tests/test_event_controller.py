import typing as t
from datetime import datetime, timedelta
from decimal import Decimal

import orjson
import pytest
from django.test.client import Client
from django.urls import reverse

from accounts.models import StagepassUser
from events.models import Event, TicketType

pytestmark = pytest.mark.django_db


def search(client: Client, **params: str) -> list[str]:
    response = client.get(reverse("api:search_events"), params)
    assert response.status_code == 200, response.content
    return [item["title"] for item in response.json()["results"]]


def test_keyword_matches_title_or_description(client: Client, event: Event, other_event: Event) -> None:
    assert search(client, keyword="SYNTH") == ["Midnight Echoes"]
    assert search(client, keyword="harbour") == ["Harbour Jazz"]


def test_location_filter(client: Client, event: Event, other_event: Event) -> None:
    assert search(client, location="toronto") == ["Harbour Jazz"]


def test_start_date_without_end_date_spans_one_day(
    client: Client, event: Event, other_event: Event, next_week: datetime
) -> None:
    start = (next_week - timedelta(hours=1)).isoformat()

    assert search(client, start_date=start) == ["Midnight Echoes"]


def test_date_window(client: Client, event: Event, other_event: Event, next_week: datetime) -> None:
    start = (next_week - timedelta(hours=1)).isoformat()
    end = (next_week + timedelta(days=2)).isoformat()

    assert search(client, start_date=start, end_date=end) == ["Midnight Echoes", "Harbour Jazz"]


def test_search_includes_ticket_types(client: Client, ticket_type: TicketType) -> None:
    response = client.get(reverse("api:search_events"), {"keyword": "echoes"})

    [result] = response.json()["results"]
    assert result["ticket_types"][0]["id"] == str(ticket_type.id)
    assert result["organizer_name"] == ticket_type.event.organizer.get_display_name()


def test_end_before_start_is_rejected(client: Client, next_week: datetime) -> None:
    response = client.get(
        reverse("api:search_events"),
        {"start_date": next_week.isoformat(), "end_date": (next_week - timedelta(days=1)).isoformat()},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"


def test_ticket_types(client: Client, ticket_type: TicketType, vip_ticket_type: TicketType) -> None:
    response = client.get(reverse("api:list_ticket_types", kwargs={"event_id": ticket_type.event_id}))

    assert response.status_code == 200
    assert [t["name"] for t in response.json()] == ["General", "VIP"]
    assert response.json()[0]["quantity_available"] == 5


def test_ticket_types_of_unknown_event(client: Client) -> None:
    response = client.get(reverse("api:list_ticket_types", kwargs={"event_id": "6f1c1a0e-4d4f-4d55-9a43-5b0f3c1c9a11"}))

    assert response.status_code == 404


def event_payload(start: datetime, **overrides: object) -> dict[str, object]:
    return {
        "title": "Northern Lights",
        "description": "Ambient set under the stars",
        "location": "Whitehorse",
        "start_time": start.isoformat(),
        "end_time": (start + timedelta(hours=2)).isoformat(),
        "artist_name": "Aurora Trio",
        "categories": ["ambient"],
        "image_urls": [],
        "ticket_types": [{"name": "General", "price": "25.00", "quantity_available": 100}],
        **overrides,
    }


def post_event(client: Client, payload: dict[str, object]) -> t.Any:
    return client.post(reverse("api:create_event"), data=orjson.dumps(payload), content_type="application/json")


def test_organizer_creates_event(organizer_client: Client, organizer: StagepassUser, next_week: datetime) -> None:
    response = post_event(organizer_client, event_payload(next_week))

    assert response.status_code == 201, response.content
    data = response.json()
    assert data["organizer_id"] == str(organizer.id)
    assert data["organizer_name"] == organizer.get_display_name()
    [ticket_type] = data["ticket_types"]
    assert ticket_type["name"] == "General"
    assert Decimal(ticket_type["price"]) == Decimal("25.00")
    assert ticket_type["quantity_available"] == 100
    event = Event.objects.get(pk=data["id"])
    assert event.ticket_types.get().currency == "CAD"


def test_attendee_cannot_create_event(user_client: Client, next_week: datetime) -> None:
    response = post_event(user_client, event_payload(next_week))

    assert response.status_code == 403
    assert not Event.objects.exists()


def test_anonymous_cannot_create_event(client: Client, next_week: datetime) -> None:
    assert post_event(client, event_payload(next_week)).status_code == 401


def test_duplicate_event_is_rejected(organizer_client: Client, event: Event) -> None:
    payload = event_payload(event.start_time, title=event.title, location=event.location)

    response = post_event(organizer_client, payload)

    assert response.status_code == 400
    assert response.json() == {
        "errors": {"__all__": ["An event with the same title, start time and location already exists."]}
    }
    assert Event.objects.count() == 1


def test_event_missing_fields(organizer_client: Client, next_week: datetime) -> None:
    payload = event_payload(next_week)
    del payload["artist_name"]

    response = post_event(organizer_client, payload)

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert not Event.objects.exists()
