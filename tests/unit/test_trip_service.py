from typing import Dict, Optional
from unittest.mock import AsyncMock, Mock, patch

import pytest
import requests

from trip_planner.exceptions import (
    GenerationFailedException,
    InvalidPreferencesException,
    PaymentRequiredException,
    TripNotFoundException,
)
from trip_planner.itinerary_models import Activity, ActivityContext, DayPlan, Itinerary
from trip_planner.trip_preference import UserPreferences
from trip_planner.trip_service import TripService, generated_through, merge_days, plan_view, preview_day_count
from trip_planner.utils.payments import StripeCheckout
from trip_planner.utils.trip_store import BaseTripStore, TripRecord


class InMemoryTripStore(BaseTripStore):
    def __init__(self):
        self.records: Dict[str, str] = {}

    def create(self, record: TripRecord) -> bool:
        if record.id in self.records:
            return False
        self.records[record.id] = record.model_dump_json()
        return True

    def get(self, trip_id: str) -> Optional[TripRecord]:
        data = self.records.get(trip_id)
        return TripRecord.model_validate_json(data) if data else None

    def save(self, record: TripRecord) -> None:
        self.records[record.id] = record.model_dump_json()


def make_prefs(start="2025-06-01", end="2025-06-06", **overrides):
    data = {
        "destination": "Lisbon, Portugal",
        "startDate": start,
        "endDate": end,
        "tripType": "Solo",
        "demographics": {"gender": "Female", "age": "31"},
    }
    data.update(overrides)
    return UserPreferences.model_validate(data)


def make_itinerary(*day_numbers):
    return Itinerary(
        destination="Lisbon, Portugal",
        days=[
            DayPlan(day_number=n, title=f"Day {n}", morning=[Activity(name=f"Place {n}", maps_query=f"Place {n}")])
            for n in day_numbers
        ],
    )


@pytest.fixture
def trip_agent():
    agent = Mock()
    agent.validate_destination = AsyncMock()
    agent.get_smart_questions = AsyncMock(return_value=[])
    agent.generate_itinerary_partial = AsyncMock()
    agent.get_alternative_activity = AsyncMock()
    agent.generate_day_card_image = AsyncMock(side_effect=lambda day, destination: f"img-{day.day_number}")
    return agent


@pytest.fixture
def payments():
    payments = Mock()
    payments.enabled = True
    payments.price_cents = 500
    payments.is_session_paid.return_value = True
    payments.create_checkout_session.return_value = "https://checkout.stripe.com/c/pay/cs_test_1"
    return payments


@pytest.fixture
def store():
    return InMemoryTripStore()


@pytest.fixture
def mailer():
    return Mock()


@pytest.fixture
def service(trip_agent, store, mailer, payments):
    return TripService(trip_agent=trip_agent, trip_store=store, mailer=mailer, payments=payments)


def stored_trip(store, total_days=6, preview_days=2, unlocked=False, email=None):
    record = TripRecord(
        destination="Lisbon, Portugal",
        start_date="2025-06-01",
        end_date="2025-06-06",
        total_days=total_days,
        preview_days_generated=preview_days,
        plan=make_itinerary(*range(1, preview_days + 1)),
        images={n: f"img-{n}" for n in range(1, preview_days + 1)},
        user_preferences=make_prefs(),
        unlocked=unlocked,
        email=email,
    )
    store.create(record)
    return record


@pytest.mark.parametrize("total_days,expected", [(1, 1), (4, 1), (5, 2), (14, 2)])
def test_preview_day_count(total_days, expected):
    assert preview_day_count(total_days) == expected


def test_merge_days_orders_and_keeps_newest():
    existing = make_itinerary(1, 2).days
    new_days = make_itinerary(4, 3, 3).days
    new_days[2].title = "Second take"

    merged = merge_days(existing, new_days, 3)

    assert [day.day_number for day in merged] == [1, 2, 3, 4]
    assert merged[2].title == "Second take"


def test_merge_days_ignores_days_before_first_new_day():
    existing = make_itinerary(1, 2).days
    rewritten = make_itinerary(2, 3).days
    rewritten[0].title = "Overwritten preview"

    merged = merge_days(existing, rewritten, 3)

    assert [day.title for day in merged] == ["Day 1", "Day 2", "Day 3"]


def test_plan_view_uses_camel_case_and_string_day_keys(store):
    record = stored_trip(store)
    view = plan_view(record)
    assert view["images"] == {"1": "img-1", "2": "img-2"}
    assert view["plan"]["days"][0]["dayNumber"] == 1
    assert view["totalDays"] == 6
    assert view["unlocked"] is False


@pytest.mark.asyncio
async def test_generate_preview_stores_locked_trip(service, trip_agent, store):
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(1, 2)

    result = await service.generate_preview(make_prefs())

    assert result["totalDays"] == 6
    assert result["previewDays"] == 2
    trip_agent.generate_itinerary_partial.assert_awaited_once()
    assert trip_agent.generate_itinerary_partial.await_args.args[1:] == (1, 2)
    record = store.get(result["id"])
    assert record.unlocked is False
    assert record.preview_days_generated == 2
    assert record.images == {1: "img-1", 2: "img-2"}
    assert record.start_date == "2025-06-01"


@pytest.mark.asyncio
async def test_generate_preview_short_trip_gets_one_day(service, trip_agent):
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(1)
    result = await service.generate_preview(make_prefs(end="2025-06-03"))
    assert (result["totalDays"], result["previewDays"]) == (3, 1)


@pytest.mark.asyncio
async def test_generate_preview_without_images(trip_agent, store, mailer, payments):
    service = TripService(trip_agent, store, mailer, payments, generate_images=False)
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(1, 2)

    result = await service.generate_preview(make_prefs())

    trip_agent.generate_day_card_image.assert_not_awaited()
    assert store.get(result["id"]).images == {}


@pytest.mark.asyncio
async def test_generate_preview_keeps_days_whose_image_failed(service, trip_agent, store):
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(1, 2)
    trip_agent.generate_day_card_image.side_effect = ["img-1", None]

    result = await service.generate_preview(make_prefs())

    record = store.get(result["id"])
    assert len(record.plan.days) == 2
    assert record.images == {1: "img-1"}


@pytest.mark.asyncio
@pytest.mark.parametrize("plan", [None, Itinerary(destination="Lisbon")])
async def test_generate_preview_fails_without_days(service, trip_agent, store, plan):
    trip_agent.generate_itinerary_partial.return_value = plan
    with pytest.raises(GenerationFailedException):
        await service.generate_preview(make_prefs())
    assert store.records == {}


@pytest.mark.asyncio
async def test_generate_preview_rejects_incomplete_demographics(service, trip_agent):
    prefs = make_prefs(tripType="Family", demographics={"gender": "Male", "age": "40"})
    with pytest.raises(InvalidPreferencesException):
        await service.generate_preview(prefs)
    trip_agent.generate_itinerary_partial.assert_not_awaited()


@pytest.mark.asyncio
async def test_generate_preview_enriches_places(trip_agent, store, mailer, payments):
    google_place_api = Mock()
    google_place_api.batch_text_search = AsyncMock(
        return_value={"Place 1, Lisbon, Portugal": [{"latitude": 38.71, "longitude": -9.14, "place_id": "abc"}]}
    )
    service = TripService(trip_agent, store, mailer, payments, google_place_api=google_place_api)
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(1)

    result = await service.generate_preview(make_prefs(end="2025-06-02"))

    activity = store.get(result["id"]).plan.days[0].morning[0]
    assert (activity.latitude, activity.longitude, activity.place_id) == (38.71, -9.14, "abc")


@pytest.mark.asyncio
async def test_generate_preview_survives_enrichment_failure(trip_agent, store, mailer, payments):
    google_place_api = Mock()
    google_place_api.batch_text_search = AsyncMock(side_effect=RuntimeError("quota exceeded"))
    service = TripService(trip_agent, store, mailer, payments, google_place_api=google_place_api)
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(1)

    result = await service.generate_preview(make_prefs(end="2025-06-02"))

    assert store.get(result["id"]).plan.days[0].morning[0].latitude is None


def test_save_email_sends_preview(service, store, mailer):
    record = stored_trip(store)

    view = service.save_email(record.id, "traveler@example.com")

    assert store.get(record.id).email == "traveler@example.com"
    mailer.send_preview_email.assert_called_once_with("traveler@example.com", record.id, "Lisbon, Portugal", 500)
    assert view["unlocked"] is False


def test_save_email_unknown_trip(service):
    with pytest.raises(TripNotFoundException):
        service.save_email("missing", "traveler@example.com")


def test_get_trip(service, store):
    record = stored_trip(store)
    trip = service.get_trip(record.id)
    assert trip["destination"] == "Lisbon, Portugal"
    assert trip["startDate"] == "2025-06-01"
    assert trip["endDate"] == "2025-06-06"
    assert len(trip["plan"]["days"]) == 2


def test_get_trip_unknown(service):
    with pytest.raises(TripNotFoundException):
        service.get_trip("missing")


def test_create_checkout(service, store, payments):
    record = stored_trip(store)
    assert service.create_checkout(record.id) == {"url": "https://checkout.stripe.com/c/pay/cs_test_1"}
    payments.create_checkout_session.assert_called_once_with(record.id, "Lisbon, Portugal")


@pytest.mark.asyncio
async def test_unlock_generates_remaining_days(service, trip_agent, store, mailer, payments):
    record = stored_trip(store, email="traveler@example.com")
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(3, 4, 5, 6)

    result = await service.unlock(record.id, "cs_test_1")

    payments.is_session_paid.assert_called_once_with("cs_test_1", record.id)
    assert trip_agent.generate_itinerary_partial.await_args.args[1:] == (3, 6)
    assert result["success"] is True
    assert result["unlocked"] is True
    assert [day["dayNumber"] for day in result["plan"]["days"]] == [1, 2, 3, 4, 5, 6]
    assert sorted(result["images"]) == ["1", "2", "3", "4", "5", "6"]
    stored = store.get(record.id)
    assert stored.unlocked is True
    assert stored.preview_days_generated == 6
    mailer.send_full_trip_email.assert_called_once_with("traveler@example.com", record.id, "Lisbon, Portugal")


@pytest.mark.asyncio
async def test_unlock_requires_paid_session(service, trip_agent, store, payments):
    record = stored_trip(store)
    payments.is_session_paid.return_value = False

    with pytest.raises(PaymentRequiredException):
        await service.unlock(record.id, "cs_test_unpaid")
    with pytest.raises(PaymentRequiredException):
        await service.unlock(record.id)

    trip_agent.generate_itinerary_partial.assert_not_awaited()
    assert store.get(record.id).unlocked is False


@pytest.mark.asyncio
async def test_unlock_without_payments_configured(service, trip_agent, store, payments):
    record = stored_trip(store)
    payments.enabled = False
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(3, 4, 5, 6)

    result = await service.unlock(record.id)

    payments.is_session_paid.assert_not_called()
    assert result["unlocked"] is True


@pytest.mark.asyncio
async def test_unlock_twice_is_idempotent(service, trip_agent, store, mailer):
    record = stored_trip(store, email="traveler@example.com")
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(3, 4, 5, 6)
    await service.unlock(record.id, "cs_test_1")

    result = await service.unlock(record.id, "cs_test_1")

    assert result["message"] == "Already unlocked"
    assert len(result["plan"]["days"]) == 6
    assert trip_agent.generate_itinerary_partial.await_count == 1
    assert mailer.send_full_trip_email.call_count == 1


@pytest.mark.asyncio
async def test_unlock_retries_remaining_days_after_failure(service, trip_agent, store, mailer):
    record = stored_trip(store, email="traveler@example.com")
    trip_agent.generate_itinerary_partial.return_value = None

    first = await service.unlock(record.id, "cs_test_1")

    assert first["unlocked"] is True
    assert len(first["plan"]["days"]) == 2
    assert store.get(record.id).preview_days_generated == 2

    trip_agent.generate_itinerary_partial.return_value = make_itinerary(3, 4, 5, 6)
    second = await service.unlock(record.id)

    assert len(second["plan"]["days"]) == 6
    assert "message" not in second
    # only the first unlock sends the email
    assert mailer.send_full_trip_email.call_count == 1


@pytest.mark.asyncio
async def test_unlock_single_day_trip_needs_no_generation(service, trip_agent, store):
    record = stored_trip(store, total_days=1, preview_days=1)

    result = await service.unlock(record.id, "cs_test_1")

    trip_agent.generate_itinerary_partial.assert_not_awaited()
    assert result["unlocked"] is True


@pytest.mark.asyncio
async def test_unlock_unknown_trip(service):
    with pytest.raises(TripNotFoundException):
        await service.unlock("missing", "cs_test_1")


@pytest.mark.asyncio
async def test_regenerate_with_trip_uses_stored_preferences(service, trip_agent, store):
    record = stored_trip(store)
    trip_agent.get_alternative_activity.return_value = Activity(name="Time Out Market", type="restaurant")
    context = ActivityContext(day_title="Day 1", area="Cais do Sodré", time_of_day="evening")

    result = await service.regenerate_activity(
        Activity(name="Place 1"), context, prefs=make_prefs(destination="Porto"), trip_id=record.id
    )

    assert result["name"] == "Time Out Market"
    assert "mapsQuery" in result
    used_prefs = trip_agent.get_alternative_activity.await_args.args[0]
    assert used_prefs.destination == "Lisbon, Portugal"


@pytest.mark.asyncio
async def test_regenerate_returns_none_without_alternative(service, trip_agent):
    trip_agent.get_alternative_activity.return_value = None
    result = await service.regenerate_activity(Activity(name="X"), ActivityContext(), prefs=make_prefs())
    assert result is None


@pytest.mark.asyncio
async def test_regenerate_requires_preferences_or_trip(service):
    with pytest.raises(InvalidPreferencesException):
        await service.regenerate_activity(Activity(name="X"), ActivityContext())


def test_merge_days_ignores_days_after_last_new_day():
    merged = merge_days([], make_itinerary(1, 2, 3).days, 1, 1)
    assert [day.day_number for day in merged] == [1]


@pytest.mark.parametrize("day_numbers,expected", [((), 0), ((1, 2, 3), 3), ((1, 2, 4), 2), ((2, 3), 0)])
def test_generated_through(day_numbers, expected):
    assert generated_through(make_itinerary(*day_numbers).days) == expected


@pytest.mark.asyncio
async def test_generate_preview_does_not_store_days_beyond_the_preview(service, trip_agent, store):
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(1, 2, 3)

    result = await service.generate_preview(make_prefs(end="2025-06-04"))

    assert result["previewDays"] == 1
    record = store.get(result["id"])
    assert [day.day_number for day in record.plan.days] == [1]
    assert record.images == {1: "img-1"}
    assert [day["dayNumber"] for day in service.get_trip(result["id"])["plan"]["days"]] == [1]


@pytest.mark.asyncio
async def test_generate_preview_fails_when_only_unrequested_days_come_back(service, trip_agent, store):
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(3, 4)
    with pytest.raises(GenerationFailedException):
        await service.generate_preview(make_prefs())
    assert store.records == {}


@pytest.mark.asyncio
async def test_unlock_with_out_of_range_reply_retries_later(service, trip_agent, store):
    record = stored_trip(store, total_days=4, preview_days=1)
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(1, 2)

    first = await service.unlock(record.id, "cs_test_1")

    assert [day["dayNumber"] for day in first["plan"]["days"]] == [1, 2]
    assert store.get(record.id).preview_days_generated == 2

    trip_agent.generate_itinerary_partial.return_value = make_itinerary(3, 4)
    second = await service.unlock(record.id)

    assert trip_agent.generate_itinerary_partial.await_args.args[1:] == (3, 4)
    assert "message" not in second
    assert [day["dayNumber"] for day in second["plan"]["days"]] == [1, 2, 3, 4]
    assert store.get(record.id).preview_days_generated == 4


@pytest.mark.asyncio
async def test_unlock_with_gap_in_reply_regenerates_from_the_gap(service, trip_agent, store):
    record = stored_trip(store, total_days=5, preview_days=2)
    trip_agent.generate_itinerary_partial.return_value = make_itinerary(3, 5, 6)

    result = await service.unlock(record.id, "cs_test_1")

    assert [day["dayNumber"] for day in result["plan"]["days"]] == [1, 2, 3, 5]
    assert store.get(record.id).preview_days_generated == 3

    trip_agent.generate_itinerary_partial.return_value = make_itinerary(4, 5)
    await service.unlock(record.id)

    assert trip_agent.generate_itinerary_partial.await_args.args[1:] == (4, 5)
    stored = store.get(record.id)
    assert [day.day_number for day in stored.plan.days] == [1, 2, 3, 4, 5]
    assert stored.preview_days_generated == 5


@pytest.mark.asyncio
@patch("trip_planner.utils.payments.requests.request")
async def test_unlock_with_unknown_session_requires_payment(mock_request, trip_agent, store, mailer):
    response = Mock(status_code=404, text="No such checkout.session")
    response.raise_for_status.side_effect = requests.exceptions.HTTPError("404 Error", response=response)
    mock_request.return_value = response
    service = TripService(trip_agent, store, mailer, StripeCheckout(secret_key="sk_test_123"))
    record = stored_trip(store)

    with pytest.raises(PaymentRequiredException):
        await service.unlock(record.id, "cs_made_up")
    assert store.get(record.id).unlocked is False
