import asyncio
import logging
from typing import Dict, List, Optional

from trip_planner.exceptions import (
    AppException,
    GenerationFailedException,
    InvalidPreferencesException,
    PaymentRequiredException,
    TripNotFoundException,
)
from trip_planner.itinerary_models import Activity, ActivityContext, DayPlan, DestinationValidation, SmartQuestion
from trip_planner.trip_agent import TripAgent
from trip_planner.trip_preference import UserPreferences, trip_days, validate_demographics
from trip_planner.utils.google_place_api import GooglePlaceAPI
from trip_planner.utils.mailer import Mailer
from trip_planner.utils.payments import StripeCheckout
from trip_planner.utils.place_enrichment import enrich_days_with_places
from trip_planner.utils.trip_store import BaseTripStore, TripRecord

logger = logging.getLogger(__name__)

LONG_TRIP_DAYS = 5
MAX_ID_ATTEMPTS = 3


def preview_day_count(total_days: int) -> int:
    """Days generated before payment: 1 for trips up to 4 days, 2 from 5 days on."""
    return 2 if total_days >= LONG_TRIP_DAYS else 1


def merge_days(
    existing: List[DayPlan], new_days: List[DayPlan], first_new_day: int, last_new_day: Optional[int] = None
) -> List[DayPlan]:
    """
    Merge freshly generated days into the stored ones, ordered by day number.

    Only new days numbered first_new_day..last_new_day are taken, so the model can
    neither overwrite the preview nor add days that were not requested. A day
    number generated twice keeps the newest version.
    """
    merged = {day.day_number: day for day in existing}
    for day in new_days:
        if day.day_number >= first_new_day and (last_new_day is None or day.day_number <= last_new_day):
            merged[day.day_number] = day
        else:
            logger.info(f"Ignoring out-of-scope day {day.day_number}")
    return [merged[day_number] for day_number in sorted(merged)]


def generated_through(days: List[DayPlan]) -> int:
    """Highest day number D such that days 1..D are all present."""
    day_numbers = {day.day_number for day in days}
    last_day = 0
    while last_day + 1 in day_numbers:
        last_day += 1
    return last_day


def plan_view(record: TripRecord) -> dict:
    return {
        "plan": record.plan.model_dump(mode="json", by_alias=True),
        "images": {str(day_number): image for day_number, image in record.images.items()},
        "unlocked": record.unlocked,
        "totalDays": record.total_days,
    }


class TripService:
    """Preview generation, paid unlock and activity swaps on top of the agent and the trip store."""

    def __init__(
        self,
        trip_agent: TripAgent,
        trip_store: BaseTripStore,
        mailer: Mailer,
        payments: StripeCheckout,
        google_place_api: Optional[GooglePlaceAPI] = None,
        generate_images: bool = True,
    ):
        self.trip_agent = trip_agent
        self.trip_store = trip_store
        self.mailer = mailer
        self.payments = payments
        self.google_place_api = google_place_api
        self.generate_images = generate_images

    def _load(self, trip_id: str) -> TripRecord:
        record = self.trip_store.get(trip_id)
        if record is None:
            raise TripNotFoundException(trip_id)
        return record

    async def _day_images(self, days: List[DayPlan], destination: str) -> Dict[int, str]:
        """One illustration per day, generated independently; days whose image failed are left out."""
        if not self.generate_images or not days:
            return {}
        images = await asyncio.gather(
            *(self.trip_agent.generate_day_card_image(day, destination) for day in days)
        )
        return {day.day_number: image for day, image in zip(days, images) if image}

    async def _enrich(self, days: List[DayPlan], destination: str) -> None:
        if self.google_place_api is None:
            return
        try:
            updated = await enrich_days_with_places(days, destination, self.google_place_api)
            logger.info(f"Enriched {updated} activities with place data")
        except Exception:
            logger.exception("Place enrichment failed, keeping model data")

    async def validate_destination(self, destination: str) -> DestinationValidation:
        return await self.trip_agent.validate_destination(destination)

    async def get_questions(self, prefs: UserPreferences) -> List[SmartQuestion]:
        validate_demographics(prefs)
        return await self.trip_agent.get_smart_questions(prefs)

    async def generate_preview(self, prefs: UserPreferences) -> dict:
        """
        Generate the free preview of a trip and store it locked.

        Returns:
            {"id", "totalDays", "previewDays"}

        Raises:
            InvalidPreferencesException: if the demographics are incomplete
            GenerationFailedException: if the model returned no days
        """
        validate_demographics(prefs)
        total_days = trip_days(prefs)
        preview_days = preview_day_count(total_days)
        logger.info(f"Generating preview for {prefs.destination}: {preview_days} days of {total_days}")

        partial_plan = await self.trip_agent.generate_itinerary_partial(prefs, 1, preview_days)
        if partial_plan is None:
            raise GenerationFailedException()
        partial_plan.days = merge_days([], partial_plan.days, 1, preview_days)
        if not partial_plan.days:
            raise GenerationFailedException()

        await self._enrich(partial_plan.days, prefs.destination)
        images = await self._day_images(partial_plan.days, prefs.destination)

        for _ in range(MAX_ID_ATTEMPTS):
            record = TripRecord(
                destination=prefs.destination,
                start_date=prefs.start_date.isoformat(),
                end_date=prefs.end_date.isoformat(),
                total_days=total_days,
                preview_days_generated=generated_through(partial_plan.days),
                plan=partial_plan,
                images=images,
                user_preferences=prefs,
            )
            if self.trip_store.create(record):
                break
        else:
            raise AppException("Could not allocate a trip id", status_code=500, error_code="TRIP_ID_EXHAUSTED")

        return {"id": record.id, "totalDays": total_days, "previewDays": preview_days}

    def save_email(self, trip_id: str, email: str) -> dict:
        """Attach an email to the trip and send the preview link."""
        record = self._load(trip_id)
        record.email = email
        self.trip_store.save(record)
        self.mailer.send_preview_email(email, record.id, record.destination, self.payments.price_cents)
        return plan_view(record)

    def get_trip(self, trip_id: str) -> dict:
        record = self._load(trip_id)
        return plan_view(record) | {
            "destination": record.destination,
            "startDate": record.start_date,
            "endDate": record.end_date,
        }

    def create_checkout(self, trip_id: str) -> dict:
        record = self._load(trip_id)
        return {"url": self.payments.create_checkout_session(record.id, record.destination)}

    async def unlock(self, trip_id: str, session_id: Optional[str] = None) -> dict:
        """
        Unlock a trip after payment and generate the days the preview left out.

        Calling this again on an unlocked trip is safe: a fully generated trip is
        returned as is, one whose remaining days failed to generate is retried.

        Raises:
            TripNotFoundException: unknown trip id
            PaymentRequiredException: payments are configured and the checkout session is not paid
        """
        record = self._load(trip_id)
        if record.unlocked and record.preview_days_generated >= record.total_days:
            return {"success": True, "message": "Already unlocked"} | plan_view(record)

        was_locked = not record.unlocked
        if was_locked and self.payments.enabled:
            if not session_id or not self.payments.is_session_paid(session_id, record.id):
                raise PaymentRequiredException()

        start_day = record.preview_days_generated + 1
        end_day = record.total_days
        if start_day <= end_day:
            logger.info(f"Unlocking {trip_id}: generating days {start_day} to {end_day}")
            remaining_plan = await self.trip_agent.generate_itinerary_partial(
                record.user_preferences, start_day, end_day
            )
            new_days = merge_days([], remaining_plan.days, start_day, end_day) if remaining_plan is not None else []
            if new_days:
                await self._enrich(new_days, record.destination)
                record.plan.days = merge_days(record.plan.days, new_days, start_day, end_day)
                record.images.update(await self._day_images(new_days, record.destination))
                record.preview_days_generated = max(
                    record.preview_days_generated, generated_through(record.plan.days)
                )
            if record.preview_days_generated < end_day:
                logger.warning(
                    f"Days {record.preview_days_generated + 1} to {end_day} of {trip_id} are missing, "
                    "unlocking with what exists"
                )

        record.unlocked = True
        self.trip_store.save(record)

        if was_locked and record.email:
            self.mailer.send_full_trip_email(record.email, record.id, record.destination)

        return {"success": True} | plan_view(record)

    async def regenerate_activity(
        self,
        activity: Activity,
        context: ActivityContext,
        prefs: Optional[UserPreferences] = None,
        trip_id: Optional[str] = None,
        custom_request: Optional[str] = None,
        existing_names: Optional[List[str]] = None,
    ) -> Optional[dict]:
        """Replacement for one activity. A stored trip's preferences win over the ones sent by the client."""
        if trip_id:
            prefs = self._load(trip_id).user_preferences
        if prefs is None:
            raise InvalidPreferencesException("Either preferences or a trip id is required.")
        alternative = await self.trip_agent.get_alternative_activity(
            prefs, activity, context, custom_request, existing_names
        )
        return alternative.model_dump(mode="json", by_alias=True) if alternative else None
