import logging
import time
from typing import List

from trip_planner.itinerary_models import Activity, DayPlan
from trip_planner.utils.google_place_api import GooglePlaceAPI

logger = logging.getLogger(__name__)


def _needs_lookup(activity: Activity) -> bool:
    if activity.is_fixed_plan or activity.type == "user-plan" or not activity.maps_query:
        return False
    return activity.latitude is None or activity.longitude is None or activity.place_id is None


async def enrich_days_with_places(days: List[DayPlan], destination: str, google_place_api: GooglePlaceAPI) -> int:
    """
    Fill missing coordinates, place id, rating and website of activities from Google Places.

    Values already present on an activity are never overwritten. User plans are skipped.

    Returns:
        Number of activities that were updated
    """
    activities = [activity for day in days for activity in day.activities() if _needs_lookup(activity)]
    if not activities:
        return 0

    queries = {id(activity): f"{activity.maps_query}, {destination}" for activity in activities}
    start_time = time.time()
    all_search_res = await google_place_api.batch_text_search(list(queries.values()))
    logger.info(f"Time taken to look up {len(queries)} places: {time.time() - start_time} seconds")

    updated = 0
    for activity in activities:
        search_res = all_search_res.get(queries[id(activity)]) or []
        if not search_res:
            continue
        place = search_res[0]
        if activity.latitude is None or activity.longitude is None:
            activity.latitude = place.get("latitude")
            activity.longitude = place.get("longitude")
        if activity.place_id is None:
            activity.place_id = place.get("place_id")
        if activity.rating is None:
            activity.rating = place.get("rating")
        if not activity.website:
            activity.website = place.get("website_uri")
        updated += 1
    return updated
