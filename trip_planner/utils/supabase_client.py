import logging
from typing import Optional

from postgrest.exceptions import APIError
from supabase import Client, create_client

from trip_planner import config
from trip_planner.exceptions import ExternalServiceException
from trip_planner.utils.trip_store import BaseTripStore, TripRecord

logger = logging.getLogger(__name__)

supabase_client: Client | None = None


def get_supabase_client() -> Client:
    """
    Initializes and returns a Supabase client instance.
    Raises ValueError if Supabase URL or Key is not set in environment variables.
    """
    global supabase_client
    if supabase_client:
        return supabase_client

    if not config.SUPABASE_URL:
        logger.error("SUPABASE_URL environment variable not set.")
        raise ValueError("SUPABASE_URL environment variable not set.")
    if not config.SUPABASE_KEY:
        logger.error("SUPABASE_KEY environment variable not set.")
        raise ValueError("SUPABASE_KEY environment variable not set.")

    try:
        supabase_client = create_client(config.SUPABASE_URL, config.SUPABASE_KEY)
        logger.info("Supabase client initialized successfully.")
        return supabase_client
    except Exception as e:
        logger.error(f"Failed to initialize Supabase client: {e}", exc_info=True)
        raise ConnectionError(f"Failed to initialize Supabase client: {e}")


class SupabaseTripStore(BaseTripStore):
    """
    Trip records stored as rows of a Supabase table.

    Expected table columns: id (text, primary key), email, unlocked, destination,
    start_date, end_date, total_days, preview_days_generated, plan (jsonb),
    images (jsonb), user_preferences (jsonb), created_at (timestamptz).
    """

    def __init__(self, client: Optional[Client] = None, table: str = config.SUPABASE_TRIPS_TABLE):
        self.client = client or get_supabase_client()
        self.table = table

    def create(self, record: TripRecord) -> bool:
        if self.get(record.id) is not None:
            return False
        try:
            self.client.table(self.table).insert(record.model_dump(mode="json")).execute()
        except APIError as e:
            logger.error(f"Failed to insert trip {record.id}: {e}")
            raise ExternalServiceException("Failed to store trip", error_code="TRIP_STORE_ERROR")
        return True

    def get(self, trip_id: str) -> Optional[TripRecord]:
        try:
            response = self.client.table(self.table).select("*").eq("id", trip_id).limit(1).execute()
        except APIError as e:
            logger.error(f"Failed to load trip {trip_id}: {e}")
            raise ExternalServiceException("Failed to load trip", error_code="TRIP_STORE_ERROR")
        if not response.data:
            return None
        return TripRecord.model_validate(response.data[0])

    def save(self, record: TripRecord) -> None:
        try:
            self.client.table(self.table).upsert(record.model_dump(mode="json")).execute()
        except APIError as e:
            logger.error(f"Failed to save trip {record.id}: {e}")
            raise ExternalServiceException("Failed to store trip", error_code="TRIP_STORE_ERROR")
