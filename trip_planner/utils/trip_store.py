import logging
import secrets
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Dict, Optional

import redis
from pydantic import BaseModel, Field

from trip_planner import config
from trip_planner.itinerary_models import Itinerary
from trip_planner.trip_preference import UserPreferences

logger = logging.getLogger(__name__)

TRIP_ID_BYTES = 5  # 10 hex characters


def new_trip_id() -> str:
    return secrets.token_hex(TRIP_ID_BYTES)


class TripRecord(BaseModel):
    """A generated trip, locked or unlocked, with everything needed to finish it later."""

    id: str = Field(default_factory=new_trip_id)
    email: Optional[str] = None
    unlocked: bool = False
    destination: str
    start_date: str
    end_date: str
    total_days: int
    preview_days_generated: int = 0
    plan: Itinerary = Field(default_factory=Itinerary)
    images: Dict[int, str] = Field(default_factory=dict, description="Day number -> image data URL")
    user_preferences: UserPreferences
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class BaseTripStore(ABC):
    """Key-value shaped storage of trip records, keyed by trip id."""

    @abstractmethod
    def create(self, record: TripRecord) -> bool:
        """Store a new record. Returns False if the id is already taken."""

    @abstractmethod
    def get(self, trip_id: str) -> Optional[TripRecord]:
        """Fetch a record, or None when it does not exist."""

    @abstractmethod
    def save(self, record: TripRecord) -> None:
        """Overwrite a record."""


class RedisTripStore(BaseTripStore):
    """Trip records stored as JSON documents in Redis."""

    def __init__(
        self, redis_client=None, expiry_time: int = config.TRIP_TTL_SECONDS, prefix: str = "trip_planner_trip:"
    ):
        if redis_client is None:
            redis_url = config.REDIS_URL
            # Only apply SSL settings if using a remote Redis (not localhost)
            if "localhost" not in redis_url:
                # Append SSL parameters to the Redis URL if not already present
                if "?" not in redis_url:
                    redis_url += "?ssl_cert_reqs=none"
                else:
                    redis_url += "&ssl_cert_reqs=none"
            redis_client = redis.from_url(redis_url)

        self.redis = redis_client
        self.expiry_time = expiry_time
        self.prefix = prefix

    def _key(self, trip_id: str) -> str:
        return f"{self.prefix}{trip_id}"

    def create(self, record: TripRecord) -> bool:
        created = self.redis.set(
            self._key(record.id), record.model_dump_json(), ex=self.expiry_time or None, nx=True
        )
        if created:
            logger.info(f"trip_id: {record.id}, created for {record.destination}")
        return bool(created)

    def get(self, trip_id: str) -> Optional[TripRecord]:
        data = self.redis.get(self._key(trip_id))
        if not data:
            return None
        return TripRecord.model_validate_json(data)

    def save(self, record: TripRecord) -> None:
        self.redis.set(self._key(record.id), record.model_dump_json(), ex=self.expiry_time or None)
        logger.info(f"trip_id: {record.id}, saved (unlocked={record.unlocked}, days={len(record.plan.days)})")

    def delete(self, trip_id: str) -> bool:
        return bool(self.redis.delete(self._key(trip_id)))
