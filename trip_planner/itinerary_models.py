from typing import Any, List, Optional

from pydantic import AliasChoices, Field, field_validator

from trip_planner.trip_preference import CamelModel

TIME_BUCKETS = ("morning", "afternoon", "evening")


def _lenient_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class SmartQuestion(CamelModel):
    """A yes/no refinement question generated for a single session."""

    id: str
    emoji: str = ""
    title: str = ""
    description: str = ""


class DestinationValidation(CamelModel):
    is_valid: bool = True
    formatted_name: Optional[str] = None


class Activity(CamelModel):
    """A single place or experience proposed by the model."""

    name: str = Field(description="Specific business or place name")
    description: str = ""
    duration: str = ""
    emoji: str = ""
    rating: Optional[float] = None
    price_level: Optional[str] = Field(default=None, description="'$' to '$$$$' or 'Free'")
    opening_hours: Optional[str] = None
    admission_fee: Optional[str] = None
    website: Optional[str] = None
    maps_query: str = Field(default="", description="Exact query that finds the place on a map")
    category: Optional[str] = None
    type: str = Field(default="attraction", description="attraction, restaurant, event, local-gem or user-plan")
    is_local_recommendation: bool = False
    is_michelin: bool = False
    is_popular: bool = False
    is_fixed_plan: bool = False
    latitude: Optional[float] = Field(default=None, validation_alias=AliasChoices("latitude", "lat"))
    longitude: Optional[float] = Field(default=None, validation_alias=AliasChoices("longitude", "lng", "lon"))
    place_id: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def parse_name(cls, value):
        return str(value) if isinstance(value, (int, float)) else value

    @field_validator("rating", "latitude", "longitude", mode="before")
    @classmethod
    def parse_number(cls, value):
        return _lenient_float(value)

    @field_validator("is_local_recommendation", "is_michelin", "is_popular", "is_fixed_plan", mode="before")
    @classmethod
    def parse_flag(cls, value):
        return bool(value) if value is not None else False

    @field_validator("description", "duration", "emoji", "maps_query", "type", mode="before")
    @classmethod
    def parse_text(cls, value):
        return "" if value is None else str(value)

    @field_validator("price_level", "opening_hours", "admission_fee", "website", "category", "place_id", mode="before")
    @classmethod
    def parse_optional_text(cls, value):
        if value is None or isinstance(value, (dict, list)):
            return None
        return str(value)


class HighlightEvent(CamelModel):
    name: str = ""
    description: str = ""
    maps_query: str = ""

    @field_validator("name", "description", "maps_query", mode="before")
    @classmethod
    def parse_text(cls, value):
        return "" if value is None else str(value)


class DayPlan(CamelModel):
    day_number: int = 0
    date: str = Field(default="", description="DD/MM/YYYY")
    area_focus: str = ""
    title: str = ""
    vibe: str = ""
    vibe_icons: List[str] = Field(default_factory=list)
    colors: List[str] = Field(default_factory=list)
    morning: List[Activity] = Field(default_factory=list)
    afternoon: List[Activity] = Field(default_factory=list)
    evening: List[Activity] = Field(default_factory=list)
    highlight_event: Optional[HighlightEvent] = None

    @field_validator("day_number", mode="before")
    @classmethod
    def parse_day_number(cls, value):
        number = _lenient_float(value)
        return int(number) if number is not None else 0

    @field_validator("vibe_icons", "colors", mode="before")
    @classmethod
    def parse_list(cls, value):
        return [str(item) for item in value if item is not None] if isinstance(value, list) else []

    @field_validator("highlight_event", mode="before")
    @classmethod
    def parse_highlight_event(cls, value):
        return value if isinstance(value, (HighlightEvent, dict)) else None

    @field_validator("morning", "afternoon", "evening", mode="before")
    @classmethod
    def drop_unnamed_activities(cls, value):
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, Activity) or (isinstance(item, dict) and item.get("name"))]

    @field_validator("area_focus", "title", "vibe", "date", mode="before")
    @classmethod
    def parse_text(cls, value):
        return "" if value is None else str(value)

    def activities(self) -> List[Activity]:
        return [activity for bucket in TIME_BUCKETS for activity in getattr(self, bucket)]


class Itinerary(CamelModel):
    destination: str = ""
    days: List[DayPlan] = Field(default_factory=list)

    @field_validator("days", mode="before")
    @classmethod
    def parse_days(cls, value):
        if not isinstance(value, list):
            return []
        return [day for day in value if isinstance(day, (DayPlan, dict))]


class ActivityContext(CamelModel):
    """Where in the trip an activity sits when asking for a replacement."""

    day_title: str = ""
    area: str = ""
    time_of_day: str = ""
