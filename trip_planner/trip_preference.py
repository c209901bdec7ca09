import datetime
import re
import uuid
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from trip_planner.exceptions import InvalidPreferencesException

DEFAULT_TRAVELER_AGE = 25


class TripType(str, Enum):
    SOLO = "Solo"
    COUPLE = "Couple"
    FRIENDS = "Friends"
    FAMILY = "Family"


class BudgetLevel(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class VibeType(str, Enum):
    EXTREME_FUN = "Extreme/Fun"
    LAID_BACK = "Laid back/Chill"
    BOTH = "Both"


class PaceType(str, Enum):
    SLOW = "Slow"
    BALANCED = "Balanced"
    FAST = "Fast"


class Interest(str, Enum):
    DINING = "Dining"
    NIGHTLIFE = "Nightlife"
    CULTURE = "Culture"
    ACTIVE = "Active"
    VIEWPOINTS = "Viewpoints"
    NATURE = "Nature"
    SHOPPING = "Shopping"
    LOCAL_EXPERIENCES = "Local Experiences"
    SHOWS_AND_CONCERTS = "Shows & Concerts"


class KidsAgeRange(str, Enum):
    TODDLERS = "0-5"
    KIDS = "5-10"
    PRETEENS = "10-15"
    TEENS = "15-20"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Non-binary/Other"


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys, as the web form sends them."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, use_enum_values=True, validate_default=True
    )


class FixedPlan(CamelModel):
    """A plan the user locked to a specific date."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:9])
    date: datetime.date
    description: str


class Demographics(CamelModel):
    gender: Optional[Gender] = None
    age: Optional[str] = Field(default=None, description="Solo age or average age of the group")
    kids_age_range: Optional[KidsAgeRange] = None


class UserPreferences(CamelModel):
    """Trip preferences collected by the multi-step form."""

    destination: str = Field(..., min_length=1, description="Destination, ideally 'City, Country'")
    start_date: datetime.date = Field(..., description="First day of the trip")
    end_date: datetime.date = Field(..., description="Last day of the trip")
    hotel_location: str = Field("", description="Hotel the traveler is staying at, if known")
    trip_type: TripType = TripType.SOLO
    budget: BudgetLevel = BudgetLevel.MEDIUM
    vibe: VibeType = VibeType.BOTH
    pace: PaceType = PaceType.BALANCED
    interests: List[Interest] = Field(default_factory=list)
    demographics: Demographics = Field(default_factory=Demographics)
    fixed_plans: List[FixedPlan] = Field(default_factory=list)
    must_visit: str = Field("", description="Free-text wishlist the itinerary has to include")
    follow_up_answers: Dict[str, bool] = Field(
        default_factory=dict, description="Yes/no answers keyed by smart question id"
    )

    @model_validator(mode="after")
    def check_date_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


def trip_days(prefs: UserPreferences) -> int:
    """Number of days in the trip, both ends inclusive."""
    return max(1, (prefs.end_date - prefs.start_date).days + 1)


def traveler_age(prefs: UserPreferences) -> int:
    """Age taken from the demographics, falling back to a young adult when it is missing or not a number."""
    match = re.match(r"\s*(\d+)", prefs.demographics.age or "")
    return int(match.group(1)) if match else DEFAULT_TRAVELER_AGE


def validate_demographics(prefs: UserPreferences) -> None:
    """
    Apply the demographic rules of the preferences step.

    Raises:
        InvalidPreferencesException: when a field required by the trip type is missing
    """
    demographics = prefs.demographics
    if prefs.trip_type == TripType.SOLO and (not demographics.gender or not demographics.age):
        raise InvalidPreferencesException("Please select your gender and enter your age.")
    if prefs.trip_type in (TripType.COUPLE, TripType.FRIENDS) and not demographics.age:
        raise InvalidPreferencesException("Please enter the average age of your group.")
    if prefs.trip_type == TripType.FAMILY and not demographics.kids_age_range:
        raise InvalidPreferencesException("Please select the age range of the children.")
