import datetime
import json
from typing import Dict, List, Optional

from trip_planner.itinerary_models import Activity, ActivityContext, DayPlan
from trip_planner.trip_preference import BudgetLevel, Interest, PaceType, UserPreferences, traveler_age, trip_days

SENIOR_AGE = 50
SHORT_TRIP_DAYS = 5
SHORT_TRIP_QUESTIONS = 5
LONG_TRIP_QUESTIONS = 10
NEUTRAL_IMAGE_TITLE = "Peaceful travel abstract"

SLOW_PACE_DIRECTIVE = """
** PACE: RELAXED / SENIOR FRIENDLY **
- User is {age} years old (or requested SLOW pace).
- **MAXIMUM 3 activities per day** (excluding meals).
- Avoid high-intensity physical activities (hiking, climbing) unless explicitly requested.
- Ensure schedule allows for rest and leisurely dining.
"""

FAST_PACE_DIRECTIVE = """
** PACE: FAST / PACKED **
- User requested FAST pace.
- Pack the day with 5+ activities.
- Minimize downtime.
"""

BALANCED_PACE_DIRECTIVE = """
** PACE: BALANCED **
- User requested BALANCED pace.
- Include 3-4 main activities per day.
"""

LOW_BUDGET_DIRECTIVE = """
** STRICT LOW BUDGET **
- NO LUXURY SHOPPING. NO HIGH-END MALLS.
- FOOD: Prioritize street food, night markets, and affordable local diners ($-$$).
- ACTIVITIES: Focus on free entry parks, walking districts, and cheap museums.
"""

HIGH_BUDGET_DIRECTIVE = """
** HIGH BUDGET **
- Include fine dining options ($$$$).
- Luxury shopping districts are allowed.
"""

FIXED_PLANS_DIRECTIVE = """
** STRICT FIXED PLAN LOCK **
The user has manually added plans:
{plans}
INSTRUCTIONS FOR THESE DATES:
1. Day Title: "{first_plan}".
2. **Morning**: Create ONE single activity object for the user's plan.
   - Set "name" to "{first_plan}".
   - Set "type" to "user-plan".
   - Set "isFixedPlan" to true.
   - Set "rating", "priceLevel", "admissionFee", "openingHours" to NULL.
3. **Afternoon & Evening**: Leave EMPTY arrays [].
4. **No Meals**: Do NOT generate breakfast/lunch/dinner for these days.
5. **No Expansion**: Do NOT add anything else to this day. Just the one user plan.
"""

MUST_VISIT_DIRECTIVE = """
** MANDATORY "MUST VISIT" REQUESTS (HIGHEST PRIORITY) **
The user explicitly requested: "{must_visit}".
**CRITICAL INSTRUCTION**: You MUST include these specific activities or places in the itinerary.
- If specific places are named, find them and schedule them.
- If general wishes are made (e.g. "eat ramen"), find the BEST spot for it.
- INTEGRATE them logically into the day clusters.
- These items CANNOT be removed.
"""

HOTEL_DIRECTIVE = '** HOTEL ANCHOR **: User is staying at "{hotel}". Start Day 1 here.'

# Interest not selected -> ban applied to the prompt
INTEREST_BANS = {
    Interest.NIGHTLIFE: "NO NIGHTCLUBS, NO BARS.",
    Interest.SHOPPING: "NO SHOPPING MALLS.",
    Interest.ACTIVE: "NO HIKING, NO GYMS.",
    Interest.CULTURE: "MINIMIZE MUSEUMS unless famous.",
}

ACTIVITY_EXAMPLE = {
    "name": "Specific Business Name",
    "description": "...",
    "duration": "1.5 hours",
    "emoji": "x",
    "category": "...",
    "type": "restaurant/attraction/user-plan",
    "isFixedPlan": False,
    "isLocalRecommendation": False,
    "isMichelin": False,
    "isPopular": False,
    "mapsQuery": "Specific Business Name, Address",
    "website": "https://...",
    "priceLevel": "$$$",
    "openingHours": "09:00 - 22:00",
    "admissionFee": "$20",
    "rating": 4.5,
    "latitude": 0.0,
    "longitude": 0.0,
}

ITINERARY_PROMPT = """
Create a JSON itinerary for {destination}.
Full Trip Dates: {start_date} to {end_date}.
Who: {trip_type} {demographics}.
Budget: {budget}. Vibe: {vibe}.

** IMPORTANT TASK SCOPE **
ONLY GENERATE DAYS {day_start} TO {day_end} (inclusive).
Do not generate other days.
{pace_directive}
{budget_directive}
{fixed_plans_directive}
{must_visit_directive}
{hotel_directive}

** STRICT NEGATIVE CONSTRAINTS (NON-NEGOTIABLE) **
1. **CLOSED PLACES**: **NEVER** suggest a place that is "Permanently Closed" or "Temporarily Closed".
2. **USER BANNED ITEMS**: The user explicitly swiped NO to: [ {rejected_items} ].
   - **RULE**: YOU MUST NOT INCLUDE THESE OR ANYTHING SIMILAR. This is a hard constraint.
3. **CATEGORY BANS**:
{interest_bans}
4. **EVENT LIMITS**:
   - Maximum 2 "Major Events" (Concerts, Festivals, Big Theme Parks) per day.

** CONFIRMED INTERESTS **
- Interests: [ {interests} ].
- You MUST include these agreed activities: [ {liked_items} ].

** FOOD REQUIREMENTS **
- **MUST INCLUDE 2-3 FOOD SPOTS PER DAY** (except on fixed plan days):
   - Morning: Suggest a specific Cafe or Breakfast spot (unless Hotel is specified, then optional).
   - Afternoon: Suggest a specific Lunch spot.
   - Evening: Suggest a specific Dinner spot.
- If Budget is Low: Suggest Street Food or Cheap Eats.

** GEOGRAPHIC LOGIC (CLUSTERING) **
- **Day Cluster**: Each day must focus on a specific area/neighborhood (approx 5-10km radius). Do not zigzag across the city.
- **Meal Proximity**: Restaurants MUST be within WALKING DISTANCE (1-2km) of the preceding or following activity.

** BADGE RULES (EXTREMELY RARE) **
- **MUTUAL EXCLUSIVITY**: An activity CANNOT be both 'isPopular' and 'isLocalRecommendation'.
- **isPopular**: TRUE *only* for the absolute most famous landmarks globally recognized (e.g. Eiffel Tower, Colosseum). MAX 1 per day. If unsure, set FALSE.
- **isLocalRecommendation**: TRUE *only* for specific, named, high-quality hidden gems. MAX 1 per day.
- **isMichelin**: TRUE *only* if verifiable Michelin Star.
- **SCARCITY**: 90% of activities should have NO badges.

** DATA REQUIREMENTS (CRITICAL) **
- **name**: MUST be the **SPECIFIC BUSINESS NAME** (e.g. "Joe's Coffee", "The Louvre", "Central Park").
- **emoji**: MUST be a SINGLE emoji character. NO text.
- **mapsQuery**: EXACT Google Maps Name of a specific real-world place.
  FORBIDDEN: "Local Noodle Shop", "Street Food Vendor", "Best Ramen in Tokyo", "Coffee Shop".
- **latitude/longitude**: You must estimate the latitude and longitude for every place.

** JSON STRUCTURE **
{json_structure}

Return the JSON object only.
"""

OPTIMIZATION_PROMPT = """
Act as a **Travel Logistics Expert**. Review and optimize this itinerary for {destination}.

CURRENT ITINERARY JSON:
{itinerary_json}

YOUR MISSION:
1. **ELIMINATE GENERIC LOCATIONS**:
   - Scan "mapsQuery" for every activity.
   - IF it says "Best Ramen", "Local Street Food", "Coffee Shop", or anything generic:
   - REPLACE it with a specific, real-world, high-rated establishment name nearby.
   - Example: Change "Local Noodle Stall" -> "Ah Hock Fried Hokkien Mee".

2. **GEOGRAPHIC CONSISTENCY**:
   - Check latitude/longitude. Group activities by neighborhood.
   - IF an activity is >3km away from the day's cluster, REPLACE it with a similar activity nearby.

3. **LOGICAL ROUTING**:
   - Re-order activities (Morning -> Afternoon -> Evening) for logical flow.

4. **DATA COMPLETENESS**:
   - Ensure EVERY activity (except 'user-plan') has valid "priceLevel", "openingHours", and "rating".
   - Ensure "mapsQuery" is specific (Name + Address).

5. **BADGE CLEANUP**:
   - Ensure fewer than 15% of all activities have a badge.
   - If there are too many 'isPopular' or 'isLocalRecommendation', set them to false.

6. **KEEP THE SCOPE**:
   - Keep the same "dayNumber" and "date" values. Do not add or remove days.
   - Do not touch activities with "type": "user-plan".

Return the **OPTIMIZED** JSON object only.
"""

QUESTIONS_PROMPT = """
Context: Trip to {destination}, {start_date}-{end_date} ({duration_days} days).
Who: {trip_type} ({demographics}).
Interests: {interests}.
Budget: {budget}.

TASK: Generate exactly {num_questions} "Tinder-style" Yes/No questions to refine the itinerary.

STRATEGY:
1. **Events**: Check for specific events during {start_date}-{end_date}.
2. **Unique Activities**: Ask about specific, non-generic experiences (e.g., "Visit the Museum of Ice Cream?" instead of "Do you like museums?").
3. **Must Include**: Everything the user says "Yes" to WILL be added to the itinerary, so ensure these fit within a {duration_days}-day schedule.

RULES:
- **Short & Punchy**: Max 15 words per description.
- **Specific**: Name actual places or events. Exclude closed places.
- **Ignore**: Do NOT ask about "{must_visit}".

Return JSON array: [{{ "id": "snake_case_id", "emoji": "SingleChar", "title": "Title", "description": "Short question?" }}]
"""

QUESTIONS_FALLBACK_SUFFIX = "\nFallback: Generate generic questions."

VALIDATION_PROMPT = """
Analyze destination: "{destination}".
Return JSON: {{ "isValid": boolean, "formattedName": string | null }}
If valid, provide "City, Country".
"""

ALTERNATIVE_PROMPT = """
Suggest an ALTERNATIVE activity for: "{name}" in {destination}.
Category: "{category}". Type: "{activity_type}".
Context: {time_of_day}, {area}. Day theme: "{day_title}".
User Vibe: {vibe}. Budget: {budget}.
User Instruction: "{custom_request}".

Rules:
1. {category_instruction}
2. Must be real and currently OPERATIONAL.
3. MUST include priceLevel, openingHours, rating, mapsQuery.
4. mapsQuery MUST be a specific place name, NO generic search terms.
5. Do NOT suggest any of: [ {existing_names} ].

Return strictly one JSON object with these keys:
{json_structure}
"""

DAY_IMAGE_PROMPT = (
    "Travel illustration for {destination}, {area}. Mood: {vibe}, {title}. "
    "Style: Flat vector art, pastel colors, cheerful, soft lighting. No text."
)


def format_date_for_prompt(value: Optional[datetime.date]) -> str:
    """Render a date as DD/MM/YYYY."""
    if not value:
        return ""
    return value.strftime("%d/%m/%Y")


def _answers_to_items(answers: Dict[str, bool], liked: bool) -> str:
    return ", ".join(question_id.replace("_", " ") for question_id, answer in answers.items() if answer is liked)


def _demographics_json(prefs: UserPreferences) -> str:
    return json.dumps(prefs.demographics.model_dump(mode="json", by_alias=True, exclude_none=True))


def build_pace_directive(prefs: UserPreferences) -> str:
    age = traveler_age(prefs)
    if prefs.pace == PaceType.SLOW or age >= SENIOR_AGE:
        return SLOW_PACE_DIRECTIVE.format(age=age)
    if prefs.pace == PaceType.FAST:
        return FAST_PACE_DIRECTIVE
    return BALANCED_PACE_DIRECTIVE


def build_budget_directive(prefs: UserPreferences) -> str:
    if prefs.budget == BudgetLevel.LOW:
        return LOW_BUDGET_DIRECTIVE
    if prefs.budget == BudgetLevel.HIGH:
        return HIGH_BUDGET_DIRECTIVE
    return ""


def build_fixed_plans_directive(prefs: UserPreferences) -> str:
    if not prefs.fixed_plans:
        return ""
    plans = "\n".join(
        f'DATE: {format_date_for_prompt(plan.date)} -> USER LOCKED PLAN: "{plan.description}"'
        for plan in prefs.fixed_plans
    )
    return FIXED_PLANS_DIRECTIVE.format(plans=plans, first_plan=prefs.fixed_plans[0].description)


def build_interest_bans(prefs: UserPreferences) -> List[str]:
    return [ban for interest, ban in INTEREST_BANS.items() if interest not in prefs.interests]


def build_itinerary_prompt(prefs: UserPreferences, day_start: int, day_end: int) -> str:
    """
    Build the generation prompt for days day_start..day_end (inclusive) of the trip.

    Every preference of the form is turned into a directive block; blocks that do
    not apply (no fixed plans, blank wishlist, no hotel, medium budget) are left empty.
    """
    must_visit = prefs.must_visit.strip()
    json_structure = {
        "destination": prefs.destination,
        "days": [
            {
                "dayNumber": day_start,
                "date": "DD/MM/YYYY",
                "areaFocus": "Neighborhood",
                "title": "Day Theme",
                "vibe": "...",
                "vibeIcons": ["emoji"],
                "highlightEvent": {"name": "...", "description": "...", "mapsQuery": "..."},
                "morning": [ACTIVITY_EXAMPLE],
                "afternoon": [],
                "evening": [],
            }
        ],
    }
    interest_bans = build_interest_bans(prefs)
    return ITINERARY_PROMPT.format(
        destination=prefs.destination,
        start_date=format_date_for_prompt(prefs.start_date),
        end_date=format_date_for_prompt(prefs.end_date),
        trip_type=prefs.trip_type,
        demographics=_demographics_json(prefs),
        budget=prefs.budget,
        vibe=prefs.vibe,
        day_start=day_start,
        day_end=day_end,
        pace_directive=build_pace_directive(prefs),
        budget_directive=build_budget_directive(prefs),
        fixed_plans_directive=build_fixed_plans_directive(prefs),
        must_visit_directive=MUST_VISIT_DIRECTIVE.format(must_visit=must_visit) if must_visit else "",
        hotel_directive=HOTEL_DIRECTIVE.format(hotel=prefs.hotel_location) if prefs.hotel_location else "",
        rejected_items=_answers_to_items(prefs.follow_up_answers, liked=False),
        liked_items=_answers_to_items(prefs.follow_up_answers, liked=True),
        interests=", ".join(prefs.interests),
        interest_bans="\n".join(f"   - {ban}" for ban in interest_bans) or "   - None",
        json_structure=json.dumps(json_structure, indent=2, ensure_ascii=False),
    )


def build_optimization_prompt(draft: dict, prefs: UserPreferences) -> str:
    return OPTIMIZATION_PROMPT.format(
        destination=prefs.destination,
        itinerary_json=json.dumps(draft, ensure_ascii=False),
    )


def target_question_count(prefs: UserPreferences) -> int:
    """Short trips get 5 questions, longer ones 10."""
    return SHORT_TRIP_QUESTIONS if trip_days(prefs) <= SHORT_TRIP_DAYS else LONG_TRIP_QUESTIONS


def build_questions_prompt(prefs: UserPreferences) -> str:
    return QUESTIONS_PROMPT.format(
        destination=prefs.destination,
        start_date=format_date_for_prompt(prefs.start_date),
        end_date=format_date_for_prompt(prefs.end_date),
        duration_days=trip_days(prefs),
        trip_type=prefs.trip_type,
        demographics=_demographics_json(prefs),
        interests=", ".join(prefs.interests),
        budget=prefs.budget,
        num_questions=target_question_count(prefs),
        must_visit=prefs.must_visit.strip(),
    )


def build_validation_prompt(destination: str) -> str:
    return VALIDATION_PROMPT.format(destination=destination)


def build_alternative_prompt(
    prefs: UserPreferences,
    activity: Activity,
    context: ActivityContext,
    custom_request: Optional[str] = None,
    existing_names: Optional[List[str]] = None,
) -> str:
    if activity.category:
        category_instruction = (
            f'Original Category: "{activity.category}". '
            f'Try to suggest another "{activity.category}" unless instruction says otherwise.'
        )
    else:
        category_instruction = "Maintain the same vibe."
    excluded = [activity.name] + [name for name in existing_names or [] if name != activity.name]
    return ALTERNATIVE_PROMPT.format(
        name=activity.name,
        destination=prefs.destination,
        category=activity.category or "",
        activity_type=activity.type,
        time_of_day=context.time_of_day,
        area=context.area,
        day_title=context.day_title,
        vibe=prefs.vibe,
        budget=prefs.budget,
        custom_request=custom_request or "Something different but nearby",
        category_instruction=category_instruction,
        existing_names=", ".join(excluded),
        json_structure=json.dumps(ACTIVITY_EXAMPLE, indent=2),
    )


def build_day_image_prompt(day: DayPlan, destination: str) -> str:
    # fixed-plan and meeting days get a neutral scene
    title = NEUTRAL_IMAGE_TITLE if "Meeting" in day.title or "Plan" in day.title else day.title
    return DAY_IMAGE_PROMPT.format(destination=destination, area=day.area_focus, vibe=day.vibe, title=title)
