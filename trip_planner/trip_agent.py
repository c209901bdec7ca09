import logging
import time
from typing import Any, List, Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from trip_planner import config
from trip_planner.itinerary_models import (
    Activity,
    ActivityContext,
    DayPlan,
    DestinationValidation,
    Itinerary,
    SmartQuestion,
)
from trip_planner.prompts import (
    QUESTIONS_FALLBACK_SUFFIX,
    build_alternative_prompt,
    build_day_image_prompt,
    build_itinerary_prompt,
    build_optimization_prompt,
    build_questions_prompt,
    build_validation_prompt,
    target_question_count,
)
from trip_planner.trip_preference import UserPreferences
from trip_planner.utils.json_extraction import extract_json

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE = (
    "From now on, you are an excellent local travel planner with 20 years of experience. "
    "You only recommend real places that are currently operating."
)
DRAFT_SUFFIX = "\nUse real, specific places you are confident exist."
IMAGE_SIZE = "1536x1024"  # closest to 16:9


def _as_list(payload: Any) -> Optional[list]:
    """JSON mode only returns objects, so a list may come back wrapped in one."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for value in payload.values():
            if isinstance(value, list):
                return value
    return None


def _parse_itinerary(payload: Any) -> Optional[Itinerary]:
    """Itinerary from a decoded reply, or None when it has no usable days."""
    if not isinstance(payload, dict) or not isinstance(payload.get("days"), list):
        return None
    try:
        itinerary = Itinerary.model_validate(payload)
    except ValidationError as e:
        logger.warning(f"Itinerary did not match the expected shape: {e}")
        return None
    return itinerary if itinerary.days else None


def _number_days(itinerary: Itinerary, day_start: int) -> None:
    for offset, day in enumerate(itinerary.days):
        if day.day_number <= 0:
            day.day_number = day_start + offset


def _covers_draft(draft: Itinerary, optimized: Itinerary) -> bool:
    """Every draft day that has activities still has some after optimization."""
    planned = {day.day_number for day in optimized.days if day.activities()}
    return all(day.day_number in planned for day in draft.days if day.activities())


class TripAgent:
    """Talks to the generative model; every method degrades to a fallback instead of raising."""

    def __init__(
        self,
        client: Optional[AsyncOpenAI] = None,
        model: str = config.OPENAI_MODEL,
        image_model: str = config.OPENAI_IMAGE_MODEL,
        optimize: bool = config.ENABLE_OPTIMIZATION_PASS,
    ):
        self.client = client or AsyncOpenAI()
        self.model = model
        self.image_model = image_model
        self.optimize = optimize

    async def _complete(self, prompt: str, json_mode: bool = False, temperature: Optional[float] = None) -> str:
        kwargs = {}
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        if temperature is not None:
            kwargs["temperature"] = temperature
        start_time = time.time()
        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_MESSAGE},
                {"role": "user", "content": prompt},
            ],
            **kwargs,
        )
        logger.info(f"Time taken for model call: {time.time() - start_time} seconds")
        return completion.choices[0].message.content or ""

    async def validate_destination(self, destination: str) -> DestinationValidation:
        """Check a destination and normalize it to 'City, Country'. Any failure counts as valid."""
        fallback = DestinationValidation(is_valid=True, formatted_name=destination)
        try:
            text = await self._complete(build_validation_prompt(destination), json_mode=True, temperature=0)
        except OpenAIError as e:
            logger.warning(f"Destination validation failed for {destination}: {e}")
            return fallback

        result = extract_json(text)
        if not isinstance(result, dict):
            return fallback
        try:
            return DestinationValidation.model_validate(result)
        except ValidationError:
            return fallback

    async def get_smart_questions(self, prefs: UserPreferences) -> List[SmartQuestion]:
        """
        Generate yes/no refinement questions for the trip.

        A failed or non-list reply is retried once in JSON mode, asking for generic
        questions. If that also fails, no questions are returned and the form skips
        the step.
        """
        num_questions = target_question_count(prefs)
        prompt = build_questions_prompt(prefs)

        questions = None
        try:
            questions = _as_list(extract_json(await self._complete(prompt)))
        except OpenAIError as e:
            logger.warning(f"Question generation failed, retrying in JSON mode: {e}")
        if questions is None:
            try:
                text = await self._complete(prompt + QUESTIONS_FALLBACK_SUFFIX, json_mode=True)
                questions = _as_list(extract_json(text))
            except OpenAIError as e:
                logger.warning(f"Fallback question generation failed: {e}")
        if not questions:
            return []

        parsed = []
        for question in questions:
            try:
                parsed.append(SmartQuestion.model_validate(question))
            except ValidationError:
                logger.info(f"Dropping malformed question: {question}")
        return parsed[:num_questions]

    async def generate_itinerary_partial(
        self, prefs: UserPreferences, day_start: int, day_end: int
    ) -> Optional[Itinerary]:
        """
        Generate days day_start..day_end (inclusive) of the trip.

        Pass 1 drafts the days; pass 2 (when enabled) asks the model to fix generic
        places, geography and badges. Returns None when the draft is unusable.
        """
        logger.info(f"Generating days {day_start}-{day_end} for {prefs.destination}")
        try:
            text = await self._complete(build_itinerary_prompt(prefs, day_start, day_end) + DRAFT_SUFFIX)
        except OpenAIError as e:
            logger.warning(f"Itinerary generation failed: {e}")
            return None

        itinerary = _parse_itinerary(extract_json(text))
        if itinerary is None:
            logger.warning("Itinerary draft had no usable days")
            return None
        _number_days(itinerary, day_start)

        if self.optimize:
            logger.info("Draft created. Optimizing...")
            itinerary = await self.optimize_itinerary(itinerary, prefs, day_start)

        if not itinerary.destination:
            itinerary.destination = prefs.destination
        return itinerary

    async def optimize_itinerary(self, draft: Itinerary, prefs: UserPreferences, day_start: int = 1) -> Itinerary:
        """Second pass over a draft. The draft is kept unless the reply still plans every day of it."""
        draft_json = draft.model_dump(mode="json", by_alias=True)
        try:
            text = await self._complete(build_optimization_prompt(draft_json, prefs), json_mode=True)
        except OpenAIError as e:
            logger.warning(f"Optimization pass failed, using draft: {e}")
            return draft

        optimized = _parse_itinerary(extract_json(text))
        if optimized is not None:
            _number_days(optimized, day_start)
            if _covers_draft(draft, optimized):
                return optimized
        logger.warning("Optimization pass dropped planned days, using draft")
        return draft

    async def get_alternative_activity(
        self,
        prefs: UserPreferences,
        activity: Activity,
        context: ActivityContext,
        custom_request: Optional[str] = None,
        existing_names: Optional[List[str]] = None,
    ) -> Optional[Activity]:
        """Suggest a replacement for one activity, or None when the model gives nothing usable."""
        prompt = build_alternative_prompt(prefs, activity, context, custom_request, existing_names)
        try:
            text = await self._complete(prompt, json_mode=True)
        except OpenAIError as e:
            logger.warning(f"Alternative activity generation failed: {e}")
            return None

        result = extract_json(text)
        if not isinstance(result, dict):
            return None
        try:
            return Activity.model_validate(result)
        except ValidationError:
            return None

    async def generate_day_card_image(self, day: DayPlan, destination: str) -> Optional[str]:
        """Illustration for a day card as a data URL, or None."""
        try:
            response = await self.client.images.generate(
                model=self.image_model,
                prompt=build_day_image_prompt(day, destination),
                size=IMAGE_SIZE,
                n=1,
            )
        except OpenAIError as e:
            logger.warning(f"Image generation failed for day {day.day_number}: {e}")
            return None

        for image in response.data or []:
            if image.b64_json:
                return f"data:image/png;base64,{image.b64_json}"
            if image.url:
                return image.url
        return None
