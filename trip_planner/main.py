import asyncio
import datetime
import json

from trip_planner.trip_agent import TripAgent
from trip_planner.trip_preference import UserPreferences, trip_days


async def main():
    start_date = datetime.date.today() + datetime.timedelta(days=30)
    prefs = UserPreferences(
        destination="Taipei",
        start_date=start_date,
        end_date=start_date + datetime.timedelta(days=2),
        trip_type="Couple",
        budget="Low",
        pace="Balanced",
        interests=["Dining", "Nature", "Culture"],
        demographics={"age": "30"},
    )
    trip_agent = TripAgent()

    validation = await trip_agent.validate_destination(prefs.destination)
    print(validation)
    if validation.formatted_name:
        prefs.destination = validation.formatted_name

    questions = await trip_agent.get_smart_questions(prefs)
    for idx, question in enumerate(questions):
        print(f"{idx + 1}. {question.emoji} {question.title}: {question.description}")
        # answer yes to every other question
        prefs.follow_up_answers[question.id] = idx % 2 == 0

    itinerary = await trip_agent.generate_itinerary_partial(prefs, 1, trip_days(prefs))
    if itinerary is None:
        print("Generation failed")
        return
    print(json.dumps(itinerary.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    asyncio.run(main())
