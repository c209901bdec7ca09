import logging
from datetime import UTC, datetime
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import Field

from trip_planner import config
from trip_planner.exceptions import AppException
from trip_planner.itinerary_models import Activity, ActivityContext, DestinationValidation, SmartQuestion
from trip_planner.trip_agent import TripAgent
from trip_planner.trip_preference import CamelModel, UserPreferences
from trip_planner.trip_service import TripService
from trip_planner.utils.google_place_api import GooglePlaceAPI
from trip_planner.utils.mailer import Mailer
from trip_planner.utils.payments import StripeCheckout
from trip_planner.utils.trip_store import BaseTripStore, RedisTripStore

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Trip Planner API",
    description="Generates day-by-day travel itineraries with a free preview and a paid unlock.",
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
)


# --- Exception Handlers ---
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    # Use logger.exception to include traceback automatically
    logger.exception(
        f"[AppException] {exc.message} "
        f"URL={request.url.path} "
        f"Method={request.method} "
        f"Client={request.client.host if request.client else 'unknown'}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": {
                "message": exc.message,
                "code": exc.status_code,
                "error_code": exc.error_code,
                "timestamp": datetime.now(UTC).isoformat(),
                "path": str(request.url.path),
            },
            "meta": {"status": "error", "timestamp": datetime.now(UTC).isoformat(), "version": "1.0"},
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.exception(f"[Unhandled Exception] {type(exc).__name__} at {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "message": "Internal Server Error",
                "path": str(request.url.path),
                "timestamp": datetime.now(UTC).isoformat(),
            }
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(f"[Validation Error] at {request.method} {request.url.path} - {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "error": {
                "message": "Validation Error",
                "details": jsonable_encoder(exc.errors()),
                "path": str(request.url.path),
            }
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ValidateDestinationRequest(CamelModel):
    destination: str = Field(..., min_length=1)


class SaveEmailRequest(CamelModel):
    id: str
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CheckoutRequest(CamelModel):
    id: str


class VerifyPaymentRequest(CamelModel):
    trip_id: str
    session_id: Optional[str] = None


class RegenerateActivityRequest(CamelModel):
    """Swap one activity. Send either the trip id or the preferences."""

    activity: Activity
    context: ActivityContext = Field(default_factory=ActivityContext)
    prefs: Optional[UserPreferences] = None
    trip_id: Optional[str] = None
    custom_request: Optional[str] = None
    existing_activity_names: List[str] = Field(default_factory=list)


def get_trip_store() -> BaseTripStore:
    if config.TRIP_STORE_BACKEND == "supabase":
        from trip_planner.utils.supabase_client import SupabaseTripStore

        return SupabaseTripStore()
    return RedisTripStore()


# Created on first request so the app can be imported without credentials
@lru_cache
def get_trip_service() -> TripService:
    if not config.OPENAI_API_KEY:
        raise AppException("OpenAI API key not configured.", status_code=500, error_code="MISSING_API_KEY")

    google_place_api = GooglePlaceAPI(api_key=config.GOOGLE_PLACE_API_KEY) if config.GOOGLE_PLACE_API_KEY else None
    return TripService(
        trip_agent=TripAgent(),
        trip_store=get_trip_store(),
        mailer=Mailer(),
        payments=StripeCheckout(),
        google_place_api=google_place_api,
        generate_images=config.ENABLE_DAY_IMAGES,
    )


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.post("/api/validate", response_model=DestinationValidation, response_model_by_alias=True)
async def validate_destination(payload: ValidateDestinationRequest, service: TripService = Depends(get_trip_service)):
    """Check the destination typed in the first step and return its 'City, Country' form."""
    return await service.validate_destination(payload.destination)


@app.post("/api/questions", response_model=List[SmartQuestion], response_model_by_alias=True)
async def get_questions(payload: UserPreferences, service: TripService = Depends(get_trip_service)):
    """Yes/no refinement questions for the swipe step. Empty when the model had nothing usable."""
    return await service.get_questions(payload)


@app.post("/api/generate")
async def generate_preview(payload: UserPreferences, service: TripService = Depends(get_trip_service)):
    """
    Generate the free preview of the trip and store it locked.

    Returns:
        {"id": str, "totalDays": int, "previewDays": int}
    """
    return await service.generate_preview(payload)


@app.post("/api/save-email")
def save_email(payload: SaveEmailRequest, service: TripService = Depends(get_trip_service)):
    return service.save_email(payload.id, payload.email)


@app.get("/api/itinerary/{trip_id}")
def get_itinerary(trip_id: str, service: TripService = Depends(get_trip_service)):
    return service.get_trip(trip_id)


@app.post("/api/create-checkout-session")
def create_checkout_session(payload: CheckoutRequest, service: TripService = Depends(get_trip_service)):
    return service.create_checkout(payload.id)


@app.post("/api/verify-payment")
async def verify_payment(payload: VerifyPaymentRequest, service: TripService = Depends(get_trip_service)):
    """
    Confirm the checkout and unlock the trip, generating the remaining days.

    Returns:
        {"success": bool, "plan": dict, "images": dict, ...}
    """
    return await service.unlock(payload.trip_id, payload.session_id)


@app.post("/api/regenerate")
async def regenerate_activity(payload: RegenerateActivityRequest, service: TripService = Depends(get_trip_service)):
    """Replacement for a single activity, or null."""
    return await service.regenerate_activity(
        activity=payload.activity,
        context=payload.context,
        prefs=payload.prefs,
        trip_id=payload.trip_id,
        custom_request=payload.custom_request,
        existing_names=payload.existing_activity_names,
    )


if __name__ == "__main__":
    import uvicorn

    # run uvicorn trip_planner.trip_planner_server:app --reload --port 8001
    uvicorn.run(app, host="0.0.0.0", port=8001)
