import logging
import os

from dotenv import load_dotenv

load_dotenv()  # Load environment variables from .env

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


# --- Generative model ---
OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o")
OPENAI_IMAGE_MODEL: str = os.getenv("OPENAI_IMAGE_MODEL", "gpt-image-1")
ENABLE_OPTIMIZATION_PASS: bool = _env_flag("ENABLE_OPTIMIZATION_PASS")
ENABLE_DAY_IMAGES: bool = _env_flag("ENABLE_DAY_IMAGES")

# --- Trip storage ---
TRIP_STORE_BACKEND: str = os.getenv("TRIP_STORE_BACKEND", "redis")
REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379")
# 0 keeps trips forever
TRIP_TTL_SECONDS: int = int(os.getenv("TRIP_TTL_SECONDS", "0"))
SUPABASE_URL: str | None = os.getenv("SUPABASE_URL")
SUPABASE_KEY: str | None = os.getenv("SUPABASE_KEY")
SUPABASE_TRIPS_TABLE: str = os.getenv("SUPABASE_TRIPS_TABLE", "itineraries")

# --- Payments & mail ---
STRIPE_SECRET_KEY: str | None = os.getenv("STRIPE_SECRET_KEY")
PRICE_CENTS: int = int(os.getenv("PRICE_CENTS", "500"))
RESEND_API_KEY: str | None = os.getenv("RESEND_API_KEY")
MAIL_FROM: str = os.getenv("MAIL_FROM", "TripDaddy <onboarding@resend.dev>")
CLIENT_URL: str = os.getenv("CLIENT_URL", "http://localhost:5173")

# --- Places ---
GOOGLE_PLACE_API_KEY: str | None = os.getenv("GOOGLE_PLACE_API_KEY")

# --- HTTP ---
CORS_ORIGINS: list[str] = [origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()]
