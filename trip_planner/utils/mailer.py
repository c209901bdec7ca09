import logging
from typing import Optional

import requests

from trip_planner import config

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
REQUEST_TIMEOUT = 30

PREVIEW_EMAIL_HTML = (
    '<p>Your trip preview is ready! <a href="{link}">View it here</a>. '
    "Unlock the full trip for {price}.</p>"
)
FULL_TRIP_EMAIL_HTML = '<p>Thanks for your purchase! <a href="{link}">View your complete itinerary here</a>.</p>'


class Mailer:
    """Transactional email through Resend. Without an API key every send is a no-op."""

    def __init__(
        self,
        api_key: Optional[str] = config.RESEND_API_KEY,
        sender: str = config.MAIL_FROM,
        client_url: str = config.CLIENT_URL,
    ):
        self.api_key = api_key
        self.sender = sender
        self.client_url = client_url.rstrip("/")

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def itinerary_link(self, trip_id: str) -> str:
        return f"{self.client_url}/itinerary/{trip_id}"

    def send(self, to: str, subject: str, html: str) -> bool:
        """Send one email. Failures are logged and reported as False, never raised."""
        if not self.enabled:
            logger.info(f"Mail disabled, skipping '{subject}'")
            return False
        try:
            response = requests.post(
                RESEND_API_URL,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error sending '{subject}': {e}")
            return False
        return True

    def send_preview_email(
        self, to: str, trip_id: str, destination: str, price_cents: int = config.PRICE_CENTS
    ) -> bool:
        html = PREVIEW_EMAIL_HTML.format(link=self.itinerary_link(trip_id), price=f"${price_cents / 100:g}")
        return self.send(to, f"Your Trip to {destination} (Preview)", html)

    def send_full_trip_email(self, to: str, trip_id: str, destination: str) -> bool:
        html = FULL_TRIP_EMAIL_HTML.format(link=self.itinerary_link(trip_id))
        return self.send(to, f"Your Full Trip to {destination} is Ready!", html)
