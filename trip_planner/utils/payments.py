import logging
from typing import Optional

import requests

from trip_planner import config
from trip_planner.exceptions import ExternalServiceException

logger = logging.getLogger(__name__)

STRIPE_API_URL = "https://api.stripe.com/v1"
REQUEST_TIMEOUT = 30
REJECTED_ERROR_CODE = "PAYMENT_REQUEST_REJECTED"


class StripeCheckout:
    """
    Minimal client for Stripe Checkout Sessions over the REST API.

    Refer to https://docs.stripe.com/api/checkout/sessions for the parameters.
    """

    def __init__(
        self,
        secret_key: Optional[str] = config.STRIPE_SECRET_KEY,
        client_url: str = config.CLIENT_URL,
        price_cents: int = config.PRICE_CENTS,
    ):
        self.secret_key = secret_key
        self.client_url = client_url.rstrip("/")
        self.price_cents = price_cents

    @property
    def enabled(self) -> bool:
        return bool(self.secret_key)

    def _request(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        if not self.enabled:
            raise ExternalServiceException("Payments are not configured", error_code="PAYMENTS_NOT_CONFIGURED")
        try:
            response = requests.request(
                method,
                f"{STRIPE_API_URL}{path}",
                auth=(self.secret_key, ""),
                data=data,
                timeout=REQUEST_TIMEOUT,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.HTTPError as e:
            logger.error(f"Stripe request {method} {path} failed: {e}")
            if e.response is not None:
                logger.error(f"Response: {e.response.text}")
            if e.response is not None and 400 <= e.response.status_code < 500:
                raise ExternalServiceException("Payment provider rejected the request", error_code=REJECTED_ERROR_CODE)
            raise ExternalServiceException("Payment provider request failed", error_code="PAYMENT_PROVIDER_ERROR")
        except requests.exceptions.RequestException as e:
            logger.error(f"Stripe request {method} {path} failed: {e}")
            raise ExternalServiceException("Payment provider request failed", error_code="PAYMENT_PROVIDER_ERROR")

    def create_checkout_session(self, trip_id: str, destination: str) -> str:
        """
        Create a one-off card payment that unlocks the trip.

        Returns:
            The hosted checkout URL to redirect the traveler to
        """
        data = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": 1,
            "line_items[0][price_data][currency]": "usd",
            "line_items[0][price_data][unit_amount]": self.price_cents,
            "line_items[0][price_data][product_data][name]": f"Full Itinerary: {destination}",
            "metadata[trip_id]": trip_id,
            # Stripe substitutes {CHECKOUT_SESSION_ID} itself
            "success_url": f"{self.client_url}/?success=true&session_id={{CHECKOUT_SESSION_ID}}&trip_id={trip_id}",
            "cancel_url": f"{self.client_url}/?canceled=true",
        }
        session = self._request("POST", "/checkout/sessions", data=data)
        logger.info(f"Created checkout session {session.get('id')} for trip {trip_id}")
        return session["url"]

    def is_session_paid(self, session_id: str, trip_id: Optional[str] = None) -> bool:
        """
        True when the checkout session is paid and, if given, was created for the trip.

        A session id Stripe does not know counts as not paid.
        """
        try:
            session = self._request("GET", f"/checkout/sessions/{session_id}")
        except ExternalServiceException as e:
            if e.error_code != REJECTED_ERROR_CODE:
                raise
            return False
        if trip_id is not None and (session.get("metadata") or {}).get("trip_id") != trip_id:
            logger.warning(f"Checkout session {session_id} does not belong to trip {trip_id}")
            return False
        return session.get("payment_status") == "paid"
