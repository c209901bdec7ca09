"""
Custom exceptions for the Trip Planner application.
"""


class AppException(Exception):
    """
    Base exception class for application-specific errors.

    Attributes:
        message (str): Human-readable error message
        status_code (int): HTTP status code to return (default: 400)
        error_code (str, optional): Machine-readable error code for client handling
    """

    def __init__(self, message: str, status_code: int = 400, error_code: str = None):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(self.message)


class InvalidPreferencesException(AppException):
    """Raised when the submitted preferences break a form rule."""

    def __init__(self, message: str):
        super().__init__(message, status_code=400, error_code="INVALID_PREFERENCES")


class TripNotFoundException(AppException):
    def __init__(self, trip_id: str):
        super().__init__(f"Trip {trip_id} not found", status_code=404, error_code="TRIP_NOT_FOUND")


class GenerationFailedException(AppException):
    """Raised when the model produced no usable itinerary days."""

    def __init__(self, message: str = "Generation failed"):
        super().__init__(message, status_code=500, error_code="GENERATION_FAILED")


class PaymentRequiredException(AppException):
    def __init__(self, message: str = "Payment has not been completed"):
        super().__init__(message, status_code=402, error_code="PAYMENT_REQUIRED")


class ExternalServiceException(AppException):
    """Raised when a payment or storage provider call fails."""

    def __init__(self, message: str, error_code: str = "EXTERNAL_SERVICE_ERROR"):
        super().__init__(message, status_code=502, error_code=error_code)
