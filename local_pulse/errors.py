# errors.py
from __future__ import annotations

from typing import Optional


class ErrorKind:
    LOCATION_REQUIRED = "LOCATION_REQUIRED"
    LOCATION_NOT_FOUND = "LOCATION_NOT_FOUND"
    INVALID_COORDINATES = "INVALID_COORDINATES"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    AQI_NOT_AVAILABLE = "AQI_NOT_AVAILABLE"


class PulseError(Exception):
    """
    Error surfaced to callers of the pulse subsystem.
    `code` is stable and machine-readable; `message` is for humans.
    """

    code: str = ErrorKind.SERVICE_UNAVAILABLE
    status_code: int = 503
    default_message: str = "Local Pulse service temporarily unavailable"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class LocationRequiredError(PulseError):
    code = ErrorKind.LOCATION_REQUIRED
    status_code = 400
    default_message = "Location permission required for Local Pulse"


class LocationNotFoundError(PulseError):
    code = ErrorKind.LOCATION_NOT_FOUND
    status_code = 404
    default_message = "Location not found"


class InvalidCoordinatesError(PulseError):
    code = ErrorKind.INVALID_COORDINATES
    status_code = 400
    default_message = "Invalid latitude or longitude"


class RateLimitExceededError(PulseError):
    code = ErrorKind.RATE_LIMIT_EXCEEDED
    status_code = 429
    default_message = "Upstream rate limit exceeded, try again soon"


class ServiceUnavailableError(PulseError):
    code = ErrorKind.SERVICE_UNAVAILABLE
    status_code = 503


class AirQualityNotAvailableError(PulseError):
    code = ErrorKind.AQI_NOT_AVAILABLE
    status_code = 404
    default_message = "AQI data not available"


class UpstreamError(Exception):
    """Raised by http_utils when an upstream call does not return 200."""

    def __init__(self, url: str, status_code: Optional[int] = None, reason: str = ""):
        self.url = url
        self.status_code = status_code
        self.reason = reason
        # Do not include params or body; they can carry secrets or user input
        super().__init__(f"{status_code or 'transport error'} from {url}")
