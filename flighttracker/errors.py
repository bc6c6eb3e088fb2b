"""
Error taxonomy for FlightTracker.

Failures from the API client travel as typed result values; these
exceptions exist for callers (and the HTTP layer) that want to raise them.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Category of a failed operation."""
    NETWORK = 'network'        # no connectivity, timeout
    API = 'api'                # non-2xx or malformed response
    NOT_FOUND = 'not_found'    # empty result set
    VALIDATION = 'validation'  # blank input, missing airport code
    UNKNOWN = 'unknown'


class FlightTrackerError(Exception):
    """Base class for all FlightTracker errors."""
    kind: ErrorKind = ErrorKind.UNKNOWN

    def __init__(self, message: str = '', detail: Optional[str] = None):
        super().__init__(message or self.kind.value)
        self.detail = detail


class NetworkError(FlightTrackerError):
    kind = ErrorKind.NETWORK


class ApiError(FlightTrackerError):
    kind = ErrorKind.API


class NotFoundError(FlightTrackerError):
    kind = ErrorKind.NOT_FOUND


class ValidationError(FlightTrackerError):
    kind = ErrorKind.VALIDATION


class UnknownError(FlightTrackerError):
    kind = ErrorKind.UNKNOWN


_ERRORS_BY_KIND = {
    ErrorKind.NETWORK: NetworkError,
    ErrorKind.API: ApiError,
    ErrorKind.NOT_FOUND: NotFoundError,
    ErrorKind.VALIDATION: ValidationError,
    ErrorKind.UNKNOWN: UnknownError,
}


def error_for_kind(kind: ErrorKind, message: str = '', detail: Optional[str] = None) -> FlightTrackerError:
    """Build the exception matching an error kind."""
    return _ERRORS_BY_KIND[kind](message, detail)
