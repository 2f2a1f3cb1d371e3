# services/shiprocket/errors.py

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    VALIDATION = "validation"
    TRANSIENT_NETWORK = "transient_network"
    NOT_FOUND = "not_found"
    API = "api"


class ShiprocketError(Exception):
    """Base error for everything raised by the Shiprocket client."""
    kind: ErrorKind = ErrorKind.API
    retryable: bool = False

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


class ConfigurationError(ShiprocketError):
    """Credentials missing or the integration was disabled."""
    kind = ErrorKind.CONFIGURATION


class AuthenticationError(ShiprocketError):
    kind = ErrorKind.AUTHENTICATION


class RateLimitError(ShiprocketError):
    """HTTP 429. Never retried here; the caller has to back off."""
    kind = ErrorKind.RATE_LIMIT


class ValidationError(ShiprocketError):
    """HTTP 400/422: the vendor rejected the data we sent."""
    kind = ErrorKind.VALIDATION


class TransientNetworkError(ShiprocketError):
    """Timeout or connection-level failure."""
    kind = ErrorKind.TRANSIENT_NETWORK
    retryable = True


class NotFoundError(ShiprocketError):
    kind = ErrorKind.NOT_FOUND


class ApiError(ShiprocketError):
    """Any other non-2xx answer. Server errors are worth another attempt."""

    def __init__(self, message: str, status_code: Optional[int] = None, details: Any = None):
        super().__init__(message, status_code=status_code, details=details)
        self.retryable = status_code is not None and status_code >= 500
