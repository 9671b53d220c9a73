class TrackingError(Exception):
    """Base error for everything raised by the tracking SDK."""

    code = "TRACKING_ERROR"

    def __init__(self, message: str, *, trace_id: str | None = None, details=None):
        super().__init__(message)
        self.message = message
        self.trace_id = trace_id
        self.details = details


class ConfigError(TrackingError):
    """Invalid or missing configuration; raised from constructors."""

    code = "CONFIG_ERROR"


class ValidationError(TrackingError):
    """Malformed event data. Raised before any network call and never retried."""

    code = "VALIDATION_ERROR"


class NetworkError(TrackingError):
    """The request never produced an HTTP response."""

    code = "NETWORK_ERROR"


class ApiError(TrackingError):
    """The endpoint answered with a non-2xx status."""

    code = "API_ERROR"

    def __init__(self, message: str, *, status: int, trace_id: str | None = None, details=None):
        super().__init__(message, trace_id=trace_id, details=details)
        self.status = status

    def __str__(self) -> str:
        return f"{self.status}: {self.message}"


class ParseError(TrackingError):
    """A successful response whose body is not a JSON object."""

    code = "PARSE_ERROR"


RETRYABLE_ERRORS = (NetworkError, ApiError)
