"""Error taxonomy for the duplicate gate."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


def iso_now() -> str:
    """Current UTC time as ISO-8601 with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class GateError(Exception):
    """Base class for errors surfaced to callers of the gate."""

    status_code = 500
    error = "Internal Server Error"

    def __init__(self, message: str, timestamp: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.timestamp = timestamp or iso_now()

    def to_response(self) -> Dict[str, Any]:
        """Build the JSON body returned to the client."""
        return {
            "statusCode": self.status_code,
            "message": self.message,
            "error": self.error,
            "timestamp": self.timestamp,
        }


class InvalidRequest(GateError):
    """Request is missing the client identifier or is malformed."""

    status_code = 400
    error = "Bad Request"


class DuplicateRequest(GateError):
    """An equivalent request was admitted within the TTL window."""

    status_code = 409
    error = "Duplicate Request"

    def __init__(self, fingerprint: str, message: str = "duplicate request detected"):
        super().__init__(message)
        self.fingerprint = fingerprint


class BackendUnavailable(GateError):
    """Cache backend could not be reached or returned an error.

    The backend detail stays in str(exc) for logs; callers only see a
    generic message.
    """

    status_code = 500
    error = "Internal Server Error"
    public_message = "internal server error"

    def to_response(self) -> Dict[str, Any]:
        response = super().to_response()
        response["message"] = self.public_message
        return response
