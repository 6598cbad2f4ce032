"""Error taxonomy for KEV Feed.

Every failure a component can report is a ``KevFeedError`` subclass so the
HTTP layer can turn it into a structured response with a deliberate status
code instead of an uncontrolled abort.
"""

from typing import Any


class KevFeedError(Exception):
    """Base error with a machine-readable code and an HTTP status.

    Attributes:
        message: Human-readable description.
        error_code: Stable identifier such as ``UPSTREAM_TRANSPORT``.
        status_code: HTTP status the web layer should answer with.
        details: Optional extra context for the JSON body.
    """

    error_code: str = "INTERNAL_ERROR"
    status_code: int = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to the JSON body returned to HTTP clients."""
        body: dict[str, Any] = {"error": {"code": self.error_code, "message": self.message}}
        if self.details:
            body["error"]["details"] = self.details
        return body


class TransportError(KevFeedError):
    """Upstream could not be reached or answered with a non-2xx status."""

    error_code = "UPSTREAM_TRANSPORT"

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message, {"upstream_status": status} if status is not None else None)
        self.status = status


class DecodeError(KevFeedError):
    """Upstream (or cached) body is malformed or does not match the catalog shape."""

    error_code = "UPSTREAM_DECODE"


class CacheError(KevFeedError):
    """Key-value store read or write failed."""

    error_code = "CACHE_ERROR"


class BuildError(KevFeedError):
    """The RSS document could not be assembled."""

    error_code = "FEED_BUILD"


class InvalidInputError(KevFeedError):
    """Client sent a request the demo endpoints cannot use."""

    error_code = "INVALID_INPUT"

    def __init__(self, field: str, reason: str, status_code: int = 400):
        super().__init__(f"Invalid input for '{field}': {reason}", {"field": field})
        self.status_code = status_code
