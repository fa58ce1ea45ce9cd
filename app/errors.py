"""Error types shared by the provider clients and the route layer."""

from enum import Enum

DIAGNOSTIC_SNIPPET_LENGTH = 200


class ErrorKind(str, Enum):
    """Classification of a failed provider or request operation."""
    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    TRANSIENT_UPSTREAM = "transient_upstream"
    ENDPOINT_SHAPE_MISMATCH = "endpoint_shape_mismatch"
    MALFORMED_RESPONSE = "malformed_response"
    EMPTY_CONTENT = "empty_content"
    UPSTREAM = "upstream"


class ConfigurationError(Exception):
    """Raised at startup when a required setting is missing."""


class ProviderRequestError(Exception):
    """A failed call to an AI provider.

    Carries the upstream status and body so callers can decide what to do by
    matching on ``kind`` and ``status`` rather than on the exception type.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.UPSTREAM,
        status: int | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.status = status
        self.body = body

    def __repr__(self) -> str:
        return (
            f"ProviderRequestError(kind={self.kind.value!r}, status={self.status!r}, "
            f"message={self.message!r})"
        )

    @property
    def http_status(self) -> int:
        """Status code to answer the browser with."""
        if self.kind == ErrorKind.CONFIGURATION:
            return 503
        if self.kind == ErrorKind.VALIDATION:
            return 400
        if self.kind in (ErrorKind.MALFORMED_RESPONSE, ErrorKind.EMPTY_CONTENT):
            return 500
        if self.status == 429:
            return 429
        return 502

    @property
    def public_message(self) -> str:
        """Message safe to return to the browser."""
        if self.kind in (ErrorKind.CONFIGURATION, ErrorKind.VALIDATION):
            return self.message
        if self.status == 429:
            return "The AI provider is rate limiting requests. Please try again later."
        return "The AI provider request failed. Please try again."


def truncate_body(body: str | None, limit: int = DIAGNOSTIC_SNIPPET_LENGTH) -> str:
    """Shorten an upstream body for server-side diagnostics."""
    if not body:
        return ""
    if len(body) <= limit:
        return body
    return body[:limit] + "..."
