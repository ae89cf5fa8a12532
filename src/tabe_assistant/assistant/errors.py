"""Error taxonomy for assistant streaming calls.

Every failure of a streaming call surfaces as one of these types so the
UI layer can pick different copy and actions per kind (re-login prompt,
"try again later", contact the administrator).

Usage:
    from tabe_assistant.assistant.errors import AssistantError, RateLimited

    try:
        response = await dispatcher.open_stream(history, persona_id)
    except RateLimited:
        ...
"""

from typing import Literal

ErrorKind = Literal[
    "auth_expired",
    "rate_limited",
    "quota_exhausted",
    "service_error",
    "stream_unavailable",
    "frame_too_large",
]


class AssistantError(Exception):
    """Base exception for all assistant call failures."""

    kind: ErrorKind = "service_error"

    def __init__(self, message: str, *, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthExpired(AssistantError):
    """Credential invalid or expired and refresh-and-retry did not recover."""

    kind = "auth_expired"


class RateLimited(AssistantError):
    """HTTP 429. The caller may retry later."""

    kind = "rate_limited"


class QuotaExhausted(AssistantError):
    """HTTP 402. User-actionable, not retryable by the caller."""

    kind = "quota_exhausted"


class ServiceError(AssistantError):
    """Any other failure, carrying the best available diagnostic message."""

    kind = "service_error"


class StreamUnavailable(ServiceError):
    """The response body could not be opened for reading."""

    kind = "stream_unavailable"


class FrameTooLarge(ServiceError):
    """A stream line grew past the pending-buffer cap without becoming parseable."""

    kind = "frame_too_large"

    def __init__(self, message: str, *, pending_chars: int, limit: int):
        self.pending_chars = pending_chars
        self.limit = limit
        super().__init__(message)


DEFAULT_SERVICE_MESSAGE = "Assistant service error"


def classify_status(status_code: int, server_message: str | None = None) -> AssistantError:
    """Map a non-2xx HTTP status to the error taxonomy.

    Args:
        status_code: Final HTTP status after any auth retry.
        server_message: The `error` field of a JSON error body, if any.
    """
    if status_code == 401:
        return AuthExpired("Authentication failed after session refresh", status_code=401)
    if status_code == 429:
        return RateLimited("Rate limit exceeded", status_code=429)
    if status_code == 402:
        return QuotaExhausted("AI credits exhausted", status_code=402)
    message = f"Error: {server_message}" if server_message else DEFAULT_SERVICE_MESSAGE
    return ServiceError(message, status_code=status_code)
