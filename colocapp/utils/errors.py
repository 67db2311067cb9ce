"""Error handling utilities."""

from typing import Optional


class ColocAppError(Exception):
    """Base exception for the colocapp client."""
    pass


class StepValidationError(ColocAppError):
    """A wizard step failed its validator."""

    def __init__(self, step: int, message: str):
        super().__init__(message)
        self.step = step


class NetworkError(ColocAppError):
    """Remote call failed (connection, HTTP status or malformed payload)."""
    pass


class RequestTimeoutError(NetworkError):
    """Remote call exceeded its timeout."""
    pass


class UploadError(ColocAppError):
    """One or more media uploads failed."""
    pass


class ProfileIncompleteError(ColocAppError):
    """Profile cannot be submitted for verification yet."""
    pass


class AuthError(ColocAppError):
    """Sign-in, sign-up or token refresh was rejected."""
    pass


class AuthorizationError(ColocAppError):
    """Caller is not allowed to perform the action."""

    def __init__(self, message: str, reason: str = "unauthenticated"):
        super().__init__(message)
        self.reason = reason


class NotFoundError(ColocAppError):
    """Referenced record does not exist (or is not visible to the caller)."""
    pass


class RecordStoreError(ColocAppError):
    """Document store operation error."""
    pass


class DataSourcesExhaustedError(ColocAppError):
    """Every listing data source failed."""

    def __init__(self, attempts: list):
        names = ", ".join(f"{a.source}: {a.error}" for a in attempts)
        super().__init__(f"All listing sources failed ({names})")
        self.attempts = attempts


_FRIENDLY_MESSAGES = (
    (RequestTimeoutError, "The server took too long to respond. Please try again."),
    (NetworkError, "Unable to reach the server. Check your connection and try again."),
    (DataSourcesExhaustedError, "Listings could not be loaded. Pull to refresh to try again."),
    (RecordStoreError, "Your listing could not be saved. Please try again."),
    (NotFoundError, "This listing is no longer available."),
    (AuthError, "Incorrect email or password."),
)


def friendly_message(exc: BaseException, default: Optional[str] = None) -> str:
    """Map an exception to a message suitable for display."""
    # Validation, upload and authorization messages are already written for users
    if isinstance(exc, (StepValidationError, UploadError, ProfileIncompleteError, AuthorizationError)):
        return str(exc)
    for exc_type, message in _FRIENDLY_MESSAGES:
        if isinstance(exc, exc_type):
            return message
    return default or "Something went wrong. Please try again."
