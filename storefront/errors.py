from typing import Optional


class StorefrontError(Exception):
    """Base class for every failure surfaced by the commerce engine."""

    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class AuthenticationRequired(StorefrontError):
    """A mutating call was made without a session. No request was sent."""

    default_message = "Please sign in to continue"


class SyncFailure(StorefrontError):
    """A fetch or mutation against a remote service failed."""

    default_message = "Could not reach the server"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ValidationRejection(StorefrontError):
    default_message = "Invalid request"

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class LifecycleViolation(StorefrontError):
    default_message = "This order can no longer be changed"


class UnconfirmedMutation(StorefrontError):
    """Local state was advanced although the server never confirmed the change."""

    default_message = "The change was not confirmed by the server"
