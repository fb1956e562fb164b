"""Error taxonomy for the duty tracking client."""

from typing import Optional


class EPatrolError(Exception):
    """
    Base error. `message` is safe to show to the officer; `detail` carries
    the underlying cause for logs.
    """

    default_message = "Something went wrong"
    retryable = False

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    def describe(self) -> str:
        """Message plus cause, for log lines."""
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class ConfigurationError(EPatrolError):
    default_message = "Backend is not configured"


class NetworkError(EPatrolError):
    default_message = "Could not reach the server. Check your connection and try again."
    retryable = True


class AuthenticationError(EPatrolError):
    default_message = "Invalid email or password"


class ProfileNotFound(EPatrolError):
    default_message = "Personnel record not found"


class Unauthenticated(EPatrolError):
    default_message = "User not authenticated"


class AssignmentNotFound(EPatrolError):
    default_message = "Beat assignment not found"


class InvalidAssignmentState(EPatrolError):
    default_message = "Beat assignment can no longer be accepted"


class PermissionDenied(EPatrolError):
    default_message = "Location permission not granted"


class InvalidTransition(EPatrolError):
    default_message = "That duty change is not allowed right now"


class PositionUnavailable(EPatrolError):
    default_message = "Failed to get current location"


class SyncFailure(EPatrolError):
    default_message = "Location update failed"


class TeardownFailure(EPatrolError):
    default_message = "Duty ended, but the location could not be cleared from the server"
