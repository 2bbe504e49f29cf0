"""Error taxonomy for the playback session core."""

from __future__ import annotations

from enum import Enum


class PlayerError(Exception):
    """Base error carrying a message that is safe to show to the viewer."""

    default_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InputValidationError(PlayerError):
    default_message = "Please enter a valid URL."


class InvalidLocator(InputValidationError):
    pass


class InvalidMediaType(InputValidationError):
    default_message = "Invalid URL. Make sure it is a direct link to a media file."


class DenyReason(str, Enum):
    DOMAIN_NOT_ALLOWED = "DomainNotAllowed"
    NO_REFERRER = "NoReferrer"
    REFERRER_NOT_ALLOWED = "ReferrerNotAllowed"


class AccessDenied(PlayerError):
    default_message = "Access denied for this context."

    def __init__(self, reason: DenyReason, message: str | None = None) -> None:
        self.reason = reason
        super().__init__(message or f"Access denied: {reason.value}")


class NetworkError(PlayerError):
    default_message = "Could not load media. Check that the link is correct and reachable."

    def __init__(self, status_code: int | None = None, message: str | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class FetchTimeout(NetworkError):
    default_message = "Loading the media took too long. Please try again."


class MalformedToken(PlayerError):
    default_message = "Malformed token."


class InvalidSharedLink(PlayerError):
    default_message = "Invalid shared link."


class ContractViolation(PlayerError):
    """Operation issued in a state that does not allow it."""


class LoadInProgress(ContractViolation):
    default_message = "A media load is already in progress."


class LoadCancelled(ContractViolation):
    default_message = "Loading was cancelled."


class NoActiveSession(ContractViolation):
    default_message = "No active playback session."


class ResourceReleased(ContractViolation):
    default_message = "The media resource has already been released."


class InvalidVolume(ContractViolation):
    default_message = "Volume must be between 0 and 1."
