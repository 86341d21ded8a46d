"""
Custom error classes for the session core.
"""
from typing import Optional

from authcore.models.auth import OtpErrorCode


class AppError(Exception):
    """Base error for everything raised by authcore."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = "UNKNOWN_ERROR",
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for presentation code."""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(AppError):
    """Input rejected locally, before any network call."""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code)


class OtpValidationError(ValidationError):
    """OTP is not exactly six digits."""

    def __init__(self):
        super().__init__(
            "Please enter the complete 6-digit OTP",
            "INVALID_OTP_FORMAT"
        )


class CredentialError(AppError):
    """Server rejected the email/password pair.

    The code is whatever the server sent (e.g. USER_NOT_FOUND,
    INVALID_CREDENTIALS) so the login form can branch on it.
    """

    def __init__(self, message: str = "Login failed", code: Optional[str] = None):
        super().__init__(message, code)


class ChallengeError(AppError):
    """Server rejected the OTP."""

    def __init__(
        self,
        message: str = "OTP verification failed",
        code: Optional[str] = None
    ):
        super().__init__(message, code)

    @property
    def recoverable(self) -> bool:
        """Invalid or expired codes can be retried with a fresh OTP."""
        return OtpErrorCode.parse(self.code) is not None


class IdentityResolutionError(AppError):
    """Stored token was not accepted by the identity endpoint."""

    def __init__(self, message: str = "Failed to get user", code: Optional[str] = None):
        super().__init__(message, code or "IDENTITY_UNRESOLVED")


class TransportError(AppError):
    """Network failure, timeout or server error."""

    def __init__(
        self,
        message: str = "Cannot connect to backend server. Please try again.",
        code: str = "NETWORK_ERROR",
        status_code: Optional[int] = None
    ):
        super().__init__(message, code, {"status_code": status_code} if status_code else None)
        self.status_code = status_code


class SessionBusyError(AppError):
    """Another session operation is already in flight."""

    def __init__(self, operation: str, running: str):
        super().__init__(
            f"Cannot start {operation} while {running} is in progress",
            "SESSION_BUSY",
            {"operation": operation, "running": running},
        )


class InvalidTransitionError(AppError):
    """Operation is not permitted in the current session state."""

    def __init__(self, operation: str, status: str):
        super().__init__(
            f"{operation} is not allowed while session is {status}",
            "INVALID_TRANSITION",
            {"operation": operation, "status": status},
        )


class StorageUnavailableError(AppError):
    """A persistence channel could not be read or written."""

    def __init__(self, message: str = "Storage is unavailable"):
        super().__init__(message, "STORAGE_UNAVAILABLE")
