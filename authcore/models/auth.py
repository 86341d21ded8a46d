"""
Auth API contracts and error codes.

Login failures and OTP failures use two separate code enumerations.
The server sends both in the same field, but they drive different
remediation paths and must not be mixed up.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from authcore.models.user import User


class LoginErrorCode(str, Enum):
    """Codes the login endpoint uses to classify credential failures."""
    USER_NOT_FOUND = "USER_NOT_FOUND"        # offer sign-up
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"  # offer password reset

    @classmethod
    def parse(cls, code: Optional[str]) -> Optional["LoginErrorCode"]:
        """Return the matching member, or None for unknown codes."""
        try:
            return cls(code)
        except ValueError:
            return None


class OtpErrorCode(str, Enum):
    """Codes for OTP failures the user can recover from in place."""
    INVALID_OTP = "INVALID_OTP"
    OTP_EXPIRED = "OTP_EXPIRED"

    @classmethod
    def parse(cls, code: Optional[str]) -> Optional["OtpErrorCode"]:
        try:
            return cls(code)
        except ValueError:
            return None


class LoginResponse(BaseModel):
    """Response of POST /auth/login.

    Admin accounts get a token straight away; everyone else gets
    requiresOTP=true and a code by email.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    message: Optional[str] = None
    email: Optional[str] = None
    requires_otp: bool = Field(default=False, alias="requiresOTP")
    token: Optional[str] = None
    user: Optional[User] = None

    @property
    def is_direct(self) -> bool:
        """True when the login completed without an OTP step."""
        return bool(self.token) and not self.requires_otp


class AuthResponse(BaseModel):
    """Response of POST /auth/verify-login-otp."""
    model_config = ConfigDict(extra="ignore")

    token: str
    user: User
