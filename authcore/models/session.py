"""
Session-related Pydantic models.
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from authcore.models.user import User

SNAPSHOT_VERSION = 1


class SessionStatus(str, Enum):
    """Where the session is in the login lifecycle."""
    ANONYMOUS = "anonymous"
    AWAITING_OTP = "awaiting_otp"
    AUTHENTICATED = "authenticated"


class ErrorKind(str, Enum):
    """Which failure family produced a session error."""
    CREDENTIAL = "credential"
    CHALLENGE = "challenge"
    IDENTITY = "identity"
    TRANSPORT = "transport"


class SessionError(BaseModel):
    """Error surfaced to the presentation layer."""
    model_config = ConfigDict(frozen=True)

    message: str
    code: Optional[str] = None  # verbatim from the server
    kind: ErrorKind
    recoverable: bool = True


class PendingOtpChallenge(BaseModel):
    """Login accepted, waiting for the emailed code."""
    model_config = ConfigDict(frozen=True)

    email: str
    remember_me: bool = False


class Session(BaseModel):
    """Mutable session state, owned by AuthService."""
    user: Optional[User] = None
    token: Optional[str] = None
    is_authenticated: bool = False
    loading: bool = False
    error: Optional[SessionError] = None
    pending_otp: Optional[PendingOtpChallenge] = None

    @property
    def status(self) -> SessionStatus:
        if self.is_authenticated:
            return SessionStatus.AUTHENTICATED
        if self.pending_otp is not None:
            return SessionStatus.AWAITING_OTP
        return SessionStatus.ANONYMOUS

    def reset(self) -> None:
        """Back to anonymous defaults. Keeps `error` for the caller to set."""
        self.user = None
        self.token = None
        self.is_authenticated = False
        self.loading = False
        self.pending_otp = None

    def view(self) -> "SessionView":
        return SessionView(
            user=self.user,
            is_authenticated=self.is_authenticated,
            loading=self.loading,
            error=self.error,
            status=self.status,
            pending_email=self.pending_otp.email if self.pending_otp else None,
        )


class SessionView(BaseModel):
    """Read-only projection handed to presentation code. Never carries the token."""
    model_config = ConfigDict(frozen=True)

    user: Optional[User] = None
    is_authenticated: bool = False
    loading: bool = False
    error: Optional[SessionError] = None
    status: SessionStatus = SessionStatus.ANONYMOUS
    pending_email: Optional[str] = None


class SessionSnapshot(BaseModel):
    """Durable slice of the session, as written to storage."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    user: Optional[User] = None
    token: Optional[str] = None
    is_authenticated: bool = Field(default=False, alias="isAuthenticated")
    version: int = SNAPSHOT_VERSION

    @classmethod
    def from_session(cls, session: Session) -> "SessionSnapshot":
        return cls(
            user=session.user,
            token=session.token,
            is_authenticated=session.is_authenticated,
        )

    @property
    def is_consistent(self) -> bool:
        """An authenticated snapshot must carry a token."""
        return self.token is not None or not self.is_authenticated
