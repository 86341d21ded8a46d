"""
Authentication service: the session state machine.

This module owns the session and orchestrates the login flow:
1. submit_login → direct token (admin) or OTP challenge
2. submit_otp → verify the emailed code, finish login
3. cancel_otp → back to the login form
4. fetch_current_user → resolve the user behind a stored token
5. logout → drop everything locally, notify the server best effort

These five (plus clear_error and startup rehydrate) are the only
ways the session changes. Presentation code reads `state`, a frozen
SessionView that never contains the token.

Only one session operation may be in flight at a time. Starting a
second one raises SessionBusyError. cancel_otp, logout and session
invalidation always win: they supersede the running operation, and
its result is discarded when it eventually arrives.
"""
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable, Optional

from authcore.integrations.auth_api import AuthApiClient
from authcore.models.session import (
    ErrorKind,
    PendingOtpChallenge,
    Session,
    SessionError,
    SessionStatus,
    SessionView,
)
from authcore.models.user import User
from authcore.services.credential_store import CredentialStore
from authcore.services.operation_tracker import OperationTracker
from authcore.services.persistence import SessionPersistence
from authcore.utils.logger import get_logger
from authcore.utils.errors import (
    AppError,
    ChallengeError,
    CredentialError,
    IdentityResolutionError,
    InvalidTransitionError,
    OtpValidationError,
    SessionBusyError,
)
from authcore.utils.tokens import is_token_expired

logger = get_logger(__name__)

# Tracker names for session operations
LOGIN_OP = "auth/login"
VERIFY_OTP_OP = "auth/verifyLoginOTP"
CURRENT_USER_OP = "auth/getCurrentUser"
LOGOUT_OP = "auth/logout"

OTP_PATTERN = re.compile(r"[0-9]{6}")

SessionListener = Callable[[SessionView], None]


def session_error_from(exc: AppError) -> SessionError:
    """Translate a raised error into the error shown by the presentation layer."""
    if isinstance(exc, CredentialError):
        kind, recoverable = ErrorKind.CREDENTIAL, True
    elif isinstance(exc, ChallengeError):
        kind, recoverable = ErrorKind.CHALLENGE, exc.recoverable
    elif isinstance(exc, IdentityResolutionError):
        kind, recoverable = ErrorKind.IDENTITY, False
    else:
        kind, recoverable = ErrorKind.TRANSPORT, True
    return SessionError(
        message=exc.message,
        code=exc.code,
        kind=kind,
        recoverable=recoverable,
    )


class AuthService:
    """
    Session state machine.

    Usage:
        auth = AuthService(api, credentials, persistence, tracker)
        auth.rehydrate()
        status = await auth.submit_login(email, password, remember_me=True)
        if status == SessionStatus.AWAITING_OTP:
            status = await auth.submit_otp("123456")
    """

    def __init__(
        self,
        api: AuthApiClient,
        credentials: CredentialStore,
        persistence: SessionPersistence,
        tracker: OperationTracker,
    ):
        self.api = api
        self.credentials = credentials
        self.persistence = persistence
        self.tracker = tracker
        self.session = Session()

        # Name of the session operation in flight, if any
        self._running: Optional[str] = None
        # Bumped whenever a running operation is superseded
        self._epoch = 0
        self._listeners: list[SessionListener] = []

        api.on_unauthorized = self._on_unauthorized

    # ─── Read side ─────────────────────────────────────────────

    @property
    def state(self) -> SessionView:
        return self.session.view()

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    @property
    def needs_user(self) -> bool:
        """A token is held but nobody has resolved who it belongs to yet."""
        return self.session.token is not None and self.session.user is None

    def remembered_email(self) -> Optional[str]:
        return self.credentials.remembered_email()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Call `listener(view)` after every session change.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ─── Startup ───────────────────────────────────────────────

    def rehydrate(self) -> SessionView:
        """
        Restore the session from storage. Call once before anything renders.

        The credential channels are the authority on the token:
        - no token in either channel → anonymous (e.g. a session-only
          login from a previous process)
        - token with an expired `exp` claim → channels cleared, anonymous
        - token differs from the snapshot → keep the token, drop the
          user so it gets re-fetched
        """
        if self._running is not None:
            raise SessionBusyError("rehydrate", self._running)

        snapshot = self.persistence.rehydrate()
        token = self.credentials.read()
        session = Session()

        if token is None:
            if snapshot.token is not None:
                logger.info("Snapshot token has no backing credential, starting anonymous")
        elif is_token_expired(token):
            self.credentials.clear()
        elif token == snapshot.token:
            session.token = token
            session.user = snapshot.user
            session.is_authenticated = snapshot.is_authenticated
        else:
            logger.info("Stored credential differs from snapshot, user must be re-fetched")
            session.token = token

        self.session = session
        self._commit()
        logger.info(f"Session rehydrated: status={self.status.value}")
        return self.state

    # ─── Transitions ───────────────────────────────────────────

    async def submit_login(
        self,
        email: str,
        password: str,
        remember_me: bool = False,
    ) -> SessionStatus:
        """
        Submit email and password.

        Admin accounts are authenticated straight away and the token
        is saved in the channel picked by `remember_me`. Everyone else
        moves to AWAITING_OTP with no token stored.

        Returns:
            Resulting status; ANONYMOUS means the attempt failed and
            `state.error` carries the server's message and code

        Raises:
            InvalidTransitionError: Already authenticated
            SessionBusyError: Another session operation is in flight
        """
        if self.status == SessionStatus.AUTHENTICATED:
            raise InvalidTransitionError("submit_login", self.status.value)

        async with self._operation(LOGIN_OP) as epoch:
            try:
                result = await self.api.login(email, password)
            except AppError as e:
                if self._superseded(epoch, LOGIN_OP):
                    return self.status
                self.session.pending_otp = None
                self.session.error = session_error_from(e)
                logger.info(f"Login failed for {email}: code={e.code}")
                return self.status

            if self._superseded(epoch, LOGIN_OP):
                return self.status

            if remember_me:
                self.credentials.remember_email(email)
            else:
                self.credentials.forget_email()

            if result.is_direct:
                self.credentials.save(result.token, durable=remember_me)
                self.session.token = result.token
                self.session.user = result.user
                self.session.is_authenticated = True
                self.session.pending_otp = None
                logger.info(f"Direct login for: {email}")
            else:
                self.session.pending_otp = PendingOtpChallenge(
                    email=email, remember_me=remember_me
                )
                logger.info(f"OTP challenge issued for: {email}")

        return self.status

    async def submit_otp(self, code: str) -> SessionStatus:
        """
        Verify the login OTP.

        The code is checked locally first; a malformed code never
        reaches the network and leaves the session untouched.

        Returns:
            AUTHENTICATED on success, AWAITING_OTP on failure. Check
            `state.error.recoverable`: INVALID_OTP / OTP_EXPIRED can be
            retried with a fresh code, anything else needs a new login.

        Raises:
            InvalidTransitionError: No OTP challenge pending
            SessionBusyError: Another session operation is in flight
            OtpValidationError: Code is not exactly six digits
        """
        if self.status != SessionStatus.AWAITING_OTP:
            raise InvalidTransitionError("submit_otp", self.status.value)
        if self._running is not None:
            raise SessionBusyError(VERIFY_OTP_OP, self._running)
        if not isinstance(code, str) or not OTP_PATTERN.fullmatch(code):
            raise OtpValidationError()

        challenge = self.session.pending_otp

        async with self._operation(VERIFY_OTP_OP) as epoch:
            try:
                result = await self.api.verify_otp(challenge.email, code)
            except AppError as e:
                if self._superseded(epoch, VERIFY_OTP_OP):
                    return self.status
                error = session_error_from(e)
                if not isinstance(e, ChallengeError):
                    # Only a rejected code can be retried in place
                    error = error.model_copy(update={"recoverable": False})
                self.session.error = error
                logger.info(f"OTP verification failed for {challenge.email}: code={e.code}")
                return self.status

            if self._superseded(epoch, VERIFY_OTP_OP):
                return self.status

            self.credentials.save(result.token, durable=challenge.remember_me)
            self.session.token = result.token
            self.session.user = result.user
            self.session.is_authenticated = True
            self.session.pending_otp = None
            logger.info(f"OTP verified for: {challenge.email}")

        return self.status

    def cancel_otp(self) -> SessionView:
        """
        Abandon the OTP challenge and return to the login form.

        Does not contact the server. A verification still in flight
        is left to finish; its result is ignored.

        Raises:
            InvalidTransitionError: No OTP challenge pending
        """
        if self.status != SessionStatus.AWAITING_OTP:
            raise InvalidTransitionError("cancel_otp", self.status.value)

        self._supersede()
        self.session.pending_otp = None
        self.session.error = None
        self._commit()
        logger.info("OTP challenge cancelled")
        return self.state

    async def fetch_current_user(self) -> Optional[User]:
        """
        Resolve the user for the stored token.

        Any failure (rejected token, bad payload, network) invalidates
        the session: an identity that cannot be resolved is treated as
        an invalid session, not a glitch.

        Returns:
            The user, or None if the session was invalidated

        Raises:
            InvalidTransitionError: No token held
            SessionBusyError: Another session operation is in flight
        """
        if self.session.token is None:
            raise InvalidTransitionError("fetch_current_user", self.status.value)

        async with self._operation(CURRENT_USER_OP) as epoch:
            try:
                user = await self.api.fetch_current_user()
            except AppError as e:
                if self._superseded(epoch, CURRENT_USER_OP):
                    return None
                logger.warning(f"Could not resolve current user: {e.message}")
                self.invalidate_session(e)
                return None

            if self._superseded(epoch, CURRENT_USER_OP):
                return None

            self.session.user = user
            self.session.is_authenticated = True

        return self.session.user

    async def logout(self) -> None:
        """
        Log out locally, then tell the server.

        The local reset happens first and cannot fail. The server
        notification is best effort; its failure is only logged.
        """
        token = self.session.token or self.credentials.read()

        self._supersede()
        self.credentials.clear()
        self.credentials.forget_email()
        self.session.reset()
        self.session.error = None
        self._commit()
        logger.info("Logged out")

        if token is None:
            return

        async with self.tracker.track(LOGOUT_OP):
            try:
                await self.api.logout_notify(token)
            except AppError as e:
                logger.warning(f"Logout notification failed: {e.message}")

    def clear_error(self) -> None:
        """Dismiss the current session error."""
        if self.session.error is None:
            return
        self.session.error = None
        self._notify()

    def invalidate_session(self, cause: Optional[AppError] = None) -> None:
        """
        Drop the session after the server refused its token.

        Clears both credential channels and resets to anonymous with
        a non-recoverable identity error.
        """
        cause = cause or IdentityResolutionError(
            "Session expired. Please sign in again.", "SESSION_EXPIRED"
        )
        self._supersede()
        self.credentials.clear()
        self.session.reset()
        error = session_error_from(cause)
        self.session.error = error.model_copy(
            update={"kind": ErrorKind.IDENTITY, "recoverable": False}
        )
        self._commit()
        logger.info("Session invalidated")

    # ─── Internals ─────────────────────────────────────────────

    def _on_unauthorized(self) -> None:
        if self.session.token is None and not self.session.is_authenticated:
            return
        self.invalidate_session()

    @asynccontextmanager
    async def _operation(self, name: str) -> AsyncIterator[int]:
        """
        Run one session operation: reject overlaps, hold `loading`,
        report to the tracker, snapshot once it completes.
        """
        if self._running is not None:
            raise SessionBusyError(name, self._running)

        epoch = self._epoch
        self._running = name
        self.session.loading = True
        self.session.error = None
        self._notify()
        try:
            async with self.tracker.track(name):
                yield epoch
        finally:
            if self._epoch == epoch:
                self._running = None
                self.session.loading = False
                self._commit()

    def _supersede(self) -> None:
        """Detach the running operation so its result gets discarded."""
        if self._running is not None:
            logger.info(f"Superseding in-flight {self._running}")
            self._epoch += 1
            self._running = None
        self.session.loading = False

    def _superseded(self, epoch: int, name: str) -> bool:
        if epoch == self._epoch:
            return False
        logger.info(f"Discarding result of superseded {name}")
        return True

    def _commit(self) -> None:
        self.persistence.snapshot(self.session)
        self._notify()

    def _notify(self) -> None:
        view = self.state
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Session listener failed")
