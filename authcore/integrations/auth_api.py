"""
Backend API client.

This module handles communication with the SaaS backend:
1. Login (email + password, may answer "OTP required")
2. OTP verification for the login challenge
3. Fetching the current user for a stored token
4. Best-effort logout notification
5. Generic authenticated requests for every other feature

The bearer token is read from the credential store on each request,
so the client never holds on to a stale credential.

Error mapping:
- Connection failures / timeouts → TransportError (+ global "network" error)
- 5xx → TransportError (+ global "api" error)
- Login 4xx → CredentialError, OTP 4xx → ChallengeError
- /auth/me failures → IdentityResolutionError
- 401 on any other call → on_unauthorized hook, then IdentityResolutionError
"""
from typing import Any, Callable, Optional, Tuple

import httpx
from pydantic import ValidationError as PydanticValidationError

from authcore.config import get_settings
from authcore.models.auth import AuthResponse, LoginResponse
from authcore.models.user import User
from authcore.services.credential_store import CredentialStore
from authcore.services.error_service import ErrorService, GlobalErrorType
from authcore.services.operation_tracker import OperationTracker
from authcore.utils.logger import get_logger
from authcore.utils.errors import (
    AppError,
    ChallengeError,
    CredentialError,
    IdentityResolutionError,
    TransportError,
)

logger = get_logger(__name__)

# Auth endpoints (relative to api_base_url)
LOGIN_PATH = "/auth/login"
VERIFY_LOGIN_OTP_PATH = "/auth/verify-login-otp"
CURRENT_USER_PATH = "/auth/me"
LOGOUT_PATH = "/auth/logout"


def _json_body(response: httpx.Response) -> Any:
    if not response.content:
        return {}
    try:
        return response.json()
    except ValueError:
        return {}


def extract_error(response: httpx.Response, default: str) -> Tuple[str, Optional[str]]:
    """
    Pull (message, code) out of an error response.

    The backend puts the human message in `error` or `message`, and the
    classification code in `code` or, on older endpoints, in `message`.
    The code is returned exactly as sent.
    """
    body = _json_body(response)
    if not isinstance(body, dict):
        return default, None
    message = body.get("error") or body.get("message") or default
    code = body.get("code") or body.get("message")
    return str(message), (str(code) if code is not None else None)


class AuthApiClient:
    """
    HTTP client for the backend API.

    Usage:
        client = AuthApiClient(credentials, tracker, errors)
        result = await client.login(email, password)
        user = await client.fetch_current_user()
        data = await client.request("GET", "/campaigns", operation="campaigns/fetch")
    """

    def __init__(
        self,
        credentials: CredentialStore,
        tracker: OperationTracker,
        errors: ErrorService,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            credentials: Source of the bearer token
            tracker: Registry generic requests report to
            errors: Global error banner for network/server failures
            base_url: API root; defaults to settings.api_base_url
            timeout: Seconds per request; defaults to settings.api_timeout_seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        settings = get_settings()
        self.credentials = credentials
        self.tracker = tracker
        self.errors = errors
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.api_timeout_seconds
        self.transport = transport
        # Called when the server rejects the stored token
        self.on_unauthorized: Optional[Callable[[], None]] = None

    def _headers(self, token: Optional[str] = None) -> dict:
        headers = {"Content-Type": "application/json"}
        token = token or self.credentials.read()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _make_request(
        self,
        method: str,
        path: str,
        json_data: dict = None,
        params: dict = None,
        token: Optional[str] = None,
    ) -> httpx.Response:
        """
        Send one request and map transport-level failures.

        Non-2xx responses below 500 are returned for the caller to
        interpret; what a 4xx means depends on the endpoint. `token`
        overrides the stored credential for this request only.

        Raises:
            TransportError: Connection failure, timeout or 5xx
        """
        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            try:
                response = await client.request(
                    method=method,
                    url=path,
                    headers=self._headers(token),
                    json=json_data,
                    params=params,
                )
            except httpx.TimeoutException as e:
                logger.error(f"{method} {path} timed out: {e}")
                self.errors.set_error(
                    "The server took too long to respond. Please try again.",
                    GlobalErrorType.NETWORK,
                )
                raise TransportError("Request timed out. Please try again.", "TIMEOUT")
            except httpx.RequestError as e:
                logger.error(f"{method} {path} failed: {e}")
                self.errors.set_error(
                    "Cannot connect to backend server. Please make sure the backend is running.",
                    GlobalErrorType.NETWORK,
                )
                raise TransportError()

        if response.status_code >= 500:
            message, _ = extract_error(
                response, "Server error occurred. Please try again later."
            )
            logger.error(f"{method} {path} returned {response.status_code}")
            self.errors.set_error(message, GlobalErrorType.API)
            raise TransportError(message, "SERVER_ERROR", response.status_code)

        return response

    async def login(self, email: str, password: str) -> LoginResponse:
        """
        Submit credentials.

        Returns:
            LoginResponse; `is_direct` tells whether a token was issued
            or an OTP was sent

        Raises:
            CredentialError: Server rejected the credentials (code preserved)
            TransportError: Network or server failure
        """
        response = await self._make_request(
            "POST", LOGIN_PATH, json_data={"email": email, "password": password}
        )
        if not response.is_success:
            message, code = extract_error(response, "Login failed")
            logger.info(f"Login rejected: status={response.status_code}, code={code}")
            raise CredentialError(message, code)

        try:
            return LoginResponse.model_validate(_json_body(response))
        except PydanticValidationError as e:
            logger.error(f"Malformed login response: {e}")
            raise TransportError("Unexpected response from server", "BAD_RESPONSE")

    async def verify_otp(self, email: str, otp: str) -> AuthResponse:
        """
        Verify the login OTP.

        Raises:
            ChallengeError: Code rejected (INVALID_OTP / OTP_EXPIRED or other)
            TransportError: Network or server failure
        """
        response = await self._make_request(
            "POST", VERIFY_LOGIN_OTP_PATH, json_data={"email": email, "otp": otp}
        )
        if not response.is_success:
            message, code = extract_error(response, "OTP verification failed")
            logger.info(f"OTP rejected: status={response.status_code}, code={code}")
            raise ChallengeError(message, code)

        try:
            return AuthResponse.model_validate(_json_body(response))
        except PydanticValidationError as e:
            logger.error(f"Malformed OTP response: {e}")
            raise TransportError("Unexpected response from server", "BAD_RESPONSE")

    async def fetch_current_user(self) -> User:
        """
        Resolve the user behind the stored token.

        Raises:
            IdentityResolutionError: Token rejected or body unusable
            TransportError: Network or server failure
        """
        response = await self._make_request("GET", CURRENT_USER_PATH)
        if not response.is_success:
            message, code = extract_error(response, "Failed to get user")
            logger.warning(f"Identity lookup rejected: status={response.status_code}")
            raise IdentityResolutionError(message, code)

        try:
            return User.model_validate(_json_body(response))
        except PydanticValidationError as e:
            logger.error(f"Malformed user payload: {e}")
            raise IdentityResolutionError("Failed to get user", "BAD_RESPONSE")

    async def logout_notify(self, token: Optional[str] = None) -> None:
        """
        Tell the backend the token is being dropped. Best effort.

        Args:
            token: Credential being revoked; the store may already be empty
        """
        response = await self._make_request("POST", LOGOUT_PATH, token=token)
        if not response.is_success:
            message, code = extract_error(response, "Logout failed")
            raise AppError(message, code)

    async def request(
        self,
        method: str,
        path: str,
        operation: Optional[str] = None,
        json_data: dict = None,
        params: dict = None,
    ) -> Optional[Any]:
        """
        Authenticated request for any feature of the client.

        Args:
            method: HTTP method
            path: Endpoint relative to the API root
            operation: Tracker name; when given the call shows up in
                the global busy flag while it runs
            json_data: Request body
            params: Query parameters

        Returns:
            Parsed JSON body, {} for empty bodies, None for 404

        Raises:
            IdentityResolutionError: 401, after on_unauthorized ran
            AppError: Other 4xx, with the server's code
            TransportError: Network or server failure
        """
        if operation is None:
            return await self._request(method, path, json_data, params)
        async with self.tracker.track(operation):
            return await self._request(method, path, json_data, params)

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[dict],
        params: Optional[dict],
    ) -> Optional[Any]:
        response = await self._make_request(method, path, json_data, params)

        if response.is_success:
            return _json_body(response)

        if response.status_code == 404:
            return None

        if response.status_code == 401:
            logger.warning(f"{method} {path} unauthorized, invalidating session")
            if self.on_unauthorized is not None:
                self.on_unauthorized()
            raise IdentityResolutionError(
                "Session expired. Please sign in again.", "SESSION_EXPIRED"
            )

        message, code = extract_error(response, "Request failed")
        raise AppError(message, code or "REQUEST_FAILED", {"status_code": response.status_code})
