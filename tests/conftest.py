"""
Pytest fixtures for authcore tests.
"""
import pytest
from unittest.mock import AsyncMock

from authcore.integrations.auth_api import AuthApiClient
from authcore.integrations.storage import FileStorage, MemoryStorage
from authcore.models.auth import AuthResponse, LoginResponse
from authcore.models.user import User
from authcore.services.auth_service import AuthService
from authcore.services.credential_store import CredentialStore
from authcore.services.error_service import ErrorService
from authcore.services.operation_tracker import OperationTracker
from authcore.services.persistence import SessionPersistence


@pytest.fixture
def durable(tmp_path):
    """File-backed durable channel in a temp dir."""
    return FileStorage(tmp_path / "local_storage.json")


@pytest.fixture
def ephemeral():
    """Process-scoped ephemeral channel."""
    return MemoryStorage()


@pytest.fixture
def credentials(durable, ephemeral):
    return CredentialStore(durable, ephemeral)


@pytest.fixture
def tracker():
    return OperationTracker()


@pytest.fixture
def errors():
    return ErrorService()


@pytest.fixture
def persistence(durable):
    return SessionPersistence(durable, key="auth")


@pytest.fixture
def mock_api():
    """AuthApiClient with every network call mocked."""
    return AsyncMock(spec=AuthApiClient)


@pytest.fixture
def auth_service(mock_api, credentials, persistence, tracker):
    return AuthService(mock_api, credentials, persistence, tracker)


@pytest.fixture
def mock_user():
    return User(
        id=7,
        email="a@x.com",
        first_name="Ada",
        last_name="Lovelace",
        role="user",
        is_active=True,
    )


@pytest.fixture
def mock_admin():
    return User(id=1, email="admin@x.com", role="admin")


@pytest.fixture
def otp_login_response():
    """Regular user: server sent an OTP by email."""
    return LoginResponse.model_validate({
        "message": "OTP sent to your email",
        "email": "a@x.com",
        "requiresOTP": True,
    })


@pytest.fixture
def admin_login_response(mock_admin):
    """Admin: token issued directly."""
    return LoginResponse.model_validate({
        "message": "Login successful",
        "requiresOTP": False,
        "token": "admin-token",
        "user": mock_admin.model_dump(by_alias=True),
    })


@pytest.fixture
def otp_auth_response(mock_user):
    return AuthResponse(token="otp-token", user=mock_user)
