"""
Client core entry point.

create_core() wires storage, credentials, tracker, API client and the
session state machine together, and rehydrates the session before
returning, so presentation code never sees a half-restored state.
"""
from dataclasses import dataclass
from typing import Optional

import httpx

from authcore.config import Settings, get_settings
from authcore.integrations.auth_api import AuthApiClient
from authcore.integrations.storage import FileStorage, KeyValueStorage, MemoryStorage
from authcore.services.auth_service import AuthService
from authcore.services.credential_store import CredentialStore
from authcore.services.error_service import ErrorService
from authcore.services.operation_tracker import OperationTracker
from authcore.services.persistence import SessionPersistence
from authcore.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class SessionCore:
    """Everything presentation code needs, passed around explicitly."""
    auth: AuthService
    tracker: OperationTracker
    errors: ErrorService
    api: AuthApiClient
    credentials: CredentialStore
    persistence: SessionPersistence

    @property
    def is_busy(self) -> bool:
        return self.tracker.is_busy()


def create_core(
    settings: Optional[Settings] = None,
    durable: Optional[KeyValueStorage] = None,
    ephemeral: Optional[KeyValueStorage] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SessionCore:
    """
    Build a ready-to-use core.

    Args:
        settings: Defaults to get_settings()
        durable: Durable channel; defaults to a FileStorage under settings.storage_dir
        ephemeral: Ephemeral channel; defaults to a fresh MemoryStorage
        transport: Optional httpx transport for the API client

    Returns:
        SessionCore with the session already rehydrated
    """
    settings = settings or get_settings()
    durable = durable or FileStorage(settings.durable_storage_path)
    ephemeral = ephemeral or MemoryStorage()

    tracker = OperationTracker()
    errors = ErrorService()
    credentials = CredentialStore(durable, ephemeral)
    persistence = SessionPersistence(durable, key=settings.persist_key)
    api = AuthApiClient(
        credentials,
        tracker,
        errors,
        base_url=settings.api_base_url,
        timeout=settings.api_timeout_seconds,
        transport=transport,
    )
    auth = AuthService(api, credentials, persistence, tracker)
    auth.rehydrate()

    logger.info(f"Session core ready (api={settings.api_base_url})")
    return SessionCore(
        auth=auth,
        tracker=tracker,
        errors=errors,
        api=api,
        credentials=credentials,
        persistence=persistence,
    )
