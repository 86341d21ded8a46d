"""
Session persistence and rehydration.

This module handles:
1. Writing the durable slice of the session (user, token,
   isAuthenticated) to durable storage after each completed transition
2. Reading it back at process start, before anything renders

The record is canonical JSON (sorted keys, compact separators) so
the same state always produces the same bytes and unchanged state
is never rewritten.
"""
import json

from pydantic import ValidationError as PydanticValidationError

from authcore.integrations.storage import KeyValueStorage
from authcore.models.session import Session, SessionSnapshot, SNAPSHOT_VERSION
from authcore.utils.logger import get_logger
from authcore.utils.errors import StorageUnavailableError

logger = get_logger(__name__)


def serialize_snapshot(snapshot: SessionSnapshot) -> str:
    """Canonical JSON for a snapshot."""
    data = snapshot.model_dump(mode="json", by_alias=True)
    return json.dumps(data, sort_keys=True, separators=(",", ":"))


class SessionPersistence:
    """
    Snapshot/rehydrate the session slice under a stable key.

    Usage:
        persistence = SessionPersistence(durable_storage, key="auth")
        initial = persistence.rehydrate()
        ...
        persistence.snapshot(session)
    """

    def __init__(self, storage: KeyValueStorage, key: str = "auth"):
        self.storage = storage
        self.storage_key = f"persist:{key}"

    def snapshot(self, session: Session) -> bool:
        """
        Persist the durable slice of `session`.

        Skipped while a transition is still loading, and when the
        serialized record is identical to the one already stored.

        Returns:
            True if storage was written
        """
        if session.loading:
            logger.debug("Snapshot skipped: transition in flight")
            return False

        payload = serialize_snapshot(SessionSnapshot.from_session(session))
        try:
            if self.storage.get_item(self.storage_key) == payload:
                return False
            self.storage.set_item(self.storage_key, payload)
        except StorageUnavailableError as e:
            logger.warning(f"Snapshot not persisted: {e.message}")
            return False

        logger.debug("Session snapshot written")
        return True

    def rehydrate(self) -> SessionSnapshot:
        """
        Load the last snapshot.

        Returns the anonymous default when nothing is stored, the
        record cannot be parsed, its version is unknown, or it claims
        to be authenticated without a token.
        """
        try:
            raw = self.storage.get_item(self.storage_key)
        except StorageUnavailableError as e:
            logger.warning(f"Snapshot unreadable, starting anonymous: {e.message}")
            return SessionSnapshot()

        if raw is None:
            return SessionSnapshot()

        try:
            data = json.loads(raw)
            snapshot = SessionSnapshot.model_validate(data)
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(f"Discarding unparseable session snapshot: {e}")
            return SessionSnapshot()

        if snapshot.version != SNAPSHOT_VERSION:
            logger.info(f"Discarding session snapshot version {snapshot.version}")
            return SessionSnapshot()

        if not snapshot.is_consistent:
            logger.warning("Discarding authenticated snapshot without a token")
            return SessionSnapshot()
        return snapshot

    def purge(self) -> None:
        """Remove the stored record."""
        try:
            self.storage.remove_item(self.storage_key)
        except StorageUnavailableError as e:
            logger.warning(f"Snapshot not purged: {e.message}")
            return
        logger.debug("Session snapshot purged")
