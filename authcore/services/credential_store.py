"""
Credential store.

The only code allowed to touch the two token channels. Keeps the
"at most one channel holds the token" rule in one place:
- save(token, durable=True)  → durable channel, ephemeral cleared
- save(token, durable=False) → ephemeral channel, durable cleared
- read() prefers durable over ephemeral
- clear() empties both

Storage failures never escape; they are logged and the in-memory
session stays authoritative for the running process.
"""
from typing import Optional

from authcore.integrations.storage import KeyValueStorage
from authcore.utils.logger import get_logger
from authcore.utils.errors import StorageUnavailableError

logger = get_logger(__name__)

TOKEN_KEY = "token"
REMEMBERED_EMAIL_KEY = "rememberedEmail"


class CredentialStore:
    """
    Token persistence over a durable/ephemeral channel pair.

    Usage:
        store = CredentialStore(FileStorage(path), MemoryStorage())
        store.save(token, durable=remember_me)
        token = store.read()
    """

    def __init__(self, durable: KeyValueStorage, ephemeral: KeyValueStorage):
        self.durable = durable
        self.ephemeral = ephemeral

    def _get(self, channel: KeyValueStorage, key: str) -> Optional[str]:
        try:
            return channel.get_item(key)
        except StorageUnavailableError as e:
            logger.warning(f"Read from {channel.name} channel failed: {e.message}")
            return None

    def _set(self, channel: KeyValueStorage, key: str, value: str) -> None:
        try:
            channel.set_item(key, value)
        except StorageUnavailableError as e:
            logger.warning(f"Write to {channel.name} channel failed: {e.message}")

    def _remove(self, channel: KeyValueStorage, key: str) -> None:
        try:
            channel.remove_item(key)
        except StorageUnavailableError as e:
            logger.warning(f"Remove from {channel.name} channel failed: {e.message}")

    def save(self, token: str, durable: bool) -> None:
        """
        Store the token in exactly one channel.

        Args:
            token: Opaque credential from the server
            durable: True for "remember me" (survives restarts)
        """
        target, other = (
            (self.durable, self.ephemeral) if durable else (self.ephemeral, self.durable)
        )
        self._set(target, TOKEN_KEY, token)
        self._remove(other, TOKEN_KEY)
        logger.debug(f"Token saved to {target.name} channel")

    def read(self) -> Optional[str]:
        """Return the durable token, else the ephemeral one, else None."""
        return self._get(self.durable, TOKEN_KEY) or self._get(self.ephemeral, TOKEN_KEY)

    def clear(self) -> None:
        """Remove the token from both channels."""
        self._remove(self.durable, TOKEN_KEY)
        self._remove(self.ephemeral, TOKEN_KEY)

    def channel_of(self, token: str) -> Optional[str]:
        """Name of the channel currently holding `token`, if any."""
        for channel in (self.durable, self.ephemeral):
            if self._get(channel, TOKEN_KEY) == token:
                return channel.name
        return None

    # Login form convenience: pre-fill the last remembered email

    def remember_email(self, email: str) -> None:
        self._set(self.durable, REMEMBERED_EMAIL_KEY, email)

    def forget_email(self) -> None:
        self._remove(self.durable, REMEMBERED_EMAIL_KEY)

    def remembered_email(self) -> Optional[str]:
        return self._get(self.durable, REMEMBERED_EMAIL_KEY)
