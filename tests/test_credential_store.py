"""
Unit tests for the credential store.

Tests channel exclusivity, read priority and storage failure handling.
"""
import pytest

from authcore.services.credential_store import CredentialStore, TOKEN_KEY


class TestSaveAndRead:
    """Test the at-most-one-channel rule."""

    def test_durable_save(self, credentials, durable, ephemeral):
        credentials.save("tok", durable=True)

        assert durable.get_item(TOKEN_KEY) == "tok"
        assert ephemeral.get_item(TOKEN_KEY) is None
        assert credentials.read() == "tok"

    def test_ephemeral_save(self, credentials, durable, ephemeral):
        credentials.save("tok", durable=False)

        assert ephemeral.get_item(TOKEN_KEY) == "tok"
        assert durable.get_item(TOKEN_KEY) is None
        assert credentials.read() == "tok"

    def test_switching_channel_clears_the_other(self, credentials, durable, ephemeral):
        credentials.save("first", durable=True)
        credentials.save("second", durable=False)

        assert durable.get_item(TOKEN_KEY) is None
        assert ephemeral.get_item(TOKEN_KEY) == "second"

        credentials.save("third", durable=True)
        assert durable.get_item(TOKEN_KEY) == "third"
        assert ephemeral.get_item(TOKEN_KEY) is None

    def test_save_is_idempotent(self, credentials, durable, ephemeral):
        credentials.save("tok", durable=True)
        credentials.save("tok", durable=True)

        assert durable.get_item(TOKEN_KEY) == "tok"
        assert ephemeral.get_item(TOKEN_KEY) is None

    def test_durable_wins_when_both_populated(self, credentials, durable, ephemeral):
        # Only reachable by writing around the store
        durable.set_item(TOKEN_KEY, "durable-tok")
        ephemeral.set_item(TOKEN_KEY, "ephemeral-tok")

        assert credentials.read() == "durable-tok"

    def test_read_empty(self, credentials):
        assert credentials.read() is None

    def test_clear_removes_both(self, credentials, durable, ephemeral):
        durable.set_item(TOKEN_KEY, "a")
        ephemeral.set_item(TOKEN_KEY, "b")

        credentials.clear()

        assert credentials.read() is None
        assert durable.get_item(TOKEN_KEY) is None
        assert ephemeral.get_item(TOKEN_KEY) is None

    def test_channel_of(self, credentials):
        credentials.save("tok", durable=False)
        assert credentials.channel_of("tok") == "ephemeral"
        assert credentials.channel_of("other") is None


class TestStorageFailures:
    """Storage errors degrade to no-ops."""

    def test_disabled_ephemeral_does_not_raise(self, credentials, ephemeral):
        ephemeral.available = False

        credentials.save("tok", durable=False)
        assert credentials.read() is None
        credentials.clear()

    def test_unwritable_durable_does_not_raise(self, tmp_path, ephemeral):
        from authcore.integrations.storage import FileStorage

        # A directory where the file should be makes every access fail
        blocked = tmp_path / "blocked"
        blocked.mkdir()
        store = CredentialStore(FileStorage(blocked), ephemeral)

        store.save("tok", durable=True)
        assert store.read() is None
        store.clear()

    def test_durable_failure_still_clears_ephemeral(self, tmp_path, ephemeral):
        from authcore.integrations.storage import FileStorage

        blocked = tmp_path / "blocked"
        blocked.mkdir()
        ephemeral.set_item(TOKEN_KEY, "old")
        store = CredentialStore(FileStorage(blocked), ephemeral)

        store.save("new", durable=True)

        assert ephemeral.get_item(TOKEN_KEY) is None


class TestRememberedEmail:
    """Login form pre-fill."""

    def test_remember_and_forget(self, credentials, durable):
        credentials.remember_email("a@x.com")
        assert credentials.remembered_email() == "a@x.com"

        credentials.forget_email()
        assert credentials.remembered_email() is None

    def test_remembered_email_survives_token_clear(self, credentials):
        credentials.remember_email("a@x.com")
        credentials.save("tok", durable=True)

        credentials.clear()

        assert credentials.remembered_email() == "a@x.com"
