"""Tests for administrative actions."""

import pytest

from update_monitor import db
from update_monitor.admin import Admin, AdminError, PermissionDenied

OWNER = 1000
GUILD = 555


@pytest.fixture
def owner(temp_db, discord):
    return Admin(OWNER, discord=discord, guild_id=GUILD)


class TestPermissions:
    """Tests for authorization checks."""

    def test_stranger_is_denied(self, temp_db):
        with pytest.raises(PermissionDenied):
            Admin(5).watch("Windows")
        assert db.get_status("Windows") is None

    def test_verified_role_is_allowed(self, owner):
        owner.add_role(77)

        assert "started watching" in Admin(5, [77]).watch("Windows")

    def test_verified_user_is_allowed(self, owner):
        owner.add_user(5)
        assert Admin(5).watch("Mac")

        owner.remove_user(5)
        with pytest.raises(PermissionDenied):
            Admin(5).watch("Mac")


class TestWatching:
    """Tests for watch, unwatch and channel binding."""

    def test_watch_creates_empty_row(self, owner):
        owner.watch("windows")

        assert db.get_status("Windows") == db.VersionState("Windows", "", 0, False)

    def test_watch_unbinds_existing_row(self, owner):
        db.update_status(db.VersionState("IOS", "2.671.0|2024-01-10", channel_id=42, updated=True))

        owner.watch("IOS")

        assert db.get_status("IOS") == db.VersionState("IOS", "2.671.0|2024-01-10", 0, True)

    def test_unknown_source(self, owner):
        with pytest.raises(AdminError, match="Unknown client"):
            owner.watch("Linux")

    def test_unwatch(self, owner):
        owner.watch("Mac")
        owner.unwatch("Mac")

        assert db.get_status("Mac") is None

    def test_unwatch_not_watched(self, owner):
        with pytest.raises(AdminError):
            owner.unwatch("Mac")

    def test_bind_channel_creates_row_and_binding(self, owner):
        message = owner.bind_channel("Android", 42, "android-updated", "android-not-updated")

        assert "#42" in message
        assert db.get_status("Android") == db.VersionState("Android", "", 42, False)
        assert db.get_channel(42) == db.ChannelBinding(42, "android-updated", "android-not-updated")

    def test_bind_channel_keeps_version(self, owner):
        db.update_status(db.VersionState("Android", "2.671.0|2024-01-10"))

        owner.bind_channel("Android", 42, "up", "down")

        assert db.get_status("Android").version == "2.671.0|2024-01-10"

    def test_set_log_first_write_wins(self, owner):
        assert "Successfully" in owner.set_log(900)
        assert "already set to #900" in owner.set_log(901)
        assert db.get_log_channel() == 900


class TestDeclareUpdated:
    """Tests for declaring a client updated / not updated."""

    def test_declare_updated_renames_channel(self, owner, discord):
        owner.bind_channel("IOS", 42, "ios-updated", "ios-not-updated")

        assert owner.declare_updated("IOS") == "Successfully updated **IOS**"

        assert db.get_status("IOS").updated is True
        discord.rename_channel.assert_called_once_with(42, "ios-updated")

    def test_declare_not_updated_renames_channel(self, owner, discord):
        owner.bind_channel("IOS", 42, "ios-updated", "ios-not-updated")
        owner.declare_updated("IOS")

        owner.declare_not_updated("IOS")

        assert db.get_status("IOS").updated is False
        discord.rename_channel.assert_called_with(42, "ios-not-updated")

    def test_unwatched_source(self, owner):
        with pytest.raises(AdminError, match="isn't initialized"):
            owner.declare_updated("IOS")

    def test_watch_only_source_updates_flag(self, owner, discord):
        owner.watch("Windows")

        assert "no bound channel" in owner.declare_updated("Windows")
        assert db.get_status("Windows").updated is True
        discord.rename_channel.assert_not_called()

    def test_channel_missing_from_guild(self, owner, discord):
        owner.bind_channel("IOS", 42, "up", "down")
        discord.find_guild_channel.side_effect = lambda guild_id, channel_id: None

        with pytest.raises(AdminError, match="not found"):
            owner.declare_updated("IOS")
        assert db.get_status("IOS").updated is True


class TestHistory:
    """Tests for the history view."""

    def test_history(self, owner):
        db.add_history("Windows", "v1")

        assert [e.version for e in owner.history("Windows")] == ["v1"]
