"""Administrative actions.

These back the operator commands (watch, bind a channel, declare a client
updated, ...).  Every action first checks the caller against the owner,
the verified users and the verified roles.
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from . import db
from .discord_api import DiscordClient
from .sources import get_source

logger = logging.getLogger(__name__)


class PermissionDenied(Exception):
    """Raised when the caller is not allowed to run an admin action."""


class AdminError(Exception):
    """Raised when an admin action cannot be carried out."""


class Admin:
    def __init__(
        self,
        actor_id: int,
        role_ids: Iterable[int] = (),
        *,
        discord: Optional[DiscordClient] = None,
        guild_id: int = 0,
        owner_id: Optional[int] = None,
    ) -> None:
        self.actor_id = int(actor_id)
        self.role_ids = [int(r) for r in role_ids]
        self._discord = discord
        self._guild_id = guild_id
        self._owner_id = owner_id

    def _require(self) -> None:
        if not db.is_authorized(self.actor_id, self.role_ids, owner_id=self._owner_id):
            logger.warning("User %s denied admin action", self.actor_id)
            raise PermissionDenied("You do not have permission for this command")

    @staticmethod
    def _source_key(source: str) -> str:
        try:
            return get_source(source).source_key
        except KeyError:
            raise AdminError(f"Unknown client {source!r}") from None

    # ---- Watching ------------------------------------------------------------

    def watch(self, source: str) -> str:
        """Start watching ``source`` without a bound channel."""
        self._require()
        key = self._source_key(source)
        status = db.get_status(key)
        if status is None:
            db.update_status(db.VersionState(source_key=key, version="", channel_id=0, updated=False))
        else:
            status.channel_id = 0
            db.update_status(status)
        return f"Successfully started watching **{key}**"

    def unwatch(self, source: str) -> str:
        self._require()
        key = self._source_key(source)
        if db.get_status(key) is None:
            raise AdminError(f"**{key}** is not being watched")
        db.delete_status(key)
        return f"Successfully stopped watching **{key}**"

    def bind_channel(self, source: str, channel_id: int, updated_text: str, not_updated_text: str) -> str:
        self._require()
        key = self._source_key(source)
        db.upsert_channel(db.ChannelBinding(int(channel_id), updated_text, not_updated_text))
        status = db.get_status(key)
        if status is None:
            status = db.VersionState(source_key=key, version="", channel_id=int(channel_id), updated=False)
        else:
            status.channel_id = int(channel_id)
        db.update_status(status)
        return (
            f"Successfully bound **{key}** to #{channel_id}, "
            f"with text ``{updated_text}`` and ``{not_updated_text}``"
        )

    def set_log(self, channel_id: int) -> str:
        self._require()
        db.set_log_channel(int(channel_id))
        current = db.get_log_channel()
        if current != int(channel_id):
            return f"Log channel is already set to #{current}"
        return f"Successfully set #{channel_id} as the log channel"

    # ---- Verified users & roles ------------------------------------------------

    def add_user(self, user_id: int) -> str:
        self._require()
        db.add_verified_user(int(user_id))
        return f"Successfully added {user_id} to the verified users list"

    def remove_user(self, user_id: int) -> str:
        self._require()
        db.remove_verified_user(int(user_id))
        return f"Successfully removed {user_id} from the verified users list"

    def add_role(self, role_id: int) -> str:
        self._require()
        db.add_verified_role(int(role_id))
        return f"Successfully added role {role_id} to the verified roles list"

    def remove_role(self, role_id: int) -> str:
        self._require()
        db.remove_verified_role(int(role_id))
        return f"Successfully removed role {role_id} from the verified roles list"

    # ---- Updated / not updated ---------------------------------------------------

    def _set_updated(self, source: str, updated: bool) -> str:
        self._require()
        key = self._source_key(source)
        status = db.get_status(key)
        if status is None:
            raise AdminError(f"Failed to update **{key}**, client isn't initialized")

        status.updated = updated
        db.update_status(status)

        binding = db.get_channel(status.channel_id) if status.channel_id else None
        if binding is None or self._discord is None:
            return f"Marked **{key}** as {'updated' if updated else 'not updated'} (no bound channel)"

        if self._discord.find_guild_channel(self._guild_id, status.channel_id) is None:
            raise AdminError("Failed to update bound channel, not found.")
        self._discord.rename_channel(
            status.channel_id,
            binding.updated_text if updated else binding.not_updated_text,
        )
        return f"Successfully updated **{key}**"

    def declare_updated(self, source: str) -> str:
        return self._set_updated(source, True)

    def declare_not_updated(self, source: str) -> str:
        return self._set_updated(source, False)

    # ---- Read-only ----------------------------------------------------------------

    def history(self, source: str, limit: int = 10) -> list[db.HistoryEntry]:
        self._require()
        return db.get_history(self._source_key(source), limit=limit)


__all__ = ["Admin", "AdminError", "PermissionDenied"]
