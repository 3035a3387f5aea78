"""Discord notifier.

On a detected change the bound channel (if any) is renamed back to its
"not updated" text and an embed is posted to the log channel.  Delivery
is best-effort: failures are logged and never undo the stored change.
"""
from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass

from . import db
from .config import FOOTER_NAME
from .discord_api import DiscordClient, NotifyError
from .versions import version_token

logger = logging.getLogger(__name__)

EMBED_COLOR = 0xFF0000


@dataclass(frozen=True)
class ChangeEvent:
    source_key: str
    old_descriptor: str
    new_descriptor: str
    channel_id: int = 0


def build_embed(event: ChangeEvent, *, now: _dt.datetime | None = None) -> dict:
    now = now or _dt.datetime.now(_dt.timezone.utc)
    new_version = version_token(event.new_descriptor)
    old_version = version_token(event.old_descriptor) or "none"
    return {
        "title": f"{event.source_key} Update Detected",
        "description": f"Version: ``{new_version}``\nOld Version: ``{old_version}``",
        "color": EMBED_COLOR,
        "footer": {"text": f"{FOOTER_NAME} Update Bot"},
        "timestamp": now.isoformat(),
    }


def _reset_bound_channel(event: ChangeEvent, discord: DiscordClient, guild_id: int) -> bool:
    binding = db.get_channel(event.channel_id)
    if binding is None:
        logger.warning("%s is bound to channel %s but it has no display texts", event.source_key, event.channel_id)
        return False
    channel = discord.find_guild_channel(guild_id, event.channel_id)
    if channel is None:
        logger.warning("Bound channel %s for %s not found in guild %s", event.channel_id, event.source_key, guild_id)
        return False
    discord.rename_channel(event.channel_id, binding.not_updated_text)
    return True


def notify(event: ChangeEvent, discord: DiscordClient, guild_id: int) -> bool:
    """Rename the bound channel and post the alert.

    Returns True if the alert was posted to the log channel.
    """
    logger.info("Sending %s update message...", event.source_key)

    if event.channel_id:
        try:
            _reset_bound_channel(event, discord, guild_id)
        except (NotifyError, db.PersistenceError):
            logger.exception("Failed to reset bound channel for %s", event.source_key)

    try:
        log_channel_id = db.get_log_channel()
        if not log_channel_id:
            logger.info("No log channel configured; skipping alert for %s", event.source_key)
            return False
        if discord.find_guild_channel(guild_id, log_channel_id) is None:
            logger.warning("Log channel %s not found in guild %s", log_channel_id, guild_id)
            return False
        discord.send_embed(log_channel_id, build_embed(event))
    except (NotifyError, db.PersistenceError):
        logger.exception("Failed to post update alert for %s", event.source_key)
        return False
    return True


__all__ = ["ChangeEvent", "build_embed", "notify"]
