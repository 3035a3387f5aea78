"""Minimal Discord REST client.

Only the three calls the monitor needs: list a guild's channels, rename a
channel and post an embed.  Calls go through `retryable_request`, so 5xx
and connection errors are retried with back-off before `NotifyError` is
raised.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from .config import BOT_TOKEN, DISCORD_API_BASE, REQUEST_TIMEOUT_SECONDS
from .utils import HTTPError, retryable_request

logger = logging.getLogger(__name__)


class NotifyError(Exception):
    """Raised when a Discord call fails or a channel cannot be resolved."""


@retryable_request
def _request(session: requests.Session, url: str, **kwargs: Any) -> requests.Response:
    method = kwargs.pop("method", "GET")
    return session.request(method, url, **kwargs)


class DiscordClient:
    def __init__(
        self,
        token: Optional[str] = None,
        *,
        api_base: str = DISCORD_API_BASE,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self._token = token or BOT_TOKEN
        self._api_base = api_base.rstrip("/")
        self._session = session or requests.Session()
        self._timeout = timeout

    def _call(self, method: str, path: str, payload: Optional[dict] = None) -> Any:
        url = f"{self._api_base}{path}"
        headers = {
            "Authorization": f"Bot {self._token}",
            "User-Agent": "DiscordBot (https://github.com/, 1.0)",
            "Content-Type": "application/json",
        }
        try:
            resp = _request(
                self._session,
                url,
                method=method,
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
        except (HTTPError, requests.RequestException) as e:
            raise NotifyError(f"{method} {path} failed: {e}") from e
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return None

    def list_guild_channels(self, guild_id: int) -> list[dict]:
        return self._call("GET", f"/guilds/{int(guild_id)}/channels") or []

    def find_guild_channel(self, guild_id: int, channel_id: int) -> Optional[dict]:
        """Return the channel object if ``channel_id`` exists in the guild."""
        if not channel_id:
            return None
        for channel in self.list_guild_channels(guild_id):
            if str(channel.get("id")) == str(channel_id):
                return channel
        return None

    def rename_channel(self, channel_id: int, name: str) -> None:
        logger.info("Renaming channel %s to %r", channel_id, name)
        self._call("PATCH", f"/channels/{int(channel_id)}", {"name": name})

    def send_embed(self, channel_id: int, embed: dict) -> None:
        logger.info("Posting %r to channel %s", embed.get("title"), channel_id)
        self._call("POST", f"/channels/{int(channel_id)}/messages", {"content": "", "embeds": [embed]})

    def close(self) -> None:
        self._session.close()


__all__ = ["DiscordClient", "NotifyError"]
