"""Pytest fixtures for update-monitor tests."""

from unittest.mock import MagicMock

import pytest
import requests

from update_monitor import config, db
from update_monitor.discord_api import DiscordClient
from update_monitor.sources import FetchKind, SourceDescriptor


@pytest.fixture
def temp_db(tmp_path, monkeypatch):
    """Point the store at a fresh SQLite file."""
    monkeypatch.setattr(config, "SQLITE_DB_PATH", str(tmp_path / "data" / "botdata.db"))
    monkeypatch.setattr(config, "OWNER_ID", 1000)
    db.init_db()
    return tmp_path


def _make_response(status_code: int = 200, *, json_data=None, text: str = "") -> MagicMock:
    """Create a mock requests.Response."""
    resp = MagicMock(spec=requests.Response)
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 400
    resp.text = text
    resp.content = text.encode() if text else b"{}"
    if json_data is None:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        resp.json.return_value = json_data
    return resp


@pytest.fixture
def make_response():
    return _make_response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def discord():
    client = MagicMock(spec=DiscordClient)
    client.find_guild_channel.side_effect = lambda guild_id, channel_id: {"id": str(channel_id)}
    return client


@pytest.fixture
def desktop_source() -> SourceDescriptor:
    return SourceDescriptor(
        source_key="Windows",
        fetch_kind=FetchKind.JSON_API,
        endpoint="https://example.test/windows",
    )


@pytest.fixture
def mobile_source() -> SourceDescriptor:
    return SourceDescriptor(
        source_key="IOS",
        fetch_kind=FetchKind.SCRAPED_PAGE,
        endpoint="https://example.test/ios",
        version_pattern=r"Version\s+(\d{1,4}\.\d{1,4}\.\d{1,5})",
        date_pattern=r"<time[^>]*>(.*?)</time>",
    )
