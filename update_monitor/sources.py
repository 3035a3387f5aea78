"""Upstream version sources.

Each watched platform is described by a `SourceDescriptor`: either a JSON
endpoint with a named version field, or a storefront page scraped with a
version pattern (and optionally a publish-date pattern).  `fetch_signal`
is the single entry point for both kinds.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import Optional

import requests
from bs4 import BeautifulSoup

from .config import REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class FetchKind(enum.Enum):
    JSON_API = "json_api"
    SCRAPED_PAGE = "scraped_page"


class FetchError(Exception):
    """Raised when a source could not yield a usable version signal."""

    def __init__(self, source_key: str, reason: str) -> None:
        super().__init__(f"{source_key}: {reason}")
        self.source_key = source_key
        self.reason = reason


@dataclass(frozen=True)
class SourceDescriptor:
    source_key: str
    fetch_kind: FetchKind
    endpoint: str
    version_field: str = "clientVersionUpload"
    version_pattern: Optional[str] = None
    date_pattern: Optional[str] = None

    def __post_init__(self) -> None:
        if self.fetch_kind is FetchKind.SCRAPED_PAGE and not self.version_pattern:
            raise ValueError(f"{self.source_key}: scraped page source needs a version_pattern")

    @property
    def has_date(self) -> bool:
        return self.fetch_kind is FetchKind.SCRAPED_PAGE and bool(self.date_pattern)


@dataclass(frozen=True)
class RawSignal:
    version: str
    date: Optional[str] = None    # raw text as captured, None if not configured


_APP_STORE_VERSION = r"Version\s+(\d{1,4}\.\d{1,4}\.\d{1,5})"
_APP_STORE_DATE = r"<time[^>]*>(.*?)</time>"
_PLAY_STORE_VERSION = r"\[\"(\d{1,4}\.\d{1,4}\.\d{1,5})\"\]"
_PLAY_STORE_DATE = r"Updated\s*on</div>\s*<div[^>]*>([^<]+)</div>"

DEFAULT_SOURCES: tuple[SourceDescriptor, ...] = (
    SourceDescriptor(
        source_key="Windows",
        fetch_kind=FetchKind.JSON_API,
        endpoint="https://clientsettings.roblox.com/v2/client-version/WindowsPlayer/channel/LIVE",
    ),
    SourceDescriptor(
        source_key="Mac",
        fetch_kind=FetchKind.JSON_API,
        endpoint="https://clientsettings.roblox.com/v2/client-version/MacPlayer/channel/LIVE",
    ),
    SourceDescriptor(
        source_key="IOS",
        fetch_kind=FetchKind.SCRAPED_PAGE,
        endpoint="https://apps.apple.com/us/app/roblox/id431946152?uo=4",
        version_pattern=_APP_STORE_VERSION,
        date_pattern=_APP_STORE_DATE,
    ),
    SourceDescriptor(
        source_key="IOS-VNG",
        fetch_kind=FetchKind.SCRAPED_PAGE,
        endpoint="https://apps.apple.com/vn/app/roblox-vn/id6474715805?uo=4",
        version_pattern=_APP_STORE_VERSION,
        date_pattern=_APP_STORE_DATE,
    ),
    SourceDescriptor(
        source_key="Android",
        fetch_kind=FetchKind.SCRAPED_PAGE,
        endpoint="https://play.google.com/store/apps/details?id=com.roblox.client&hl=en",
        version_pattern=_PLAY_STORE_VERSION,
        date_pattern=_PLAY_STORE_DATE,
    ),
    SourceDescriptor(
        source_key="Android-VNG",
        fetch_kind=FetchKind.SCRAPED_PAGE,
        endpoint="https://play.google.com/store/apps/details?id=com.roblox.client.vnggames&hl=en",
        version_pattern=_PLAY_STORE_VERSION,
        date_pattern=_PLAY_STORE_DATE,
    ),
)

SOURCE_KEYS: tuple[str, ...] = tuple(s.source_key for s in DEFAULT_SOURCES)


def get_source(source_key: str) -> SourceDescriptor:
    for source in DEFAULT_SOURCES:
        if source.source_key.lower() == source_key.lower():
            return source
    raise KeyError(source_key)


def _get(
    session: requests.Session,
    source: SourceDescriptor,
    timeout: float,
    *,
    verify: bool = True,
) -> requests.Response:
    try:
        resp = session.get(source.endpoint, timeout=timeout, verify=verify, allow_redirects=True)
    except requests.Timeout as e:
        raise FetchError(source.source_key, f"timed out after {timeout}s") from e
    except requests.RequestException as e:
        raise FetchError(source.source_key, f"request failed: {e}") from e
    if not resp.ok:
        raise FetchError(source.source_key, f"HTTP {resp.status_code} from {source.endpoint}")
    return resp


def _clean_version(source: SourceDescriptor, raw: object) -> str:
    version = str(raw or "").strip()
    if not version:
        raise FetchError(source.source_key, "empty version")
    return version


def _fetch_json(session: requests.Session, source: SourceDescriptor, timeout: float) -> RawSignal:
    resp = _get(session, source, timeout)
    try:
        payload = resp.json()
    except ValueError as e:
        raise FetchError(source.source_key, "response body is not JSON") from e
    if not isinstance(payload, dict) or source.version_field not in payload:
        raise FetchError(source.source_key, f"missing field {source.version_field!r}")
    return RawSignal(version=_clean_version(source, payload[source.version_field]))


def _extract_date_text(fragment: str) -> str:
    # <time> contents can carry nested markup or entities
    return BeautifulSoup(fragment, "html.parser").get_text(" ", strip=True)


def _fetch_page(session: requests.Session, source: SourceDescriptor, timeout: float) -> RawSignal:
    # Storefronts sometimes present certificate chains requests rejects.
    resp = _get(session, source, timeout, verify=False)
    content = resp.text or ""

    version_match = re.search(source.version_pattern, content)
    date_match = re.search(source.date_pattern, content) if source.date_pattern else None
    if version_match is None or (source.date_pattern and date_match is None):
        raise FetchError(
            source.source_key,
            f"pattern did not match (version={version_match is not None}, "
            f"date={date_match is not None if source.date_pattern else 'n/a'})",
        )

    version = _clean_version(source, version_match.group(1))
    date = _extract_date_text(date_match.group(1)) if date_match is not None else None
    return RawSignal(version=version, date=date)


def fetch_signal(
    source: SourceDescriptor,
    session: requests.Session,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> RawSignal:
    """Fetch the current version signal for ``source``.

    Raises `FetchError` on network failure, timeout, a non-2xx status,
    an undecodable body, a pattern miss or an empty version.  Nothing is
    retried here; the next tick is the retry.
    """
    logger.debug("Fetching %s from %s", source.source_key, source.endpoint)
    if source.fetch_kind is FetchKind.JSON_API:
        signal = _fetch_json(session, source, timeout)
    else:
        signal = _fetch_page(session, source, timeout)
    logger.info("%s current version: %s (date: %s)", source.source_key, signal.version, signal.date)
    return signal


__all__ = [
    "FetchKind",
    "FetchError",
    "SourceDescriptor",
    "RawSignal",
    "DEFAULT_SOURCES",
    "SOURCE_KEYS",
    "get_source",
    "fetch_signal",
]
