"""Version descriptors and change detection.

A stored version descriptor is either a bare version (``"2.671.0"``) or a
version plus publish date (``"2.671.0|2024-01-10"``) for sources whose
version token alone is not a reliable signal.  `decide` compares a freshly
fetched `RawSignal` against the stored `VersionState` and is pure: the same
inputs always give the same answer.
"""

from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass, replace
from typing import Optional

from .db import VersionState
from .sources import RawSignal

logger = logging.getLogger(__name__)

SEPARATOR = "|"

# Anything older than every real publish date.
MIN_DATE = _dt.date.min

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%m/%d/%Y %H:%M:%S",
    "%d %b, %Y %H:%M:%S",
    "%d %b %Y %H:%M:%S",
    "%b %d, %Y %H:%M:%S",
    "%b %d %Y %H:%M:%S",
    "%d %B, %Y %H:%M:%S",
    "%d %B %Y %H:%M:%S",
    "%B %d, %Y %H:%M:%S",
    "%B %d %Y %H:%M:%S",
    "%m/%d/%Y",
    "%d %b, %Y",
    "%d %b %Y",
    "%b %d, %Y",
    "%b %d %Y",
    "%d %B, %Y",
    "%d %B %Y",
    "%B %d, %Y",
    "%B %d %Y",
)


def parse_date(text: Optional[str]) -> _dt.date:
    """Parse a storefront date, returning `MIN_DATE` when it can't be read."""
    if text is None or not text.strip():
        return MIN_DATE
    value = " ".join(text.split())
    for fmt in _DATE_FORMATS:
        try:
            return _dt.datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    logger.warning("Unrecognised date format %r; treating as oldest possible date", text)
    return MIN_DATE


@dataclass(frozen=True)
class VersionDescriptor:
    version: str
    published: Optional[_dt.date] = None

    def encode(self) -> str:
        return encode_descriptor(self.version, self.published)


def encode_descriptor(version: str, published: Optional[_dt.date] = None) -> str:
    if published is None:
        return version
    return f"{version}{SEPARATOR}{published.isoformat()}"


def decode_descriptor(text: str) -> VersionDescriptor:
    version, sep, date_text = (text or "").partition(SEPARATOR)
    if not sep:
        return VersionDescriptor(version=version)
    return VersionDescriptor(version=version, published=parse_date(date_text))


def version_token(descriptor: str) -> str:
    """Just the version part of a stored descriptor, for display."""
    return decode_descriptor(descriptor).version


@dataclass(frozen=True)
class Decision:
    changed: bool
    new_state: Optional[VersionState] = None
    reason: str = ""


def decide(source_key: str, signal: RawSignal, prior: Optional[VersionState]) -> Decision:
    """Decide whether ``signal`` is a genuine update over ``prior``.

    - No prior row means the source is not watched: no change.
    - The version token must differ from the stored one.
    - When the signal carries a date, it must also be strictly later than
      the stored date (a missing or unreadable stored date counts as
      `MIN_DATE`).

    On change, the returned state carries the re-encoded descriptor and
    ``updated=False``; the channel binding is kept.
    """
    if prior is None:
        return Decision(False, reason=f"{source_key} is not watched")

    last = decode_descriptor(prior.version)
    last_date = last.published or MIN_DATE

    if signal.version == last.version:
        return Decision(False, reason=f"version unchanged ({signal.version})")

    new_date: Optional[_dt.date] = None
    if signal.date is not None:
        new_date = parse_date(signal.date)
        if not new_date > last_date:
            return Decision(
                False,
                reason=(
                    f"version {last.version} -> {signal.version} but date "
                    f"{new_date} is not after {last_date}"
                ),
            )

    new_state = replace(prior, version=encode_descriptor(signal.version, new_date), updated=False)
    return Decision(True, new_state=new_state, reason=f"{last.version or '<none>'} -> {signal.version}")


__all__ = [
    "MIN_DATE",
    "parse_date",
    "VersionDescriptor",
    "encode_descriptor",
    "decode_descriptor",
    "version_token",
    "Decision",
    "decide",
]
