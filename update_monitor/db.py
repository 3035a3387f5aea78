"""SQLite persistence layer for the update monitor."""

from __future__ import annotations

import datetime as _dt
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Optional

from . import config


class PersistenceError(Exception):
    """Raised when the store cannot be read or written."""


@dataclass
class VersionState:
    source_key: str
    version: str          # "<version>" or "<version>|<isoDate>"
    channel_id: int = 0   # 0 = no bound channel
    updated: bool = False


@dataclass
class ChannelBinding:
    channel_id: int
    updated_text: str
    not_updated_text: str


@dataclass
class HistoryEntry:
    source_key: str
    version: str
    recorded_at: _dt.datetime


@contextmanager
def _get_connection() -> Iterator[sqlite3.Connection]:
    try:
        Path(config.SQLITE_DB_PATH).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(config.SQLITE_DB_PATH)
    except (OSError, sqlite3.Error) as e:
        raise PersistenceError(f"cannot open {config.SQLITE_DB_PATH}: {e}") from e
    try:
        with conn:
            yield conn
    except sqlite3.Error as e:
        raise PersistenceError(str(e)) from e
    finally:
        conn.close()


def init_db() -> None:
    """Create tables if they don't exist."""
    with _get_connection() as conn:
        conn.executescript("""
          CREATE TABLE IF NOT EXISTS Channel (
            ChannelId INTEGER PRIMARY KEY,
            ChannelUpdatedTrueText TEXT NOT NULL,
            ChannelUpdatedFalseText TEXT NOT NULL
          );
          CREATE TABLE IF NOT EXISTS Status (
            Client TEXT PRIMARY KEY,
            Version TEXT NOT NULL,
            ChannelId INTEGER NOT NULL,
            Updated INTEGER NOT NULL
          );
          CREATE TABLE IF NOT EXISTS History (
            Id INTEGER PRIMARY KEY AUTOINCREMENT,
            Client TEXT NOT NULL,
            Version TEXT NOT NULL,
            Date TEXT NOT NULL
          );
          CREATE TABLE IF NOT EXISTS VerifiedUsers (
            DiscordId INTEGER PRIMARY KEY
          );
          CREATE TABLE IF NOT EXISTS VerifiedRoles (
            RoleId INTEGER PRIMARY KEY
          );
          CREATE TABLE IF NOT EXISTS LogChannel (
            ChannelId INTEGER PRIMARY KEY
          );
        """)


# ---- Version state -------------------------------------------------------------

def get_status(source_key: str) -> Optional[VersionState]:
    with _get_connection() as conn:
        row = conn.execute(
            "SELECT Client, Version, ChannelId, Updated FROM Status WHERE Client = ?",
            (source_key,),
        ).fetchone()
    if row is None:
        return None
    client, version, channel_id, updated = row
    return VersionState(
        source_key=client,
        version=version,
        channel_id=int(channel_id or 0),
        updated=bool(updated),
    )


def update_status(state: VersionState) -> None:
    """Insert or fully replace the row for ``state.source_key``."""
    with _get_connection() as conn:
        conn.execute("""
            INSERT INTO Status (Client, Version, ChannelId, Updated)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(Client) DO UPDATE SET
              Version   = excluded.Version,
              ChannelId = excluded.ChannelId,
              Updated   = excluded.Updated
        """, (state.source_key, state.version, int(state.channel_id or 0), int(bool(state.updated))))


def delete_status(source_key: str) -> None:
    with _get_connection() as conn:
        conn.execute("DELETE FROM Status WHERE Client = ?", (source_key,))


def get_all_statuses() -> list[VersionState]:
    with _get_connection() as conn:
        rows = conn.execute(
            "SELECT Client, Version, ChannelId, Updated FROM Status ORDER BY Client"
        ).fetchall()
    return [
        VersionState(source_key=c, version=v, channel_id=int(ch or 0), updated=bool(u))
        for c, v, ch, u in rows
    ]


# ---- Channel bindings & log channel -----------------------------------------------

def upsert_channel(binding: ChannelBinding) -> None:
    with _get_connection() as conn:
        conn.execute("""
            INSERT INTO Channel (ChannelId, ChannelUpdatedTrueText, ChannelUpdatedFalseText)
            VALUES (?, ?, ?)
            ON CONFLICT(ChannelId) DO UPDATE SET
              ChannelUpdatedTrueText  = excluded.ChannelUpdatedTrueText,
              ChannelUpdatedFalseText = excluded.ChannelUpdatedFalseText
        """, (int(binding.channel_id), binding.updated_text, binding.not_updated_text))


def get_channel(channel_id: int) -> Optional[ChannelBinding]:
    with _get_connection() as conn:
        row = conn.execute(
            "SELECT ChannelId, ChannelUpdatedTrueText, ChannelUpdatedFalseText "
            "FROM Channel WHERE ChannelId = ?",
            (int(channel_id),),
        ).fetchone()
    if row is None:
        return None
    return ChannelBinding(channel_id=int(row[0]), updated_text=row[1], not_updated_text=row[2])


def set_log_channel(channel_id: int) -> None:
    """Record the log channel.  The first value stored wins."""
    with _get_connection() as conn:
        conn.execute("INSERT OR IGNORE INTO LogChannel (ChannelId) VALUES (?)", (int(channel_id),))


def get_log_channel() -> int:
    """Return the log channel id, or 0 when none is set."""
    with _get_connection() as conn:
        row = conn.execute("SELECT ChannelId FROM LogChannel LIMIT 1").fetchone()
    return int(row[0]) if row else 0


# ---- History ---------------------------------------------------------------------

def add_history(source_key: str, version: str, when: Optional[_dt.datetime] = None) -> None:
    when = when or _dt.datetime.now(_dt.timezone.utc)
    with _get_connection() as conn:
        conn.execute(
            "INSERT INTO History (Client, Version, Date) VALUES (?, ?, ?)",
            (source_key, version, when.isoformat()),
        )


def get_history(source_key: str, limit: int = 25) -> list[HistoryEntry]:
    """Recorded versions for ``source_key``, newest first."""
    with _get_connection() as conn:
        rows = conn.execute(
            "SELECT Version, Date FROM History WHERE Client = ? ORDER BY Date DESC, Id DESC LIMIT ?",
            (source_key, int(limit)),
        ).fetchall()
    return [
        HistoryEntry(source_key=source_key, version=v, recorded_at=_dt.datetime.fromisoformat(d))
        for v, d in rows
    ]


# ---- Verified users & roles -------------------------------------------------------

def add_verified_user(user_id: int) -> None:
    with _get_connection() as conn:
        conn.execute("INSERT OR IGNORE INTO VerifiedUsers (DiscordId) VALUES (?)", (int(user_id),))


def remove_verified_user(user_id: int) -> None:
    with _get_connection() as conn:
        conn.execute("DELETE FROM VerifiedUsers WHERE DiscordId = ?", (int(user_id),))


def is_verified_user(user_id: int) -> bool:
    with _get_connection() as conn:
        cur = conn.execute("SELECT 1 FROM VerifiedUsers WHERE DiscordId = ? LIMIT 1", (int(user_id),))
        return cur.fetchone() is not None


def add_verified_role(role_id: int) -> None:
    with _get_connection() as conn:
        conn.execute("INSERT OR IGNORE INTO VerifiedRoles (RoleId) VALUES (?)", (int(role_id),))


def remove_verified_role(role_id: int) -> None:
    with _get_connection() as conn:
        conn.execute("DELETE FROM VerifiedRoles WHERE RoleId = ?", (int(role_id),))


def get_verified_roles() -> list[int]:
    with _get_connection() as conn:
        cur = conn.execute("SELECT RoleId FROM VerifiedRoles")
        return [int(r[0]) for r in cur.fetchall()]


def is_authorized(user_id: int, role_ids: Iterable[int] = (), owner_id: Optional[int] = None) -> bool:
    """True for the owner, a verified user, or a holder of a verified role."""
    if owner_id is None:
        owner_id = config.OWNER_ID
    if owner_id and int(user_id) == int(owner_id):
        return True
    if is_verified_user(user_id):
        return True
    verified = set(get_verified_roles())
    return any(int(r) in verified for r in role_ids)


__all__ = [
    "PersistenceError",
    "VersionState",
    "ChannelBinding",
    "HistoryEntry",
    "init_db",
    "get_status",
    "update_status",
    "delete_status",
    "get_all_statuses",
    "upsert_channel",
    "get_channel",
    "set_log_channel",
    "get_log_channel",
    "add_history",
    "get_history",
    "add_verified_user",
    "remove_verified_user",
    "is_verified_user",
    "add_verified_role",
    "remove_verified_role",
    "get_verified_roles",
    "is_authorized",
]
