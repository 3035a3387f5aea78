"""Configuration loader.

Reads environment variables and `.env` to configure the service.
"""

from __future__ import annotations

import os
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv

# Load variables from a .env file if present (project root).
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(name, default)


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


# ---- Discord -------------------------------------------------------------------

# Bot token used for the REST calls (rename channel, post alert).
BOT_TOKEN: Optional[str] = _get_env("BOT_TOKEN")

# Guild whose channels are resolved for renames and the log channel.
GUILD_ID: int = _parse_int(_get_env("GUILD_ID"), 0)

# Owner is always authorized for admin actions.
OWNER_ID: int = _parse_int(_get_env("OWNER_ID"), 0)

DISCORD_API_BASE: str = _get_env("DISCORD_API_BASE", "https://discord.com/api/v10")

# Shown in the alert footer as "<FOOTER_NAME> Update Bot".
FOOTER_NAME: str = _get_env("FOOTER_NAME", "Client")

# ---- Polling -------------------------------------------------------------------

# Interval between ticks, in milliseconds (30 minutes by default).
RECHECK_MS: int = _parse_int(_get_env("RECHECK_MS", "1800000"), 1800000)

# Per-request timeout for upstream and Discord calls.
REQUEST_TIMEOUT_SECONDS: float = _parse_float(_get_env("REQUEST_TIMEOUT_SECONDS", "20"), 20.0)

# Upper bound on sources polled at once within a tick.
MAX_WORKERS: int = _parse_int(_get_env("MAX_WORKERS", "6"), 6)

# Storefronts serve different markup to non-browser agents.
USER_AGENT: str = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:138.0) Gecko/20100101 Firefox/138.0"
)
ACCEPT: str = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

# ---- Storage & logging -----------------------------------------------------------

# Path to SQLite database.
SQLITE_DB_PATH: str = _get_env("SQLITE_DB_PATH", "data/botdata.db")

# Logging level: DEBUG, INFO, WARNING, ERROR.
LOG_LEVEL: str = _get_env("LOG_LEVEL", "INFO")

# Skip the immediate tick at start-up (the timer cadence still applies).
SKIP_INITIAL_TICK: bool = _parse_bool(_get_env("SKIP_INITIAL_TICK"), False)


# ---- Validation --------------------------------------------------------------

def validate() -> None:
    """Validate required configuration parameters."""
    if not BOT_TOKEN:
        raise RuntimeError("BOT_TOKEN must be set. See .env.example for details.")
    if not GUILD_ID:
        raise RuntimeError("GUILD_ID must be set. See .env.example for details.")
    if RECHECK_MS <= 0:
        raise RuntimeError("RECHECK_MS must be a positive number of milliseconds.")


__all__ = [
    # Discord
    "BOT_TOKEN",
    "GUILD_ID",
    "OWNER_ID",
    "DISCORD_API_BASE",
    "FOOTER_NAME",
    # Polling
    "RECHECK_MS",
    "REQUEST_TIMEOUT_SECONDS",
    "MAX_WORKERS",
    "USER_AGENT",
    "ACCEPT",
    # Storage & logging
    "SQLITE_DB_PATH",
    "LOG_LEVEL",
    "SKIP_INITIAL_TICK",
    # Helpers
    "validate",
]
