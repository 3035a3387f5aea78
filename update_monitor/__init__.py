"""
Client update monitor package.

This package contains modules for polling the published client versions
of each platform (desktop JSON endpoints and mobile storefront pages),
persisting the last known version, and announcing changes on Discord.
See README.md for details.
"""

__all__ = [
    "admin",
    "config",
    "db",
    "discord_api",
    "notifier",
    "sources",
    "versions",
    "watcher",
    "main",
    "utils",
]
