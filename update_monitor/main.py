"""Command-line entry point.

Usage:
    update-monitor run                 # poll forever
    update-monitor tick                # one poll over every source
    update-monitor status              # show stored versions
    update-monitor watch Windows       # admin actions (run as OWNER_ID by default)
    update-monitor bind IOS 123 "ios-updated" "ios-not-updated"
"""

from __future__ import annotations

import logging
import sys

import click

from . import config, db
from .admin import Admin, AdminError, PermissionDenied
from .discord_api import DiscordClient, NotifyError
from .sources import DEFAULT_SOURCES, SOURCE_KEYS
from .utils import get_http_session
from .versions import decode_descriptor
from .watcher import Scheduler, run_tick


def setup_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


_SOURCE = click.Choice(SOURCE_KEYS, case_sensitive=False)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--as-user", "actor_id", type=int, default=None, help="Discord user id performing admin actions")
@click.option("--role", "role_ids", type=int, multiple=True, help="Role ids held by the acting user")
@click.pass_context
def main(ctx: click.Context, debug: bool, actor_id: int | None, role_ids: tuple[int, ...]) -> None:
    """Client update monitor."""
    if debug:
        config.LOG_LEVEL = "DEBUG"
    setup_logging()
    db.init_db()
    ctx.ensure_object(dict)
    ctx.obj["actor_id"] = actor_id if actor_id is not None else config.OWNER_ID
    ctx.obj["role_ids"] = role_ids


def _discord() -> DiscordClient:
    return DiscordClient(config.BOT_TOKEN)


def _admin(ctx: click.Context, discord: DiscordClient | None = None) -> Admin:
    return Admin(
        ctx.obj["actor_id"],
        ctx.obj["role_ids"],
        discord=discord,
        guild_id=config.GUILD_ID,
    )


def _run_admin(action) -> None:
    try:
        click.echo(action())
    except PermissionDenied as e:
        click.echo(str(e), err=True)
        sys.exit(2)
    except (AdminError, NotifyError, db.PersistenceError) as e:
        click.echo(str(e), err=True)
        sys.exit(1)


@main.command()
def run() -> None:
    """Poll every source now and then every RECHECK_MS."""
    config.validate()
    logger = logging.getLogger(__name__)
    logger.info("Bound Guild: %s", config.GUILD_ID)

    scheduler = Scheduler(
        config.RECHECK_MS / 1000.0,
        sources=DEFAULT_SOURCES,
        session=get_http_session(),
        discord=_discord(),
        guild_id=config.GUILD_ID,
        max_workers=config.MAX_WORKERS,
        run_immediately=not config.SKIP_INITIAL_TICK,
    )
    scheduler.run_forever()


@main.command()
@click.option("--source", "only", type=_SOURCE, multiple=True, help="Limit to these sources")
def tick(only: tuple[str, ...]) -> None:
    """Run a single poll and print the per-source outcome."""
    config.validate()
    wanted = {s.lower() for s in only}
    sources = [s for s in DEFAULT_SOURCES if not wanted or s.source_key.lower() in wanted]
    outcomes = run_tick(
        sources,
        session=get_http_session(),
        discord=_discord(),
        guild_id=config.GUILD_ID,
    )
    for key, outcome in sorted(outcomes.items()):
        click.echo(f"{key}: {outcome}")


@main.command()
def status() -> None:
    """Show the stored version of every watched source."""
    rows = db.get_all_statuses()
    if not rows:
        click.echo("No sources are being watched.")
        return
    for row in rows:
        desc = decode_descriptor(row.version)
        published = f" ({desc.published.isoformat()})" if desc.published else ""
        channel = f" channel=#{row.channel_id}" if row.channel_id else ""
        click.echo(
            f"{row.source_key}: {desc.version or '<none>'}{published} "
            f"updated={'yes' if row.updated else 'no'}{channel}"
        )


@main.command()
@click.argument("source", type=_SOURCE)
@click.pass_context
def watch(ctx: click.Context, source: str) -> None:
    """Watch a client for updates, without a bound channel."""
    _run_admin(lambda: _admin(ctx).watch(source))


@main.command()
@click.argument("source", type=_SOURCE)
@click.pass_context
def unwatch(ctx: click.Context, source: str) -> None:
    """Stop watching a client."""
    _run_admin(lambda: _admin(ctx).unwatch(source))


@main.command("bind")
@click.argument("source", type=_SOURCE)
@click.argument("channel_id", type=int)
@click.argument("updated_text")
@click.argument("not_updated_text")
@click.pass_context
def bind(ctx: click.Context, source: str, channel_id: int, updated_text: str, not_updated_text: str) -> None:
    """Bind a client to a channel and its two display names."""
    _run_admin(lambda: _admin(ctx).bind_channel(source, channel_id, updated_text, not_updated_text))


@main.command("set-log")
@click.argument("channel_id", type=int)
@click.pass_context
def set_log(ctx: click.Context, channel_id: int) -> None:
    """Set the channel that receives update alerts."""
    _run_admin(lambda: _admin(ctx).set_log(channel_id))


@main.command("add-user")
@click.argument("user_id", type=int)
@click.pass_context
def add_user(ctx: click.Context, user_id: int) -> None:
    """Allow a user to run admin actions."""
    _run_admin(lambda: _admin(ctx).add_user(user_id))


@main.command("remove-user")
@click.argument("user_id", type=int)
@click.pass_context
def remove_user(ctx: click.Context, user_id: int) -> None:
    """Disallow a user from running admin actions."""
    _run_admin(lambda: _admin(ctx).remove_user(user_id))


@main.command("add-role")
@click.argument("role_id", type=int)
@click.pass_context
def add_role(ctx: click.Context, role_id: int) -> None:
    """Allow a role to run admin actions."""
    _run_admin(lambda: _admin(ctx).add_role(role_id))


@main.command("remove-role")
@click.argument("role_id", type=int)
@click.pass_context
def remove_role(ctx: click.Context, role_id: int) -> None:
    """Disallow a role from running admin actions."""
    _run_admin(lambda: _admin(ctx).remove_role(role_id))


@main.command()
@click.argument("source", type=_SOURCE)
@click.pass_context
def updated(ctx: click.Context, source: str) -> None:
    """Declare a client as updated."""
    _run_admin(lambda: _admin(ctx, _discord()).declare_updated(source))


@main.command("un-update")
@click.argument("source", type=_SOURCE)
@click.pass_context
def un_update(ctx: click.Context, source: str) -> None:
    """Declare a client as not updated."""
    _run_admin(lambda: _admin(ctx, _discord()).declare_not_updated(source))


@main.command()
@click.argument("source", type=_SOURCE)
@click.option("--limit", default=10, help="Number of entries to show")
@click.pass_context
def history(ctx: click.Context, source: str, limit: int) -> None:
    """Show previously detected versions, newest first."""
    def _render() -> str:
        entries = _admin(ctx).history(source, limit=limit)
        if not entries:
            return "No history recorded."
        return "\n".join(
            f"{e.recorded_at:%Y-%m-%d %H:%M:%S} {decode_descriptor(e.version).version}" for e in entries
        )
    _run_admin(_render)


if __name__ == "__main__":
    main()
