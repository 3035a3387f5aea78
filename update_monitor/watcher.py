"""Version-watch engine.

`check_source` runs one source through fetch -> decide -> persist ->
notify.  `run_tick` fans that out over every configured source on a thread
pool, and `Scheduler` fires a tick immediately and then on a fixed interval.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, Optional

import requests

from . import config, db
from .discord_api import DiscordClient
from .notifier import ChangeEvent, notify
from .sources import DEFAULT_SOURCES, FetchError, SourceDescriptor, fetch_signal
from .versions import decide

logger = logging.getLogger(__name__)

CHANGED = "changed"
UNCHANGED = "unchanged"
FAILED = "failed"


def check_source(
    source: SourceDescriptor,
    *,
    session: requests.Session,
    discord: DiscordClient,
    guild_id: int,
    timeout: float = config.REQUEST_TIMEOUT_SECONDS,
) -> Optional[ChangeEvent]:
    """Run one source's pipeline.  Returns the change, or None.

    A failed state write stops the pipeline before notifying, so an
    unrecorded version is never announced.
    """
    key = source.source_key
    logger.info("Checking %s version...", key)

    prior = db.get_status(key)
    if prior is None:
        logger.info("No status found for %s, skipping watcher.", key)
        return None
    logger.info("%s last version: %s", key, prior.version)

    try:
        signal = fetch_signal(source, session, timeout=timeout)
    except FetchError as e:
        logger.warning("Failed to fetch %s: %s", key, e.reason)
        return None

    decision = decide(key, signal, prior)
    if not decision.changed:
        logger.info("No update detected for %s: %s", key, decision.reason)
        return None

    new_state = decision.new_state
    logger.info("Update detected for %s: %s", key, decision.reason)
    db.update_status(new_state)

    try:
        db.add_history(key, new_state.version)
    except db.PersistenceError:
        logger.exception("Failed to record history for %s", key)

    event = ChangeEvent(
        source_key=key,
        old_descriptor=prior.version,
        new_descriptor=new_state.version,
        channel_id=new_state.channel_id,
    )
    notify(event, discord, guild_id)
    return event


def run_tick(
    sources: Iterable[SourceDescriptor],
    *,
    session: requests.Session,
    discord: DiscordClient,
    guild_id: int,
    max_workers: int = config.MAX_WORKERS,
    timeout: float = config.REQUEST_TIMEOUT_SECONDS,
) -> Dict[str, str]:
    """Check every source concurrently and wait for all of them.

    Each source is isolated: whatever one raises is logged and recorded as
    ``"failed"`` without touching its siblings.
    """
    sources = list(sources)
    outcomes: Dict[str, str] = {}
    if not sources:
        return outcomes

    with ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="source") as pool:
        futures = {
            pool.submit(
                check_source,
                source,
                session=session,
                discord=discord,
                guild_id=guild_id,
                timeout=timeout,
            ): source.source_key
            for source in sources
        }
        for future, key in futures.items():
            try:
                outcomes[key] = CHANGED if future.result() is not None else UNCHANGED
            except Exception:
                logger.exception("Unexpected error while checking %s", key)
                outcomes[key] = FAILED

    logger.info(
        "Tick finished: %s",
        ", ".join(f"{k}={v}" for k, v in sorted(outcomes.items())),
    )
    return outcomes


class Scheduler:
    """Fires `run_tick` now and then every ``interval_seconds``.

    Each tick is dispatched on its own thread and the timer does not wait
    for it, so a slow tick may overlap the next one.
    """

    def __init__(
        self,
        interval_seconds: float,
        *,
        sources: Iterable[SourceDescriptor] = DEFAULT_SOURCES,
        session: requests.Session,
        discord: DiscordClient,
        guild_id: int,
        max_workers: int = config.MAX_WORKERS,
        run_immediately: bool = True,
    ) -> None:
        self.interval_seconds = interval_seconds
        self.sources = tuple(sources)
        self._session = session
        self._discord = discord
        self._guild_id = guild_id
        self._max_workers = max_workers
        self._run_immediately = run_immediately
        self._stop = threading.Event()
        self._timer: Optional[threading.Thread] = None
        self._tick_count = 0
        self._lock = threading.Lock()

    @property
    def tick_count(self) -> int:
        with self._lock:
            return self._tick_count

    def _tick(self) -> None:
        try:
            run_tick(
                self.sources,
                session=self._session,
                discord=self._discord,
                guild_id=self._guild_id,
                max_workers=self._max_workers,
            )
        except Exception:
            logger.exception("Exception in tick")

    def dispatch(self) -> threading.Thread:
        """Start a tick in the background and return immediately."""
        with self._lock:
            self._tick_count += 1
            n = self._tick_count
        t = threading.Thread(target=self._tick, name=f"tick-{n}", daemon=True)
        t.start()
        return t

    def _timer_loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            self.dispatch()

    def start(self) -> None:
        logger.info("Starting watchers (interval=%ss, sources=%d)", self.interval_seconds, len(self.sources))
        if self._run_immediately:
            self.dispatch()
        self._timer = threading.Thread(target=self._timer_loop, name="tick-timer", daemon=True)
        self._timer.start()

    def stop(self) -> None:
        self._stop.set()

    def run_forever(self) -> None:
        if self._timer is None:
            self.start()
        try:
            while not self._stop.wait(1.0):
                pass
        except KeyboardInterrupt:
            logger.info("Interrupted; stopping scheduler.")
            self.stop()


__all__ = ["check_source", "run_tick", "Scheduler", "CHANGED", "UNCHANGED", "FAILED"]
