"""File system watcher for Prefix Organizer.

Uses the watchdog library to monitor the dump folder.  Every change
event re-arms a single debounce timer; when the folder has been quiet
for the debounce delay, one organize pass runs.
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from watchdog.events import (
    EVENT_TYPE_CLOSED_NO_WRITE,
    EVENT_TYPE_OPENED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from prefix_organizer.errors import (
    DirectoryMissingError,
    NotificationChannelError,
    PrefixError,
    WatchSubscribeError,
)
from prefix_organizer.organizer import OrganizeOutcome, OrganizerStats, organize
from prefix_organizer.rules import DestinationRule

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 5.0

# Access-only notifications; the folder contents did not change.
_IGNORED_EVENT_TYPES = frozenset({EVENT_TYPE_OPENED, EVENT_TYPE_CLOSED_NO_WRITE})


class Debouncer:
    """Runs *callback* once after events stop arriving for *delay* seconds.

    Holds at most one pending timer.  Each :meth:`on_event` cancels it and
    arms a fresh one.  *timer_factory* is called as
    ``timer_factory(delay, function)`` and must return an object with
    ``start()`` and ``cancel()``; it defaults to :class:`threading.Timer`.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
    ):
        self._delay = delay
        self._callback = callback
        self._timer_factory = timer_factory
        self._timer: Any | None = None
        self._generation = 0
        self._stopped = False
        self._lock = threading.Lock()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        """True while a timer is armed and has not fired yet."""
        with self._lock:
            return self._timer is not None

    @property
    def stopped(self) -> bool:
        with self._lock:
            return self._stopped

    def on_event(self) -> None:
        """Cancel any pending timer and arm a new one."""
        with self._lock:
            if self._stopped:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self._delay, lambda: self._fire(generation))
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
            timer.start()

    def stop(self) -> None:
        """Cancel the pending timer for good; later events are ignored."""
        with self._lock:
            self._stopped = True
            self._generation += 1
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A cancel can lose the race with a timer thread that already
            # woke up; only the most recently armed timer may run.
            if self._stopped or generation != self._generation:
                return
            self._timer = None
        try:
            self._callback()
        except Exception:
            logger.exception("Error in debounced callback")


class DumpEventHandler(FileSystemEventHandler):
    """Watchdog handler that re-arms the debouncer on every change event."""

    def __init__(self, debouncer: Debouncer):
        super().__init__()
        self._debouncer = debouncer

    def on_any_event(self, event: FileSystemEvent) -> None:
        """Handle any change in the dump folder, whatever its kind."""
        if event.event_type in _IGNORED_EVENT_TYPES:
            return
        logger.debug("Event: %s %s", event.event_type, event.src_path)
        try:
            self._debouncer.on_event()
        except Exception as exc:
            err = NotificationChannelError(f"Error handling {event!r}: {exc}")
            logger.error("%s", err, exc_info=True)


class DumpWatcher:
    """High-level watcher that combines watchdog + debounced organize passes.

    Usage:
        watcher = DumpWatcher(dump_dir, rules, debounce_seconds=5)
        watcher.start()
        ...
        watcher.stop()
    """

    def __init__(
        self,
        dump_dir: str | Path,
        rules: Sequence[DestinationRule],
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_pass_complete: Callable[[OrganizeOutcome], None] | None = None,
        timer_factory: Callable[[float, Callable[[], None]], Any] = threading.Timer,
    ):
        """Create a new watcher for *dump_dir*."""
        self.dump_dir = Path(dump_dir)
        self.rules = tuple(rules)
        self._on_pass_complete = on_pass_complete
        self._debouncer = Debouncer(debounce_seconds, self.run_pass, timer_factory)
        self._handler = DumpEventHandler(self._debouncer)
        self._observer: Any | None = None
        # Organize passes never overlap; a pass armed during another one
        # waits for it and then rescans.
        self._pass_lock = threading.Lock()
        self.stats = OrganizerStats()
        self.last_outcome: OrganizeOutcome | None = None

    # ---- lifecycle ----

    def start(self) -> None:
        """Start watching the dump folder."""
        if not os.path.isdir(self.dump_dir):
            logger.error("Dump directory does not exist: %s", self.dump_dir)
            raise DirectoryMissingError(
                f"Dump directory does not exist: {self.dump_dir}"
            )

        observer = Observer()
        try:
            observer.schedule(self._handler, str(self.dump_dir), recursive=False)
            observer.start()
        except OSError as exc:
            logger.error("Failed to watch %s: %s", self.dump_dir, exc)
            raise WatchSubscribeError(
                f"Failed to watch {self.dump_dir}: {exc}"
            ) from exc
        self._observer = observer
        logger.info(
            "Watching '%s' (%d rules, debounce=%.1fs)",
            self.dump_dir,
            len(self.rules),
            self._debouncer.delay,
        )

    def stop(self, wait: bool = True) -> None:
        """Stop watching; an organize pass already running is allowed to finish."""
        self._debouncer.stop()
        logger.info("Stopped file organization timer")
        if self._observer:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        if wait:
            with self._pass_lock:
                pass
        logger.info("Watcher stopped.")

    @property
    def is_running(self) -> bool:
        """Return whether the notification source is still delivering events."""
        return self._observer is not None and self._observer.is_alive()

    @property
    def handler(self) -> DumpEventHandler:
        return self._handler

    # ---- organize ----

    def run_pass(self) -> OrganizeOutcome | None:
        """Run one organize pass, serialized with any other pass."""
        with self._pass_lock:
            if self._debouncer.stopped:
                logger.debug("Watcher stopped; skipping organize pass")
                return None
            logger.info("Timer expired, organizing files...")
            try:
                outcome = organize(self.dump_dir, self.rules)
            except PrefixError as exc:
                self.stats.record_failure()
                logger.error("Organize pass failed: %s", exc)
                return None
            self.stats.record(outcome)
            self.last_outcome = outcome

        if self._on_pass_complete:
            try:
                self._on_pass_complete(outcome)
            except Exception:
                logger.exception("Error in on_pass_complete callback")
        return outcome
