"""
Main application controller for Prefix Organizer.

Ties together configuration, logging, the dump-folder watcher and
graceful shutdown for the long-running headless process.
"""

import logging
import logging.handlers
import signal
import sys
import threading
from pathlib import Path

from prefix_organizer import __app_name__, __version__
from prefix_organizer.config import Config, get_log_path
from prefix_organizer.errors import (
    ConfigError,
    DirectoryMissingError,
    PrefixError,
    WatchSubscribeError,
)
from prefix_organizer.organizer import OrganizeOutcome, organize
from prefix_organizer.watcher import DumpWatcher

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STARTUP_FAILED = 1

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: Config, log_path: Path | None = None) -> list[logging.Handler]:
    """Configure rotating file log and stderr handler on the root logger.

    Returns the handlers that were added.
    """
    log_path = log_path or get_log_path()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, config.log_level, logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    fmt = logging.Formatter(LOG_FORMAT)

    # Rotating file handler
    fh = logging.handlers.RotatingFileHandler(
        str(log_path),
        maxBytes=config.max_log_size_mb * 1024 * 1024,
        backupCount=config.log_backup_count,
        encoding="utf-8",
    )
    fh.setLevel(level)
    fh.setFormatter(fmt)
    root_logger.addHandler(fh)

    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(level)
    sh.setFormatter(fmt)
    root_logger.addHandler(sh)
    return [fh, sh]


class App:
    """
    Central orchestrator for the headless organizer.

    Parameters
    ----------
    config_path : Path, optional
        Config file to read instead of the default lookup.
    log_path : Path, optional
        Log file to write instead of the one in the config directory.
    """

    def __init__(self, config_path: Path | None = None, log_path: Path | None = None):
        self.config_path = config_path
        self.log_path = log_path
        self.config: Config | None = None
        self.watcher: DumpWatcher | None = None
        self._stop_event = threading.Event()

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def _load_config(self) -> Config | None:
        try:
            self.config = Config.load(self.config_path)
        except ConfigError as exc:
            print(f"Failed to load config: {exc}", file=sys.stderr)
            return None
        setup_logging(self.config, self.log_path)
        logger.info("%s %s starting.", __app_name__, __version__)
        logger.info("Dump directory: %s", self.config.dump_directory)
        logger.info("Processing %d destination rules", len(self.config.rules))
        for index, rule in enumerate(self.config.rules):
            logger.debug("Rule %d: %s", index, rule.describe())
        return self.config

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def run(self, install_signals: bool = True) -> int:
        """Watch the dump folder until SIGINT/SIGTERM.  Returns an exit code."""
        cfg = self._load_config()
        if cfg is None:
            return EXIT_STARTUP_FAILED

        self.watcher = DumpWatcher(
            cfg.dump_directory,
            cfg.rules,
            debounce_seconds=cfg.debounce_seconds,
            on_pass_complete=self._on_pass_complete,
        )
        try:
            self.watcher.start()
        except DirectoryMissingError as exc:
            logger.critical("Startup failed (dump directory): %s", exc)
            return EXIT_STARTUP_FAILED
        except WatchSubscribeError as exc:
            logger.critical("Startup failed (watch subscription): %s", exc)
            return EXIT_STARTUP_FAILED

        if install_signals:
            signal.signal(signal.SIGINT, self._signal_handler)
            signal.signal(signal.SIGTERM, self._signal_handler)

        logger.info("File organizer started. Press Ctrl+C to stop.")
        while not self._stop_event.wait(timeout=1):
            if not self.watcher.is_running:
                logger.error("Notification source closed; shutting down.")
                break

        self.watcher.stop()
        logger.info("File organizer stopped")
        return EXIT_OK

    def organize_once(self) -> int:
        """Run a single organize pass and print its summary."""
        cfg = self._load_config()
        if cfg is None:
            return EXIT_STARTUP_FAILED
        try:
            outcome = organize(cfg.dump_directory, cfg.rules)
        except PrefixError as exc:
            logger.critical("Organize failed: %s", exc)
            return EXIT_STARTUP_FAILED
        print(f"Summary: {outcome.moved} files moved, {outcome.skipped} files skipped")
        return EXIT_OK

    def request_stop(self) -> None:
        """Ask :meth:`run` to shut down."""
        self._stop_event.set()

    # ------------------------------------------------------------------
    # Callbacks
    # ------------------------------------------------------------------

    def _signal_handler(self, signum, frame) -> None:
        logger.info(
            "Received signal: %s. Shutting down gracefully...",
            signal.Signals(signum).name,
        )
        self.request_stop()

    def _on_pass_complete(self, outcome: OrganizeOutcome) -> None:
        stats = self.watcher.stats if self.watcher else None
        if stats is None:
            return
        logger.info(
            "Pass finished in %.1fs. Totals after %d passes: %d moved, %d skipped",
            outcome.duration,
            stats.total_passes, stats.total_moved, stats.total_skipped,
        )
