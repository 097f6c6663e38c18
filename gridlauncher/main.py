#!/usr/bin/env python3
import sys
import signal
import locale
import logging
import threading
import gi
from gridlauncher.catalog.sources import watched_directories
from gridlauncher.core.log_setup import LOGGER_NAME, setup_logging
from gridlauncher.core.session import LauncherSession
from gridlauncher.core.watcher import ApplicationWatcher
from gridlauncher.shared.config_handler import ConfigHandler

gi.require_version("GLib", "2.0")
from gi.repository import GLib  # pyright: ignore  # noqa: E402


def global_exception_handler(exc_type, exc_value, exc_traceback):
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    logger = logging.getLogger(LOGGER_NAME)
    logger.error(
        "Uncaught exception",
        exc_info=(exc_type, exc_value, exc_traceback),
        extra={"thread_name": threading.current_thread().name},
    )


def start_application_watcher(session, config, logger):
    if not config.get_setting(["watcher", "enabled"], True):
        logger.info("Application directory watcher disabled.")
        return None
    watcher = ApplicationWatcher(
        watched_directories(),
        session.rescan,
        debounce_ms=int(config.get_setting(["watcher", "debounce_ms"], 500)),
    )
    watcher.start()
    return watcher


def main():
    try:
        locale.setlocale(locale.LC_ALL, "")
    except locale.Error:
        pass
    sys.excepthook = global_exception_handler
    config = ConfigHandler()
    level_name = str(config.get_setting(["logging", "level"], "INFO")).upper()
    logger = setup_logging(level=getattr(logging, level_name, logging.INFO))
    config.logger = logger
    loop = GLib.MainLoop()
    session = LauncherSession.from_config(config, logger=logger)
    watcher = None
    try:
        session.initialize()
        watcher = start_application_watcher(session, config, logger)
        for signum in (signal.SIGINT, signal.SIGTERM):
            GLib.unix_signal_add(GLib.PRIORITY_DEFAULT, signum, loop.quit)
        loop.run()
    except Exception:
        logger.critical("Fatal error during initialization", exc_info=True)
        raise
    finally:
        if watcher:
            watcher.stop()
        session.teardown()
        logger.info("Launcher stopped.")


if __name__ == "__main__":
    main()
