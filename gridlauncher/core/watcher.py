import os
import logging
import threading
from typing import Any, Callable, List, Optional

from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from gridlauncher.catalog.sources import DESKTOP_SUFFIX

logger = logging.getLogger(__name__)

Scheduler = Callable[[int, Callable[[], Any]], Any]


def _glib_timeout(delay_ms: int, callback: Callable[[], Any]) -> Any:
    from gi.repository import GLib  # pyright: ignore

    def wrapper():
        callback()
        return GLib.SOURCE_REMOVE

    return GLib.timeout_add(delay_ms, wrapper)


class DesktopEntryEventHandler(FileSystemEventHandler):
    """Forwards create/delete/modify/move events of .desktop files."""

    def __init__(self, callback: Callable[[str], None]):
        super().__init__()
        self.callback = callback

    def _forward(self, event, path) -> None:
        if event.is_directory:
            return
        path = os.fsdecode(path)
        if path.endswith(DESKTOP_SUFFIX):
            self.callback(path)

    def on_created(self, event):
        self._forward(event, event.src_path)

    def on_deleted(self, event):
        self._forward(event, event.src_path)

    def on_modified(self, event):
        self._forward(event, event.src_path)

    def on_moved(self, event):
        dest = os.fsdecode(event.dest_path)
        self._forward(event, dest if dest.endswith(DESKTOP_SUFFIX) else event.src_path)


class ApplicationWatcher:
    """
    Watches the application directories and requests a rescan on the main
    loop. Events arriving while a rescan is already scheduled are folded
    into it.

    Args:
        directories: Directories to watch; missing ones are skipped.
        on_change: Called on the main loop once per batch of changes.
        debounce_ms: Delay between the first event and the rescan.
        schedule: ``schedule(delay_ms, callback)``; defaults to GLib.timeout_add.
    """

    def __init__(
        self,
        directories: List[str],
        on_change: Callable[[], None],
        debounce_ms: int = 500,
        schedule: Optional[Scheduler] = None,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self.directories = directories
        self.on_change = on_change
        self.debounce_ms = debounce_ms
        self._schedule = schedule or _glib_timeout
        self._observer_factory = observer_factory
        self._observer = None
        self._pending = False
        self._lock = threading.Lock()
        self.handler = DesktopEntryEventHandler(self._on_event)

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> int:
        """
        Returns:
            int: The number of directories actually being watched.
        """
        if self._observer is not None:
            return 0
        observer = self._observer_factory()
        watched = 0
        for directory in self.directories:
            if not os.path.isdir(directory):
                continue
            try:
                observer.schedule(self.handler, directory, recursive=False)
                watched += 1
            except OSError as e:
                logger.warning(f"Failed to monitor {directory}: {e}")
        observer.start()
        self._observer = observer
        logger.info(f"Watching {watched} application directories.")
        return watched

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=2)
        self._observer = None

    def _on_event(self, path: str) -> None:
        logger.debug(f"Applications changed: {os.path.basename(path)}")
        with self._lock:
            if self._pending:
                return
            self._pending = True
        self._schedule(self.debounce_ms, self._fire)

    def _fire(self) -> None:
        with self._lock:
            self._pending = False
        self.on_change()
