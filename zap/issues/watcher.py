"""Watch an issues directory and emit debounced reload signals.

Bursts of .md changes (an editor save is often several events) collapse
into one RELOAD after a trailing debounce. signals holds at most one token:
a slow subscriber misses nothing, since every reload re-reads the store.
"""

import logging
import os
import queue
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from zap.config import AppConfig

LOG = logging.getLogger("zap.issues.watcher")

RELOAD = "reload"
DEFAULT_DEBOUNCE = 0.1

# Opened/closed-without-write events come from our own reads
_CHANGE_EVENTS = {EVENT_TYPE_CREATED, EVENT_TYPE_DELETED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED}


def _is_markdown(path: Any) -> bool:
    return bool(path) and os.fsdecode(path).endswith(".md")


def _same_path(raw: Any, path: Path) -> bool:
    return Path(os.fsdecode(raw)).resolve() == path.resolve()


class _IssueEventHandler(FileSystemEventHandler):
    def __init__(self, watcher: "IssueWatcher") -> None:
        super().__init__()
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        try:
            self._handle(event)
        except Exception as e:
            self._watcher.report(e)

    def _handle(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            if event.event_type == EVENT_TYPE_DELETED and _same_path(event.src_path, self._watcher.base_dir):
                self._watcher.report(FileNotFoundError(f"issues directory removed: {self._watcher.base_dir}"))
            return
        if event.event_type not in _CHANGE_EVENTS:
            return
        if _is_markdown(event.src_path) or _is_markdown(getattr(event, "dest_path", "")):
            self._watcher.notify()


class IssueWatcher:
    """Non-recursive watch of one directory.

    on_reload (optional) runs on the timer thread after each debounced
    burst. Failures of the callback, of event handling and of the observer
    itself (including removal of the watched directory) are put on errors;
    the watch goes on where it can.
    """

    def __init__(
        self,
        base_dir: Path,
        debounce: float = DEFAULT_DEBOUNCE,
        on_reload: Callable[[], None] | None = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.debounce = debounce
        self.on_reload = on_reload
        self.signals: queue.Queue[str] = queue.Queue(maxsize=1)
        self.errors: queue.Queue[BaseException] = queue.Queue()
        self.handler = _IssueEventHandler(self)
        self._observer: Any = None
        self._timer: threading.Timer | None = None
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: AppConfig, on_reload: Callable[[], None] | None = None) -> "IssueWatcher":
        return cls(config.store.issues_dir, debounce=config.watch.debounce_ms / 1000, on_reload=on_reload)

    def start(self) -> "IssueWatcher":
        if not self.base_dir.is_dir():
            raise FileNotFoundError(f"issues directory not found: {self.base_dir}")
        observer = Observer()
        try:
            observer.schedule(self.handler, str(self.base_dir), recursive=False)
            observer.daemon = True
            observer.start()
        except OSError as e:
            self.report(e)
            raise
        self._observer = observer
        LOG.info("Watching %s (debounce %.0f ms)", self.base_dir, self.debounce * 1000)
        return self

    def stop(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
            LOG.debug("Stopped watching %s", self.base_dir)

    def is_alive(self) -> bool:
        return self._observer is not None and self._observer.is_alive()

    def __enter__(self) -> "IssueWatcher":
        return self.start()

    def __exit__(self, *exc: object) -> None:
        self.stop()

    def notify(self) -> None:
        """Restart the debounce timer; called for every relevant event."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = threading.Timer(self.debounce, self._fire)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def report(self, error: BaseException) -> None:
        """Log error and put it on errors."""
        LOG.warning("Watcher error for %s: %s", self.base_dir, error)
        self.errors.put(error)

    def _fire(self) -> None:
        with self._lock:
            # A newer burst may already have replaced this timer
            if self._timer is threading.current_thread():
                self._timer = None
        try:
            self.signals.put_nowait(RELOAD)
        except queue.Full:
            # A reload is already pending
            pass
        if self.on_reload is None:
            return
        try:
            self.on_reload()
        except Exception as e:
            LOG.warning("Reload callback failed: %s", e)
            self.errors.put(e)

    def _check_observer(self) -> None:
        observer = self._observer
        if observer is not None and not observer.is_alive():
            self._observer = None
            self.report(RuntimeError(f"observer for {self.base_dir} stopped unexpectedly"))

    def wait(self, timeout: float | None = None) -> bool:
        """Block until a reload signal arrives; False on timeout.

        A dead observer is reported on errors first.
        """
        self._check_observer()
        try:
            self.signals.get(timeout=timeout)
        except queue.Empty:
            return False
        return True
