"""Filesystem notification source built on the watchdog library."""

import logging
import os
import threading
from typing import Callable, Dict, List, Optional, Tuple

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import ObservedWatch

from .exceptions import NotificationSourceError
from .models import EventKind, RawEvent

logger = logging.getLogger(__name__)


def _decode(path) -> str:
    return os.fsdecode(path)


class FSEventHandler(FileSystemEventHandler):
    """
    Converts watchdog events for one directory into RawEvents.

    Each watched directory gets its own handler. Notifications a directory
    reports about itself are dropped because its parent's watch reports
    the same change. Directory "modified" notifications only mirror
    changes of their children and are dropped as well.

    watchdog reports content writes and metadata changes (chmod, chown)
    alike as "modified". The handler stats the file to tell them apart
    and reports metadata-only changes as ATTRIB.
    """

    def __init__(self, callback: Callable[[RawEvent], None], directory: str):
        super().__init__()
        self.callback = callback
        self.directory = directory
        # (st_mtime_ns, st_size) of files last reported as modified.
        self._stamps: Dict[str, Tuple[int, int]] = {}

    def _emit(self, kind: EventKind, path: str) -> None:
        if path == self.directory:
            return
        self.callback(RawEvent(path=path, kind=kind))

    def _metadata_only(self, path: str) -> bool:
        """
        Check whether a "modified" notification left the content alone.

        A write moves the modification time or the size. A metadata change
        only moves the inode change time. For a file not seen before, an
        inode change time that differs from the modification time marks a
        metadata change.
        """
        try:
            st = os.stat(path)
        except OSError:
            self._stamps.pop(path, None)
            return False

        stamp = (st.st_mtime_ns, st.st_size)
        previous = self._stamps.get(path)
        self._stamps[path] = stamp
        if previous is not None:
            return previous == stamp
        return st.st_ctime_ns != st.st_mtime_ns

    def on_created(self, event: FileSystemEvent) -> None:
        self._emit(EventKind.CREATE, _decode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        path = _decode(event.src_path)
        self._stamps.pop(path, None)
        self._emit(EventKind.DELETE, path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        path = _decode(event.src_path)
        if self._metadata_only(path):
            logger.debug(f"{path}: metadata changed")
            self._emit(EventKind.ATTRIB, path)
        else:
            self._emit(EventKind.MODIFY, path)

    def on_moved(self, event: FileSystemEvent) -> None:
        src_path = _decode(event.src_path)
        if src_path == self.directory:
            return
        self._stamps.pop(src_path, None)
        # Renamed away from its old name, appeared under the new one.
        self._emit(EventKind.RENAME, src_path)
        if event.dest_path:
            self._emit(EventKind.CREATE, _decode(event.dest_path))


class NotificationSource:
    """
    One watchdog observer with a non-recursive schedule per directory.

    Directories are registered and unregistered individually so the
    caller decides exactly which directories are observed. Events are
    delivered on the observer's thread through the callback.
    """

    def __init__(self, event_callback: Callable[[RawEvent], None]):
        """
        Initialize the notification source.

        Args:
            event_callback: Called with every RawEvent, from the observer thread
        """
        self.event_callback = event_callback
        self._observer = Observer()
        self._watches: Dict[str, ObservedWatch] = {}
        self._started = False
        self._lock = threading.Lock()

    def start(self) -> None:
        """
        Start delivering events.

        Raises:
            NotificationSourceError: If the observer cannot be started
        """
        try:
            self._observer.start()
        except (OSError, RuntimeError) as e:
            raise NotificationSourceError(f"cannot start notification source: {e}") from e
        self._started = True

    def watch(self, path: str) -> bool:
        """
        Register a directory.

        Args:
            path: Directory to observe (not its subdirectories)

        Returns:
            True if registered, False if it already was

        Raises:
            NotificationSourceError: If the directory cannot be registered
        """
        with self._lock:
            if path in self._watches:
                return False
            handler = FSEventHandler(self.event_callback, path)
            try:
                watch = self._observer.schedule(handler, path, recursive=False)
            except OSError as e:
                raise NotificationSourceError(f"cannot watch {path}: {e}") from e
            self._watches[path] = watch
            return True

    def unwatch(self, path: str) -> bool:
        """
        Unregister a directory.

        Returns:
            True if it was registered
        """
        with self._lock:
            watch = self._watches.pop(path, None)
            if watch is None:
                return False
            try:
                self._observer.unschedule(watch)
            except (KeyError, OSError) as e:
                # The emitter may already be gone if the directory vanished.
                logger.debug(f"unschedule {path}: {e!r}")
            return True

    def close(self, timeout: Optional[float] = 5.0) -> None:
        """
        Stop the observer and drop all registrations.

        Raises:
            NotificationSourceError: If the observer fails to shut down
        """
        with self._lock:
            self._watches.clear()
        if not self._started:
            return
        self._started = False
        try:
            self._observer.stop()
            self._observer.join(timeout=timeout)
        except (OSError, RuntimeError) as e:
            raise NotificationSourceError(f"cannot close notification source: {e}") from e
        if self._observer.is_alive():
            raise NotificationSourceError("notification source did not stop in time")

    def is_watching(self, path: str) -> bool:
        with self._lock:
            return path in self._watches

    def get_watched_paths(self) -> List[str]:
        with self._lock:
            return list(self._watches)

    def __len__(self) -> int:
        with self._lock:
            return len(self._watches)
