"""Tracking of the directories registered with the notification source."""

import logging
import os
import stat
from typing import FrozenSet, List, Protocol, Set

from .exceptions import NotificationSourceError
from .fingerprint import FingerprintCache
from .models import EventKind, RawEvent

logger = logging.getLogger(__name__)


class Registrar(Protocol):
    """The part of a notification source the watch set drives."""

    def watch(self, path: str) -> bool: ...

    def unwatch(self, path: str) -> bool: ...


class WatchSet:
    """
    Directories currently registered with the notification source.

    Every registered directory has an entry here and vice versa. The set
    follows structural changes: directories created under a recursive
    root are added, deleted or renamed ones are removed together with
    the fingerprints of the files they contained.

    Owned by the consumer thread; not thread-safe.
    """

    def __init__(self, source: Registrar, cache: FingerprintCache, recursive: bool = False):
        """
        Initialize the watch set.

        Args:
            source: Notification source to register directories with
            cache: Fingerprint cache purged when directories go away
            recursive: Whether newly created directories are registered
        """
        self.source = source
        self.cache = cache
        self.recursive = recursive
        self._dirs: Set[str] = set()

    def bootstrap(self, root: str, recursive: bool) -> int:
        """
        Register a root directory, and its whole tree if recursive.

        Unreadable subdirectories are logged and skipped along with
        everything below them.

        Args:
            root: Directory to watch
            recursive: Walk the tree and register every directory

        Returns:
            Number of directories registered

        Raises:
            NotificationSourceError: If a directory cannot be registered
        """
        if not recursive:
            return 1 if self._register(root) else 0
        return sum(1 for path in self._walk(root) if self._register(path))

    def sync(self, event: RawEvent) -> None:
        """
        Apply the structural side of an event before it is filtered.

        Args:
            event: The raw event
        """
        path = event.path

        if event.kind is EventKind.CREATE:
            if not self.recursive:
                return
            try:
                st = os.stat(path)
            except OSError as e:
                logger.debug(f"stat {path}: {e}")
                return
            if stat.S_ISDIR(st.st_mode):
                try:
                    for directory in self._walk(path):
                        self._register(directory)
                except NotificationSourceError as e:
                    logger.warning(f"Not watching {path}: {e}")

        elif event.kind in (EventKind.RENAME, EventKind.DELETE):
            if path in self._dirs:
                self._unregister_tree(path)
                purged = self.cache.purge_prefix(path)
                if purged:
                    logger.debug(f"purged {purged} fingerprint(s) under {path}")
            else:
                self.cache.discard(path)

    def is_watched_directory(self, path: str) -> bool:
        """Check whether path is a registered directory."""
        return path in self._dirs

    def get_directories(self) -> FrozenSet[str]:
        return frozenset(self._dirs)

    def _walk(self, root: str) -> List[str]:
        def skip(error: OSError) -> None:
            logger.warning(f"skip dir {error.filename}, caused by: {error.strerror or error}")

        return [dirpath for dirpath, _, _ in os.walk(root, onerror=skip)]

    def _register(self, path: str) -> bool:
        if path in self._dirs:
            return False
        self.source.watch(path)
        self._dirs.add(path)
        logger.info(f"watching: {path}")
        return True

    def _unregister_tree(self, path: str) -> None:
        prefix = path.rstrip(os.sep) + os.sep
        doomed = [d for d in self._dirs if d == path or d.startswith(prefix)]
        for directory in doomed:
            self._dirs.discard(directory)
            self.source.unwatch(directory)
            logger.info(f"remove watching: {directory}")

    def __len__(self) -> int:
        return len(self._dirs)

    def __contains__(self, path: str) -> bool:
        return path in self._dirs
