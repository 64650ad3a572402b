"""Content fingerprints and the write-stabilization debouncer."""

import logging
import os
import time
import zlib
from typing import Callable, Dict, Iterator, Optional

from .exceptions import FileNotStableError
from .models import FileEntry

logger = logging.getLogger(__name__)

# Sleep between size polls while waiting for a writer to finish.
FILE_CLOSE_CHECK_INTERVAL = 0.02
# Consecutive polls with an unchanged size before a file counts as closed.
FILE_CLOSE_CHECK_THRESHOLD = 2

_CHUNK_SIZE = 65536


def get_file_size(path: str) -> int:
    """Return the size of path in bytes, raising OSError if it cannot be stat'ed."""
    return os.stat(path).st_size


def get_content_hash(path: str) -> int:
    """
    Compute the adler32 checksum of a file's full contents.

    Args:
        path: Path to the file

    Returns:
        Unsigned 32-bit checksum

    Raises:
        OSError: If the file cannot be read
    """
    checksum = zlib.adler32(b"")
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            checksum = zlib.adler32(chunk, checksum)
    return checksum & 0xFFFFFFFF


class FingerprintCache:
    """
    Last observed (size, checksum) per file path.

    Entries only appear for paths seen in a modify event since the watch
    started. Owned by the consumer thread, so there is no locking.
    """

    def __init__(self):
        self._entries: Dict[str, FileEntry] = {}

    def get(self, path: str) -> Optional[FileEntry]:
        return self._entries.get(path)

    def put(self, path: str, entry: FileEntry) -> None:
        self._entries[path] = entry

    def discard(self, path: str) -> bool:
        """
        Drop the entry for a single path.

        Returns:
            True if an entry was removed
        """
        return self._entries.pop(path, None) is not None

    def purge_prefix(self, directory: str) -> int:
        """
        Drop every entry located under directory.

        Only paths starting with directory followed by a path separator
        match, so a sibling such as "src2/x" survives purging "src".

        Returns:
            Number of entries removed
        """
        prefix = directory.rstrip(os.sep) + os.sep
        stale = [path for path in self._entries if path.startswith(prefix)]
        for path in stale:
            del self._entries[path]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, path: str) -> bool:
        return path in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._entries))


class StabilizationDebouncer:
    """
    Decides whether a modify notification reflects a real content change.

    Waits until the file's size stops changing, then fingerprints it and
    compares against the cache. The first sighting of a path always
    counts as changed. Any I/O failure counts as unchanged.
    """

    def __init__(
        self,
        cache: Optional[FingerprintCache] = None,
        poll_interval: float = FILE_CLOSE_CHECK_INTERVAL,
        threshold: int = FILE_CLOSE_CHECK_THRESHOLD,
        max_wait: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the debouncer.

        Args:
            cache: Fingerprint cache to consult and update
            poll_interval: Seconds between size polls
            threshold: Consecutive unchanged polls that mark a file closed
            max_wait: Give up after this many seconds (0 = never give up)
            sleep: Sleep function, replaceable in tests
            clock: Monotonic clock used for max_wait
        """
        self.cache = cache if cache is not None else FingerprintCache()
        self.poll_interval = poll_interval
        self.threshold = threshold
        self.max_wait = max_wait
        self._sleep = sleep
        self._clock = clock

    def wait_for_file_close(self, path: str) -> int:
        """
        Block until the size of path has been stable for threshold polls.

        Returns:
            The stable size

        Raises:
            OSError: If the size cannot be read, e.g. the file vanished
            FileNotStableError: If max_wait is set and was exceeded
        """
        logger.debug(f"wait for the file {path} close")
        deadline = self._clock() + self.max_wait if self.max_wait > 0 else None
        last_size: Optional[int] = None
        counter = 0

        while True:
            current_size = get_file_size(path)
            if current_size == last_size:
                counter += 1
                if counter >= self.threshold:
                    return current_size
            else:
                counter = 0
            last_size = current_size

            if deadline is not None and self._clock() >= deadline:
                raise FileNotStableError(
                    f"{path} still changing after {self.max_wait:g}s (size {current_size})"
                )
            self._sleep(self.poll_interval)

    def content_changed(self, path: str) -> bool:
        """
        Check whether the content of path differs from its cached fingerprint.

        Args:
            path: Path of a regular file that received a modify event

        Returns:
            True if this is the first sighting or size/checksum differ
        """
        try:
            self.wait_for_file_close(path)
            size = get_file_size(path)
            checksum = get_content_hash(path)
        except FileNotStableError as e:
            logger.warning(str(e))
            return False
        except OSError as e:
            logger.error(f"Cannot fingerprint {path}: {e}")
            return False

        logger.debug(f"file {path}, size: {size}, checksum: {checksum}")

        cached = self.cache.get(path)
        if cached is None:
            self.cache.put(path, FileEntry(size=size, checksum=checksum))
            return True

        changed = False
        if cached.size != size:
            cached.size = size
            changed = True
        if cached.checksum != checksum:
            cached.checksum = checksum
            changed = True
        return changed
