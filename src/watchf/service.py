"""The watch service: notification producer, event queue and processing loop."""

import logging
import os
import queue
import threading
import time
from pathlib import Path
from typing import Callable, FrozenSet, Optional, Sequence, Union

from .config import WatchConfig
from .exceptions import (
    NotificationSourceError,
    RootNotFoundError,
    WatcherAlreadyRunningError,
    WatcherNotRunningError,
)
from .executor import Executor
from .filters import ThrottleGate, check_event_type, check_pattern_matching
from .fingerprint import FingerprintCache, StabilizationDebouncer
from .fs_watcher import NotificationSource
from .models import EventKind, EventOutcome, RawEvent
from .watch_set import WatchSet

logger = logging.getLogger(__name__)

# Capacity of the queue between the notification source and the consumer.
EVENT_BUF_SIZE = 1024 * 1024

_SENTINEL = object()

_STRUCTURAL = (EventKind.CREATE, EventKind.DELETE, EventKind.RENAME)


class WatchService:
    """
    Watches directory trees and runs commands when matching files change.

    The notification source pushes raw events into a bounded queue from
    its own thread. A single consumer thread drains the queue and runs
    each event through the pipeline to completion before taking the
    next: watch set sync, pattern filter, event classifier, content
    debouncer (file modifications only), throttle, command runner.

    The watch set and fingerprint cache belong to the consumer thread.
    Other threads only see snapshots.
    """

    def __init__(
        self,
        paths: Sequence[Union[str, Path]],
        config: Optional[WatchConfig] = None,
        source_factory: Callable[[Callable[[RawEvent], None]], NotificationSource] = NotificationSource,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the watch service.

        Args:
            paths: Root directories to watch
            config: Watch configuration
            source_factory: Builds the notification source from an event callback
            executor: Command runner (defaults to one writing to this process's streams)
            clock: Monotonic clock used by the throttle
        """
        if not paths:
            raise ValueError("At least one path must be provided for watching")

        self.paths = [os.path.abspath(os.fspath(path)) for path in paths]
        self.config = config or WatchConfig()
        self._source_factory = source_factory
        self._executor = executor or Executor()
        self._clock = clock

        self._cache = FingerprintCache()
        self._debouncer = StabilizationDebouncer(
            self._cache,
            max_wait=self.config.stabilize_timeout,
        )
        self._throttle = ThrottleGate(self.config.interval)
        self._queue: "queue.Queue[object]" = queue.Queue(maxsize=EVENT_BUF_SIZE)

        self._source: Optional[NotificationSource] = None
        self._watch_set: Optional[WatchSet] = None
        self._directories: FrozenSet[str] = frozenset()
        self._mask = frozenset()
        self._pattern = None
        self._consumer: Optional[threading.Thread] = None
        self._running = False
        self._lock = threading.Lock()

    def start(self) -> None:
        """
        Bootstrap the watch set and start the producer and consumer.

        Raises:
            ConfigError: If the event list or include pattern is invalid
            RootNotFoundError: If a root is missing or not a directory
            NotificationSourceError: If the notification source cannot be set up
            WatcherAlreadyRunningError: If already running, or if the consumer
                of the previous run is still busy with a command
        """
        with self._lock:
            if self._running:
                raise WatcherAlreadyRunningError("Watch service is already running")
            if self._consumer is not None and self._consumer.is_alive():
                raise WatcherAlreadyRunningError("Previous consumer is still finishing a command")

            self.config.validate()
            self._mask = self.config.event_mask()
            self._pattern = self.config.compiled_pattern()

            for root in self.paths:
                if not os.path.isdir(root):
                    raise RootNotFoundError(f"Root folder does not exist or is not a directory: {root}")

            source = self._source_factory(self.inject)
            watch_set = WatchSet(source, self._cache, recursive=self.config.recursive)
            try:
                for root in self.paths:
                    watch_set.bootstrap(root, self.config.recursive)
                source.start()
            except NotificationSourceError:
                self._close_quietly(source)
                raise

            self._source = source
            self._watch_set = watch_set
            self._directories = watch_set.get_directories()
            self._consumer = threading.Thread(target=self._consume, name="WatchfConsumer", daemon=True)
            self._consumer.start()
            self._running = True

        logger.info(
            f"Watching {len(watch_set)} director{'y' if len(watch_set) == 1 else 'ies'} "
            f"under {', '.join(self.paths)}"
        )

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """
        Close the notification source and let the consumer drain and exit.

        A command that is already running is not interrupted.

        Raises:
            WatcherNotRunningError: If not running
            NotificationSourceError: If the notification source fails to close
        """
        with self._lock:
            if not self._running:
                raise WatcherNotRunningError("Watch service is not running")
            self._running = False
            source, consumer = self._source, self._consumer

        close_error: Optional[NotificationSourceError] = None
        try:
            source.close()
        except NotificationSourceError as e:
            close_error = e

        self._queue.put(_SENTINEL)
        if consumer is not None:
            consumer.join(timeout=timeout)
            if consumer.is_alive():
                logger.warning("Consumer still busy with a command; leaving it to finish")
        logger.info("Watch service stopped")

        if close_error is not None:
            raise close_error

    def inject(self, event: RawEvent) -> None:
        """Queue an event as if the notification source had delivered it."""
        self._queue.put(event)

    def process(self, event: RawEvent) -> EventOutcome:
        """
        Run one event through the whole pipeline.

        Args:
            event: The raw event

        Returns:
            Where the event ended up
        """
        logger.debug(f"{event.kind.value}: {event.path}")
        self._watch_set.sync(event)
        if event.kind in _STRUCTURAL:
            self._directories = self._watch_set.get_directories()

        if not check_pattern_matching(self._pattern, event):
            return EventOutcome.DROPPED_PATTERN
        if not check_event_type(self._mask, event):
            return EventOutcome.DROPPED_TYPE

        if event.kind is EventKind.MODIFY and not self._watch_set.is_watched_directory(event.path):
            if not self._debouncer.content_changed(event.path):
                logger.debug(f"{event.path}: content unchanged")
                return EventOutcome.UNCHANGED

        now = self._clock()
        if not self._throttle.allow(now):
            logger.debug(f"{event} dropped")
            return EventOutcome.SUPPRESSED

        self._executor.run(self.config.commands, event, self.config.continue_on_error)
        self._throttle.mark(now)
        return EventOutcome.EXECUTED

    def _consume(self) -> None:
        logger.debug("Consumer loop started")
        while True:
            item = self._queue.get()
            if item is _SENTINEL:
                break
            try:
                self.process(item)
            except Exception:
                logger.exception(f"Error processing event {item}")
        logger.debug("Consumer loop stopped")

    @staticmethod
    def _close_quietly(source: NotificationSource) -> None:
        try:
            source.close()
        except NotificationSourceError as e:
            logger.error(f"Error closing notification source after failed start: {e}")

    def watched_directories(self) -> FrozenSet[str]:
        """Snapshot of the registered directories."""
        return self._directories

    def pending_events(self) -> int:
        """Number of events waiting in the queue."""
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._running

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._running:
            self.stop()
        return False
