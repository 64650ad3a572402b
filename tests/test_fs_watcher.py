"""Tests for filesystem watcher module."""

import os
import time

import pytest
from watchdog.events import (
    DirCreatedEvent,
    DirDeletedEvent,
    DirModifiedEvent,
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from conftest import wait_for
from src.watchf.exceptions import NotificationSourceError
from src.watchf.fs_watcher import FSEventHandler, NotificationSource
from src.watchf.models import EventKind, RawEvent


@pytest.fixture
def handler():
    events = []
    h = FSEventHandler(events.append, "/w")
    h.events = events
    return h


def _pairs(events):
    return [(e.kind, e.path) for e in events]


class TestFSEventHandler:
    """Tests for FSEventHandler class."""

    def test_file_created(self, handler):
        handler.dispatch(FileCreatedEvent("/w/a.txt"))
        assert _pairs(handler.events) == [(EventKind.CREATE, "/w/a.txt")]

    def test_dir_created(self, handler):
        handler.dispatch(DirCreatedEvent("/w/sub"))
        assert _pairs(handler.events) == [(EventKind.CREATE, "/w/sub")]

    def test_file_modified(self, handler):
        handler.dispatch(FileModifiedEvent("/w/a.txt"))
        assert _pairs(handler.events) == [(EventKind.MODIFY, "/w/a.txt")]

    def test_dir_modified_dropped(self, handler):
        handler.dispatch(DirModifiedEvent("/w/sub"))
        handler.dispatch(DirModifiedEvent("/w"))
        assert handler.events == []

    def test_file_deleted(self, handler):
        handler.dispatch(FileDeletedEvent("/w/a.txt"))
        assert _pairs(handler.events) == [(EventKind.DELETE, "/w/a.txt")]

    def test_dir_deleted(self, handler):
        handler.dispatch(DirDeletedEvent("/w/sub"))
        assert _pairs(handler.events) == [(EventKind.DELETE, "/w/sub")]

    def test_self_delete_dropped(self, handler):
        handler.dispatch(DirDeletedEvent("/w"))
        assert handler.events == []

    def test_moved_becomes_rename_then_create(self, handler):
        handler.dispatch(FileMovedEvent("/w/a.txt", "/w/b.txt"))
        assert _pairs(handler.events) == [
            (EventKind.RENAME, "/w/a.txt"),
            (EventKind.CREATE, "/w/b.txt"),
        ]

    def test_dir_moved(self, handler):
        handler.dispatch(DirMovedEvent("/w/old", "/w/new"))
        assert _pairs(handler.events) == [
            (EventKind.RENAME, "/w/old"),
            (EventKind.CREATE, "/w/new"),
        ]

    def test_self_move_dropped(self, handler):
        handler.dispatch(DirMovedEvent("/w", "/elsewhere"))
        assert handler.events == []

    def test_bytes_paths_decoded(self, handler):
        handler.dispatch(FileCreatedEvent(b"/w/a.txt"))
        assert _pairs(handler.events) == [(EventKind.CREATE, "/w/a.txt")]

    def test_emits_raw_events(self, handler):
        handler.dispatch(FileCreatedEvent("/w/a.txt"))
        assert isinstance(handler.events[0], RawEvent)


class TestFSEventHandlerMetadata:
    """Tests for telling metadata changes from content writes."""

    HOUR_NS = 3600 * 10**9

    @pytest.fixture
    def watched(self, tmp_path):
        events = []
        h = FSEventHandler(events.append, str(tmp_path))
        h.events = events
        return h, tmp_path

    def _backdate(self, path):
        old = time.time_ns() - self.HOUR_NS
        os.utime(path, ns=(old, old))

    def test_written_file_is_modify(self, watched):
        handler, root = watched
        path = root / "a.txt"
        path.write_text("hello")

        handler.dispatch(FileModifiedEvent(str(path)))

        assert _pairs(handler.events) == [(EventKind.MODIFY, str(path))]

    def test_chmod_on_unseen_file_is_attrib(self, watched):
        handler, root = watched
        path = root / "a.txt"
        path.write_text("hello")
        self._backdate(path)

        os.chmod(path, 0o600)
        handler.dispatch(FileModifiedEvent(str(path)))

        assert _pairs(handler.events) == [(EventKind.ATTRIB, str(path))]

    def test_chmod_on_seen_file_is_attrib(self, watched):
        handler, root = watched
        path = root / "a.txt"
        path.write_text("hello")
        handler.dispatch(FileModifiedEvent(str(path)))

        os.chmod(path, 0o600)
        handler.dispatch(FileModifiedEvent(str(path)))

        assert [e.kind for e in handler.events] == [EventKind.MODIFY, EventKind.ATTRIB]

    def test_write_after_chmod_is_modify(self, watched):
        handler, root = watched
        path = root / "a.txt"
        path.write_text("hello")
        self._backdate(path)
        os.chmod(path, 0o600)
        handler.dispatch(FileModifiedEvent(str(path)))

        path.write_text("hello, world")
        handler.dispatch(FileModifiedEvent(str(path)))

        assert [e.kind for e in handler.events] == [EventKind.ATTRIB, EventKind.MODIFY]

    def test_new_mtime_is_modify(self, watched):
        handler, root = watched
        path = root / "a.txt"
        path.write_text("hello")
        self._backdate(path)
        os.chmod(path, 0o600)
        handler.dispatch(FileModifiedEvent(str(path)))

        os.utime(path)
        handler.dispatch(FileModifiedEvent(str(path)))

        assert [e.kind for e in handler.events] == [EventKind.ATTRIB, EventKind.MODIFY]

    def test_vanished_file_is_modify(self, watched):
        handler, root = watched

        handler.dispatch(FileModifiedEvent(str(root / "gone.txt")))

        assert _pairs(handler.events) == [(EventKind.MODIFY, str(root / "gone.txt"))]


class TestNotificationSource:
    """Tests for NotificationSource with a real observer."""

    def test_create_source(self):
        source = NotificationSource(lambda event: None)
        assert len(source) == 0
        assert source.get_watched_paths() == []

    def test_watch(self, tmp_path):
        source = NotificationSource(lambda event: None)

        assert source.watch(str(tmp_path)) is True
        assert source.is_watching(str(tmp_path))
        assert len(source) == 1

        source.close()

    def test_watch_duplicate(self, tmp_path):
        source = NotificationSource(lambda event: None)
        source.watch(str(tmp_path))

        assert source.watch(str(tmp_path)) is False
        assert len(source) == 1

        source.close()

    def test_watch_missing_directory(self, tmp_path):
        source = NotificationSource(lambda event: None)
        source.start()
        try:
            with pytest.raises(NotificationSourceError):
                source.watch(str(tmp_path / "missing"))
            assert len(source) == 0
        finally:
            source.close()

    def test_unwatch(self, tmp_path):
        source = NotificationSource(lambda event: None)
        source.watch(str(tmp_path))

        assert source.unwatch(str(tmp_path)) is True
        assert not source.is_watching(str(tmp_path))
        assert source.unwatch(str(tmp_path)) is False

    def test_close_without_start(self, tmp_path):
        source = NotificationSource(lambda event: None)
        source.watch(str(tmp_path))

        source.close()

        assert len(source) == 0

    def test_delivers_file_events(self, tmp_path):
        events = []
        source = NotificationSource(events.append)
        source.watch(str(tmp_path))
        source.start()
        try:
            path = tmp_path / "a.txt"
            path.write_text("hello")

            assert wait_for(lambda: (EventKind.CREATE, str(path)) in _pairs(events))
            assert wait_for(lambda: (EventKind.MODIFY, str(path)) in _pairs(events))

            path.unlink()
            assert wait_for(lambda: (EventKind.DELETE, str(path)) in _pairs(events))
        finally:
            source.close()

    def test_delivers_rename(self, tmp_path):
        events = []
        path = tmp_path / "a.txt"
        path.write_text("hello")
        source = NotificationSource(events.append)
        source.watch(str(tmp_path))
        source.start()
        try:
            path.rename(tmp_path / "b.txt")

            assert wait_for(lambda: (EventKind.CREATE, str(tmp_path / "b.txt")) in _pairs(events))
            pairs = _pairs(events)
            assert (EventKind.RENAME, str(path)) in pairs
            assert pairs.index((EventKind.RENAME, str(path))) < pairs.index(
                (EventKind.CREATE, str(tmp_path / "b.txt"))
            )
        finally:
            source.close()

    def test_subdirectories_not_observed(self, tmp_path):
        sub = tmp_path / "sub"
        sub.mkdir()
        events = []
        source = NotificationSource(events.append)
        source.watch(str(tmp_path))
        source.start()
        try:
            (sub / "inner.txt").write_text("x")
            (tmp_path / "marker").write_text("x")

            assert wait_for(lambda: (EventKind.CREATE, str(tmp_path / "marker")) in _pairs(events))
            time.sleep(0.2)
            assert all(e.path != str(sub / "inner.txt") for e in events)
        finally:
            source.close()

    def test_unwatched_directory_is_silent(self, tmp_path):
        events = []
        source = NotificationSource(events.append)
        source.watch(str(tmp_path))
        source.start()
        try:
            source.unwatch(str(tmp_path))
            (tmp_path / "a.txt").write_text("x")
            time.sleep(0.3)
            assert events == []
        finally:
            source.close()
