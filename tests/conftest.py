"""Shared fixtures for watchf tests."""

import time

import pytest

from src.watchf.exceptions import CommandError
from src.watchf.executor import Executor, evaluate_variables, split_command


class FakeSource:
    """In-memory stand-in for the watchdog notification source."""

    def __init__(self, callback):
        self.callback = callback
        self.watched = set()
        self.history = []
        self.started = False
        self.closed = False

    def start(self):
        self.started = True

    def watch(self, path):
        self.history.append(("watch", path))
        if path in self.watched:
            return False
        self.watched.add(path)
        return True

    def unwatch(self, path):
        self.history.append(("unwatch", path))
        if path not in self.watched:
            return False
        self.watched.discard(path)
        return True

    def close(self):
        self.closed = True
        self.watched.clear()


class RecordingExecutor(Executor):
    """
    Executor that records the command lines instead of running them.

    Commands listed in fail_on fail as if they had exited with status 1.
    """

    def __init__(self, fail_on=()):
        super().__init__()
        self.executed = []
        self.fail_on = set(fail_on)

    def execute(self, command, event):
        argv = split_command(evaluate_variables(command, event))
        self.executed.append(" ".join(argv))
        if command in self.fail_on:
            raise CommandError(f"exec: \"{' '.join(argv)}\" failed, err: exit status 1", argv, 1)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def sources():
    """Factory for FakeSource that remembers every source it built."""
    built = []

    def factory(callback):
        source = FakeSource(callback)
        built.append(source)
        return source

    factory.built = built
    return factory


@pytest.fixture
def recording_executor():
    return RecordingExecutor()


def wait_for(predicate, timeout=5.0, interval=0.05):
    """Poll predicate until it is true or the timeout expires."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
