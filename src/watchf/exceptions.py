"""Custom exceptions for the watchf package."""

from typing import Optional, Sequence


class WatchfError(Exception):
    """Base exception for all watchf errors."""
    pass


class ConfigError(WatchfError):
    """Invalid configuration: event list, pattern, duration or config file."""
    pass


class RootError(WatchfError):
    """Error related to a watched root directory."""
    pass


class RootNotFoundError(RootError):
    """Specified root directory does not exist or is not a directory."""
    pass


class NotificationSourceError(WatchfError):
    """The filesystem notification source failed to start, register or close."""
    pass


class WatcherNotRunningError(WatchfError):
    """Watch service is not running."""
    pass


class WatcherAlreadyRunningError(WatchfError):
    """Watch service is already running."""
    pass


class FileNotStableError(WatchfError):
    """A file kept changing size for longer than the allowed wait."""
    pass


class CommandError(WatchfError):
    """A configured command could not be launched or exited non-zero."""

    def __init__(self, message: str, argv: Sequence[str], returncode: Optional[int] = None):
        super().__init__(message)
        self.argv = list(argv)
        self.returncode = returncode


class DaemonError(WatchfError):
    """Error raised by the daemon wrapper."""
    pass


class DaemonAlreadyRunningError(DaemonError):
    """Another process already owns the PID file."""
    pass


class DaemonNotRunningError(DaemonError):
    """No running instance was found."""
    pass
