"""
watchf

Watches directory trees and runs commands when the files in them change.

Features:
- Recursive watching that follows directories as they are created and removed
- Event selection by kind (create, delete, modify, rename) and path pattern
- Content fingerprints so metadata-only changes and partial writes are ignored
- Minimum interval between command executions
- Command templates with %f (path) and %t (event type) substitution
- PID-file daemon wrapper for foreground runs and remote stop
"""

from .models import (
    ALL_EVENTS,
    VALID_EVENTS,
    EventKind,
    EventOutcome,
    FileEntry,
    RawEvent,
)

from .config import (
    DEFAULT_CONFIG_FILE,
    WatchConfig,
    format_duration,
    parse_duration,
    parse_event_list,
    validate_events,
)

from .exceptions import (
    WatchfError,
    ConfigError,
    RootError,
    RootNotFoundError,
    NotificationSourceError,
    WatcherNotRunningError,
    WatcherAlreadyRunningError,
    FileNotStableError,
    CommandError,
    DaemonError,
    DaemonAlreadyRunningError,
    DaemonNotRunningError,
)

from .filters import ThrottleGate, check_event_type, check_exec_interval, check_pattern_matching
from .fingerprint import FingerprintCache, StabilizationDebouncer, get_content_hash, get_file_size
from .watch_set import WatchSet
from .fs_watcher import FSEventHandler, NotificationSource
from .executor import VAR_EVENT_TYPE, VAR_FILENAME, Executor, evaluate_variables
from .service import WatchService
from .daemon import Daemon, Service


__all__ = [
    # Models
    "ALL_EVENTS",
    "VALID_EVENTS",
    "EventKind",
    "EventOutcome",
    "FileEntry",
    "RawEvent",
    # Config
    "DEFAULT_CONFIG_FILE",
    "WatchConfig",
    "format_duration",
    "parse_duration",
    "parse_event_list",
    "validate_events",
    # Exceptions
    "WatchfError",
    "ConfigError",
    "RootError",
    "RootNotFoundError",
    "NotificationSourceError",
    "WatcherNotRunningError",
    "WatcherAlreadyRunningError",
    "FileNotStableError",
    "CommandError",
    "DaemonError",
    "DaemonAlreadyRunningError",
    "DaemonNotRunningError",
    # Pipeline stages
    "ThrottleGate",
    "check_event_type",
    "check_exec_interval",
    "check_pattern_matching",
    "FingerprintCache",
    "StabilizationDebouncer",
    "get_content_hash",
    "get_file_size",
    "WatchSet",
    "FSEventHandler",
    "NotificationSource",
    "VAR_EVENT_TYPE",
    "VAR_FILENAME",
    "Executor",
    "evaluate_variables",
    # Service
    "WatchService",
    "Daemon",
    "Service",
]

__version__ = "0.1.0"
