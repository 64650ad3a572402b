"""Data models for the watchf package."""

from dataclasses import dataclass, field
from enum import Enum
import time


class EventKind(Enum):
    """Semantic kinds of filesystem notifications.

    ATTRIB is a metadata-only change. It never matches an event mask, not
    even "modify" or "all".
    """
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    RENAME = "rename"
    ATTRIB = "attrib"


# Kinds a user may select, with the descriptions shown by `watchf events`.
VALID_EVENTS = {
    EventKind.CREATE: "File/directory created in watched directory",
    EventKind.DELETE: "File/directory deleted from watched directory",
    EventKind.MODIFY: "File was modified or Metadata changed",
    EventKind.RENAME: "File moved out of watched directory",
}

ALL_EVENTS = "all"


class EventOutcome(Enum):
    """Terminal state of a single event in the processing pipeline."""
    DROPPED_PATTERN = "dropped_pattern"
    DROPPED_TYPE = "dropped_type"
    UNCHANGED = "unchanged"
    SUPPRESSED = "suppressed"
    EXECUTED = "executed"


@dataclass(frozen=True)
class RawEvent:
    """
    A notification as delivered by the filesystem notification source.

    Attributes:
        path: Full path of the affected file or directory
        kind: What happened to it
        timestamp: Unix timestamp when the notification was received
    """
    path: str
    kind: EventKind
    timestamp: float = field(default_factory=time.time)

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.path}"


@dataclass
class FileEntry:
    """Last observed fingerprint of a file's content."""
    size: int
    checksum: int
