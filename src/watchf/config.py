"""Configuration for the watchf package."""

import json
import logging
import re
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import FrozenSet, List, Pattern, Sequence, Union

from .exceptions import ConfigError
from .models import ALL_EVENTS, VALID_EVENTS, EventKind

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".watchf.conf"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")
_BARE_NUMBER = re.compile(r"\d+(?:\.\d*)?|\.\d+")


def parse_duration(text: str) -> float:
    """
    Parse a Go-style duration string into seconds.

    Accepts "300ms", "1.5s", "2m", "1h30m" and so on. A bare number is
    taken as seconds.

    Args:
        text: Duration string

    Returns:
        Duration in seconds

    Raises:
        ConfigError: If the string is empty, negative or malformed
    """
    value = text.strip()
    if not value:
        raise ConfigError("empty duration")
    if value.startswith("-"):
        raise ConfigError(f"negative duration: {text}")
    if value.startswith("+"):
        value = value[1:]

    if _BARE_NUMBER.fullmatch(value):
        return float(value)

    total = 0.0
    pos = 0
    while pos < len(value):
        match = _DURATION_PART.match(value, pos)
        if match is None:
            raise ConfigError(f"invalid duration: {text}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return total


def format_duration(seconds: float) -> str:
    """Render seconds in the same style parse_duration accepts."""
    if seconds == 0:
        return "0s"
    if seconds < 1:
        return f"{seconds * 1000:g}ms"
    if seconds < 60:
        return f"{seconds:g}s"
    minutes, secs = divmod(seconds, 60)
    if minutes < 60:
        return f"{int(minutes)}m{secs:g}s" if secs else f"{int(minutes)}m"
    hours, minutes = divmod(minutes, 60)
    rendered = f"{int(hours)}h"
    if minutes:
        rendered += f"{int(minutes)}m"
    if secs:
        rendered += f"{secs:g}s"
    return rendered


def parse_event_list(text: str) -> List[str]:
    """Split a comma separated event list, dropping any spaces."""
    return text.replace(" ", "").split(",")


def validate_events(events: Sequence[str]) -> FrozenSet[EventKind]:
    """
    Validate configured event names and build the event mask.

    Args:
        events: Event names, case-insensitive; "all" selects every kind

    Returns:
        The set of selected event kinds

    Raises:
        ConfigError: If the list is empty or holds an unknown name
    """
    if not events:
        raise ConfigError("zero events is simply not enough")

    names = {event.strip().lower() for event in events}
    valid_names = {kind.value: kind for kind in VALID_EVENTS}

    for name in names:
        if name != ALL_EVENTS and name not in valid_names:
            raise ConfigError(f"the event {name} was not found")

    if ALL_EVENTS in names:
        return frozenset(VALID_EVENTS)
    return frozenset(valid_names[name] for name in names)


def _string_list(name: str, value) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"{name} must be a list of strings, got {value!r}")
    return list(value)


def _duration_value(name: str, value) -> float:
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a duration, got {value!r}")
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        return parse_duration(value)
    raise ConfigError(f"{name} must be a duration, got {value!r}")


@dataclass
class WatchConfig:
    """
    Configuration options for a watch service.

    Attributes:
        recursive: Watch subdirectories and register newly created ones
        events: Event names to react to (create, delete, modify, rename, all)
        include_pattern: Regular expression searched in the full event path
        commands: Command templates run in order for each matched event
        interval: Minimum seconds between command executions (0 = no limit)
        continue_on_error: Run remaining commands after one fails
        stabilize_timeout: Maximum seconds to wait for a file to stop
            growing before giving up on the event (0 = wait forever)
    """
    recursive: bool = False
    events: List[str] = field(default_factory=lambda: [ALL_EVENTS])
    include_pattern: str = ".*"
    commands: List[str] = field(default_factory=list)
    interval: float = 0.0
    continue_on_error: bool = False
    stabilize_timeout: float = 0.0

    def event_mask(self) -> FrozenSet[EventKind]:
        """Validated set of event kinds this configuration selects."""
        return validate_events(self.events)

    def compiled_pattern(self) -> Pattern[str]:
        """
        Compile the include pattern.

        Raises:
            ConfigError: If the pattern is not a valid regular expression
        """
        try:
            return re.compile(self.include_pattern)
        except re.error as e:
            raise ConfigError(f"invalid include pattern {self.include_pattern!r}: {e}") from e

    def validate(self) -> None:
        """Check every field, raising ConfigError on the first problem."""
        self.event_mask()
        self.compiled_pattern()
        if self.interval < 0:
            raise ConfigError(f"interval must not be negative: {self.interval}")
        if self.stabilize_timeout < 0:
            raise ConfigError(f"stabilize timeout must not be negative: {self.stabilize_timeout}")

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "WatchConfig":
        """
        Create from dictionary, ignoring unknown keys.

        Durations may be numbers of seconds or duration strings such as
        "500ms".

        Raises:
            ConfigError: If a field has the wrong type
        """
        known = {f.name for f in fields(cls)}
        values = {key: value for key, value in data.items() if key in known}

        for name in ("recursive", "continue_on_error"):
            if name in values and not isinstance(values[name], bool):
                raise ConfigError(f"{name} must be true or false, got {values[name]!r}")
        if "include_pattern" in values and not isinstance(values["include_pattern"], str):
            raise ConfigError(f"include_pattern must be a string, got {values['include_pattern']!r}")
        for name in ("events", "commands"):
            if name in values:
                values[name] = _string_list(name, values[name])
        for name in ("interval", "stabilize_timeout"):
            if name in values:
                values[name] = _duration_value(name, values[name])

        return cls(**values)

    def save(self, path: Union[str, Path] = DEFAULT_CONFIG_FILE) -> None:
        """Write the configuration as JSON."""
        Path(path).write_text(json.dumps(self.to_dict(), indent="\t") + "\n", encoding="utf-8")
        logger.info(f"Wrote configuration to {path}")

    @classmethod
    def load(cls, path: Union[str, Path] = DEFAULT_CONFIG_FILE) -> "WatchConfig":
        """
        Read a configuration previously written by save().

        Raises:
            ConfigError: If the file cannot be read or parsed
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigError(f"cannot load configuration from {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"configuration in {path} must be a JSON object")
        logger.debug(f"Loaded configuration from {path}")
        return cls.from_dict(data)
