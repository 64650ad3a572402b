"""Event gates: type mask, include pattern and execution interval."""

import logging
from typing import AbstractSet, Optional, Pattern

from .models import EventKind, RawEvent

logger = logging.getLogger(__name__)


def check_event_type(mask: AbstractSet[EventKind], event: RawEvent) -> bool:
    """
    Check whether an event's kind is selected by the event mask.

    ATTRIB events never match. They are metadata-only changes and are not
    routed into the "modify" classification.

    Args:
        mask: Event kinds selected by the configuration
        event: The raw event

    Returns:
        True if the event should proceed
    """
    if event.kind is EventKind.ATTRIB:
        matched = False
    else:
        matched = event.kind in mask
    logger.debug(
        f"Does watched events of '{', '.join(sorted(k.value for k in mask))}' "
        f"contain the '{event.kind.value}' event? {matched}"
    )
    return matched


def check_pattern_matching(pattern: Pattern[str], event: RawEvent) -> bool:
    """Search the include pattern anywhere in the event's full path."""
    matched = pattern.search(event.path) is not None
    logger.debug(f"{pattern.pattern} ~= {event.path}: {matched}")
    return matched


def check_exec_interval(last_exec: Optional[float], interval: float, now: float) -> bool:
    """
    Decide whether enough time has passed since the last execution.

    Args:
        last_exec: Clock value of the last execution, None if never
        interval: Minimum spacing in seconds, 0 disables the check
        now: Current clock value

    Returns:
        True if now is strictly later than last_exec + interval
    """
    if interval == 0 or last_exec is None:
        return True
    next_exec = last_exec + interval
    logger.debug(f"next execution time: {next_exec:.3f}, now: {now:.3f}, delta: {now - next_exec:.3f}")
    return now > next_exec


class ThrottleGate:
    """
    Single global execution clock.

    Not keyed by path or event kind: any execution pushes back the next
    one for every file in every watched tree.
    """

    def __init__(self, interval: float = 0.0):
        self.interval = interval
        self.last_exec: Optional[float] = None

    def allow(self, now: float) -> bool:
        return check_exec_interval(self.last_exec, self.interval, now)

    def mark(self, now: float) -> None:
        """Record that commands were run at now."""
        self.last_exec = now
