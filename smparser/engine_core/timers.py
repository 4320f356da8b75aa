"""
Timer Registry and the `$after` gate.

A Timer Registry is a plain list of Timer records owned by the caller
(usually stored next to a session's context). The evaluator only appends
to it and removes fired entries from it; it never replaces the list.

Lifecycle of a timer, keyed by the `$after` node's tree path:

    absent --(first evaluation with a timestamp)--> active
    active --(timestamp >= end_time)--> absent   (gate returns True once)
    active --(timestamp <  end_time)--> active   (gate returns False)
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, TYPE_CHECKING

from .resolution import is_number

if TYPE_CHECKING:
    from .options import EvaluationOptions


@dataclass
class Timer:
    """An active `$after` window."""
    path: str
    start_time: float
    end_time: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Timer:
        return cls(
            path=data["path"],
            start_time=data["startTime"],
            end_time=data["endTime"],
        )


def find_timer(timers: list[Timer], path: str) -> Timer | None:
    """Find the timer registered for a tree path."""
    for timer in timers:
        if timer.path == path:
            return timer
    return None


def remove_timer(timers: list[Timer], path: str) -> bool:
    """Remove the timer for a tree path in place. Returns True if removed."""
    for index, timer in enumerate(timers):
        if timer.path == path:
            del timers[index]
            return True
    return False


def evaluate_after(
    evaluate_with_path: Callable[[Any, Any, EvaluationOptions, str], Any],
    operand: Any,
    context: Any,
    options: EvaluationOptions,
) -> bool:
    """Evaluate an `$after` node whose duration (in seconds) is `operand`."""
    log = options.logger
    path = f"{options.path}.$after" if options.path else "$after"
    timers = options.timers

    if timers is None:
        log("validation", f"No timer registry available for {path}")
        return False

    timestamp = options.event_timestamp
    timer = find_timer(timers, path)

    if timer is None:
        if timestamp is None:
            log("validation", "No event timestamp found when timer is supposed to be active")
            return False

        seconds = evaluate_with_path(operand, context, options, "$after")
        if not is_number(seconds):
            log("validation", f"$after duration at {path} is not a number: {seconds!r}")
            return False

        timer = Timer(path=path, start_time=timestamp, end_time=timestamp + seconds)
        timers.append(timer)
    elif timestamp is None:
        log("validation", f"No event timestamp to compare against timer {path}")
        return False

    log("eventStamp", str(timestamp))
    log("endTime", str(timer.end_time))

    if timestamp >= timer.end_time:
        # Fired: drop it so a later re-entry starts a fresh window.
        remove_timer(timers, path)
        return True

    return False
