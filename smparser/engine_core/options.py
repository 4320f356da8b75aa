"""
Options threaded through evaluation and action execution.

Both option sets are frozen: child scopes (a deeper trace path, one more
loop level) are derived with `dataclasses.replace`, so the caller's
values are never changed by a nested call.
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from ..log import LogFunction, engine_logger
from .resolution import VariableResolver, PathResolver, clone_value
from .timers import Timer

PushUniqueFunction = Callable[[str, Any], bool]
CloneFunction = Callable[[Any], Any]


@dataclass(frozen=True)
class EvaluationOptions:
    """
    Options for evaluating a condition tree.

    - resolver: turns reference strings into values
    - loop_depth: how many $inarray/$any/$all scopes enclose the node
    - path: dotted position of the node, for tracing and timer keys
    - event_timestamp: seconds, only consulted by $after
    - logger: observability sink
    - timers: the caller-owned Timer Registry
    - push_unique: consumer callback for the $pushunique condition
    """
    resolver: VariableResolver = field(default_factory=PathResolver)
    loop_depth: int = 0
    path: str = ""
    event_timestamp: float | None = None
    logger: LogFunction = field(default_factory=engine_logger)
    timers: list[Timer] | None = None
    push_unique: PushUniqueFunction | None = None

    def child(self, label: str) -> EvaluationOptions:
        """Options for a child node labeled `label`."""
        path = f"{self.path}.{label}" if self.path else label
        return replace(self, path=path)

    def enter_loop(self) -> EvaluationOptions:
        """Options for the element scope of an array operator."""
        return replace(self, loop_depth=self.loop_depth + 1)

    @property
    def display_path(self) -> str:
        return self.path or "(root)"


@dataclass(frozen=True)
class ActionOptions:
    """
    Options for applying action bags.

    `scope` is a read-only layer consulted after the context when operands
    are resolved (the event's Value, Constants). Writes always go to the
    context. `original_context` is the snapshot `$reset` restores from.
    """
    resolver: VariableResolver = field(default_factory=PathResolver)
    logger: LogFunction = field(default_factory=engine_logger)
    clone: CloneFunction = clone_value
    original_context: Mapping[str, Any] | None = None
    scope: Mapping[str, Any] | None = None
