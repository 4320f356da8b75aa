"""
Variable Resolution - turns reference strings into values.

References are plain strings inside a state machine document:

- "$Kills"              -> context["Kills"]
- "$Value.RepositoryId" -> context["Value"]["RepositoryId"]
- "$Targets[0].Name"    -> context["Targets"][0]["Name"]
- "$.#"                 -> the element currently being iterated by $any/$all
- "$.Name"              -> the "Name" property of that element
- "$..Name"             -> the same, one loop level further out

Strings without a leading "$" are literals when read, and plain paths when
they name a mutation target (for_write=True).

The evaluator and the action executor only talk to the VariableResolver
protocol, so callers can swap in another path syntax.
"""

from __future__ import annotations
from collections.abc import Mapping, MutableMapping
from typing import Any, Protocol, runtime_checkable
import re

REFERENCE_MARKER = "$"
ELEMENT_SELF = "#"

_INDEX_PATTERN = re.compile(r"\[(\d+)\]")
_MISSING = object()


def loop_key(depth: int) -> str:
    """Scope key under which the iterated element of a loop level is bound."""
    return f"$loop{depth}"


def strip_marker(reference: str) -> str:
    """Drop a single leading reference marker, if present."""
    if reference.startswith(REFERENCE_MARKER):
        return reference[1:]
    return reference


def split_path(path: str) -> list[str]:
    """Split 'A.B[0].C' into ['A', 'B', '0', 'C']."""
    normalized = _INDEX_PATTERN.sub(r".\1", path)
    return [part for part in normalized.split(".") if part]


def _step(obj: Any, part: str) -> Any:
    if isinstance(obj, Mapping):
        if part in obj:
            return obj[part]
        return _MISSING
    if isinstance(obj, list) and part.isdigit():
        index = int(part)
        if index < len(obj):
            return obj[index]
    return _MISSING


def _walk(obj: Any, parts: list[str]) -> Any:
    for part in parts:
        obj = _step(obj, part)
        if obj is _MISSING:
            return None
    return obj


@runtime_checkable
class VariableResolver(Protocol):
    """Strategy used by the engine to read and write references."""

    def resolve(
        self,
        reference: Any,
        scope: Mapping[str, Any],
        for_write: bool = False,
        loop_depth: int = 0,
    ) -> Any:
        ...

    def write(self, scope: MutableMapping[str, Any], reference: str, value: Any) -> None:
        ...


class PathResolver:
    """
    Default resolver: dotted paths with numeric indices.

    Absent values resolve to None.
    """

    def resolve(
        self,
        reference: Any,
        scope: Mapping[str, Any],
        for_write: bool = False,
        loop_depth: int = 0,
    ) -> Any:
        if not isinstance(reference, str):
            return reference

        if for_write:
            return _walk(scope, split_path(strip_marker(reference)))

        if not reference.startswith(REFERENCE_MARKER):
            return reference

        body = reference[1:]
        if body.startswith("."):
            return self._resolve_element(body, scope, loop_depth)

        return _walk(scope, split_path(body))

    def _resolve_element(self, body: str, scope: Mapping[str, Any], loop_depth: int) -> Any:
        """Resolve '$.x' style references against the bound loop elements."""
        dots = len(body) - len(body.lstrip("."))
        depth = loop_depth - (dots - 1)
        if depth < 1:
            return None

        element = scope.get(loop_key(depth), _MISSING) if isinstance(scope, Mapping) else _MISSING
        if element is _MISSING:
            return None

        rest = body[dots:]
        if rest in ("", ELEMENT_SELF):
            return element
        return _walk(element, split_path(rest))

    def write(self, scope: MutableMapping[str, Any], reference: str, value: Any) -> None:
        """
        Commit a value at a path, creating intermediate objects as needed.

        Writes through a list index only replace existing slots.
        """
        parts = split_path(strip_marker(reference))
        if not parts:
            return

        target: Any = scope
        for part in parts[:-1]:
            child = _step(target, part)
            if child is _MISSING or child is None:
                if not isinstance(target, MutableMapping):
                    return
                child = {}
                target[part] = child
            target = child

        last = parts[-1]
        if isinstance(target, MutableMapping):
            target[last] = value
        elif isinstance(target, list) and last.isdigit() and int(last) < len(target):
            target[int(last)] = value


def clone_value(value: Any) -> Any:
    """Structural copy of lists and plain dicts; everything else is shared."""
    if isinstance(value, list):
        return [clone_value(item) for item in value]
    if isinstance(value, dict):
        return {key: clone_value(item) for key, item in value.items()}
    return value


def is_number(value: Any) -> bool:
    """True for ints and floats, but not bools."""
    return isinstance(value, (int, float)) and not isinstance(value, bool)
