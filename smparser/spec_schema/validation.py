"""
Definition Validation - Structural checks for state machine documents.

Validates that:
1. The document has a States object of state -> event -> handler(s)
2. State and event names are non-empty
3. Handlers are objects, and Transitions name declared states
4. Condition trees and action bags are well-formed

The engine itself tolerates malformed nodes at runtime; this is for
authors who want to know about them before a session starts.
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from ..engine_core.definition import DEFAULT_INITIAL_STATE, HANDLER_KEYS
from ..engine_core.operators import (
    ActionOperator,
    Operator,
    ARRAY_OPERATORS,
    COMPARISON_OPERATORS,
    decode_action,
    decode_node,
)


class DefinitionValidationError(Exception):
    """Raised when definition validation fails."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(f"Definition validation failed with {len(errors)} error(s)")


@dataclass
class ValidationResult:
    """Result of validation, with errors and warnings."""
    valid: bool
    errors: list[str]
    warnings: list[str]

    def raise_for_errors(self) -> None:
        if not self.valid:
            raise DefinitionValidationError(self.errors)


def validate_definition(
    document: Any,
    initial_state: str = DEFAULT_INITIAL_STATE,
) -> ValidationResult:
    """
    Validate a decoded state machine document.

    Returns ValidationResult with errors and warnings.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(document, Mapping):
        return ValidationResult(valid=False, errors=["Definition must be an object"], warnings=[])

    for key in ("Context", "Constants"):
        if key in document and document[key] is not None and not isinstance(document[key], Mapping):
            errors.append(f"{key} must be an object")

    states = document.get("States")
    if not isinstance(states, Mapping):
        errors.append("States object is required")
        return ValidationResult(valid=False, errors=errors, warnings=warnings)

    if not states:
        errors.append("States must declare at least one state")
    elif initial_state not in states:
        warnings.append(f"Initial state '{initial_state}' is not declared")

    has_context = isinstance(document.get("Context"), Mapping)

    for state_name, events in states.items():
        if not state_name:
            errors.append("State with empty name")
        if not isinstance(events, Mapping):
            errors.append(f"State '{state_name}' must map events to handlers")
            continue

        for event_name, handlers in events.items():
            where = f"{state_name}.{event_name}"
            if not event_name:
                errors.append(f"State '{state_name}' has an event with an empty name")

            if not isinstance(handlers, list):
                handlers = [handlers]

            for index, handler in enumerate(handlers):
                handler_errors, handler_warnings = _validate_handler(
                    handler, f"{where}[{index}]", states, has_context
                )
                errors.extend(handler_errors)
                warnings.extend(handler_warnings)

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _validate_handler(
    handler: Any, where: str, states: Mapping[str, Any], has_context: bool = True
) -> tuple[list[str], list[str]]:
    """Validate a single handler."""
    errors: list[str] = []
    warnings: list[str] = []

    if not isinstance(handler, Mapping):
        errors.append(f"{where}: handler must be an object")
        return errors, warnings

    unknown_keys = [key for key in handler if key not in HANDLER_KEYS]
    if unknown_keys:
        warnings.append(f"{where}: ignoring keys {', '.join(sorted(unknown_keys))}")

    transition = handler.get("Transition")
    if transition is not None:
        if not isinstance(transition, str) or not transition:
            errors.append(f"{where}: Transition must be a state name")
        elif transition not in states:
            errors.append(f"{where}: Transition to unknown state '{transition}'")

    if "Condition" in handler:
        cond_errors, cond_warnings = _validate_condition(handler["Condition"], f"{where}.Condition")
        errors.extend(cond_errors)
        warnings.extend(cond_warnings)

    actions = handler.get("Actions")
    if actions is not None:
        if not isinstance(actions, list):
            actions = [actions]
        for index, bag in enumerate(actions):
            errors.extend(
                _validate_action_bag(bag, f"{where}.Actions[{index}]", warnings, has_context)
            )

    return errors, warnings


def _validate_condition(node: Any, where: str) -> tuple[list[str], list[str]]:
    """Walk a condition tree, flagging ambiguous and unknown nodes."""
    errors: list[str] = []
    warnings: list[str] = []

    if isinstance(node, list):
        for index, item in enumerate(node):
            e, w = _validate_condition(item, f"{where}[{index}]")
            errors.extend(e)
            warnings.extend(w)
        return errors, warnings

    if not isinstance(node, Mapping):
        return errors, warnings

    decoded = decode_node(node)
    if decoded.is_ambiguous:
        errors.append(f"{where}: node has several operators ({', '.join(decoded.keys)})")
        return errors, warnings
    if decoded.operator is None:
        warnings.append(f"{where}: no recognized operator in {sorted(node)}")
        return errors, warnings

    op = decoded.operator
    operand = decoded.operand
    child = f"{where}.{op.value}"

    if op is Operator.EQ:
        if not isinstance(operand, list) or not operand:
            errors.append(f"{child}: expects a list")
            return errors, warnings
        if any(isinstance(item, list) for item in operand):
            warnings.append(f"{child}: arrays can't be compared, node is always false")
    elif op in COMPARISON_OPERATORS or op in (Operator.CONTAINS, Operator.PUSHUNIQUE):
        if not isinstance(operand, list) or len(operand) < 2:
            errors.append(f"{child}: expects two operands")
            return errors, warnings
    elif op in ARRAY_OPERATORS:
        if isinstance(operand, Mapping):
            if "in" not in operand or "?" not in operand:
                errors.append(f"{child}: expects {{'in': ..., '?': ...}}")
                return errors, warnings
            operand = [operand["in"], operand["?"]]
        elif not isinstance(operand, list) or len(operand) != 2:
            errors.append(f"{child}: expects [array, condition]")
            return errors, warnings
    elif op in (Operator.AND, Operator.OR) and not isinstance(operand, list):
        errors.append(f"{child}: expects a list")
        return errors, warnings

    e, w = _validate_condition(operand, child)
    errors.extend(e)
    warnings.extend(w)
    return errors, warnings


def _validate_action_bag(
    bag: Any, where: str, warnings: list[str], has_context: bool = True
) -> list[str]:
    """Validate one action bag. Unknown keys are warnings."""
    errors: list[str] = []

    if not isinstance(bag, Mapping):
        errors.append(f"{where}: action bag must be an object")
        return errors

    for key, operand in bag.items():
        op = decode_action(key)
        if op is None:
            warnings.append(f"{where}: unknown action '{key}'")
            continue

        if op in (ActionOperator.INC, ActionOperator.DEC):
            ok = isinstance(operand, str) or (
                isinstance(operand, list) and len(operand) == 2 and isinstance(operand[0], str)
            )
        elif op is ActionOperator.MUL:
            ok = isinstance(operand, list) and len(operand) in (2, 3)
        elif op is ActionOperator.RESET:
            ok = isinstance(operand, str)
        else:
            ok = isinstance(operand, list) and len(operand) == 2 and isinstance(operand[0], str)

        if not ok:
            errors.append(f"{where}: malformed operand for {key}")
        elif op is ActionOperator.RESET and not has_context:
            errors.append(f"{where}: $reset needs a Context to restore from")

    return errors
