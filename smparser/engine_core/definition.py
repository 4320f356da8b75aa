"""
State Machine Definition - typed view of a state machine document.

A document looks like:

    {
        "Context": {"Kills": 0},
        "Constants": {"Goal": 3},
        "States": {
            "Start": {
                "Kill": [
                    {
                        "Condition": {"$eq": ["$Value.IsTarget", true]},
                        "Actions": {"$inc": "Kills"},
                        "Transition": "Success"
                    }
                ],
                "-": {"Actions": {"$inc": "Ignored"}}
            },
            "Success": {}
        }
    }

Each state maps event names to one handler or an ordered list of
handlers. "-" is the fallback for events the state doesn't list, and
"$timer" is invoked by the caller on periodic ticks.
"""

from __future__ import annotations
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable

from .errors import DefinitionError
from .resolution import clone_value

FALLBACK_EVENT = "-"
TIMER_EVENT = "$timer"
DEFAULT_INITIAL_STATE = "Start"

HANDLER_KEYS = ("Condition", "Actions", "Transition")


@dataclass
class EventHandler:
    """
    One (Condition, Actions, Transition) triple.

    A missing (or null) Condition always passes, missing Actions mutate
    nothing and a missing Transition keeps the current state. Unrecognized keys are kept
    in `extra` and otherwise ignored.
    """
    condition: Any = None
    has_condition: bool = False
    actions: list[Any] = field(default_factory=list)
    transition: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any, where: str = "handler") -> EventHandler:
        if not isinstance(data, Mapping):
            raise DefinitionError(f"{where}: handler must be an object, got {type(data).__name__}")

        actions = data.get("Actions")
        if actions is None:
            actions = []
        elif not isinstance(actions, list):
            actions = [actions]

        transition = data.get("Transition")
        if transition is not None and not isinstance(transition, str):
            raise DefinitionError(f"{where}: Transition must be a state name")

        return cls(
            condition=data.get("Condition"),
            has_condition=data.get("Condition") is not None,
            actions=list(actions),
            transition=transition,
            extra={k: v for k, v in data.items() if k not in HANDLER_KEYS},
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = dict(self.extra)
        if self.has_condition:
            result["Condition"] = self.condition
        if self.actions:
            result["Actions"] = self.actions
        if self.transition is not None:
            result["Transition"] = self.transition
        return result


@dataclass
class StateMachineDefinition:
    """
    A state machine document.

    `context` is the template new sessions start from (and what `$reset`
    restores from); `constants` are read-only values visible to conditions
    and actions. `context_listeners` and `scope` are carried, not
    interpreted.
    """
    states: dict[str, dict[str, list[EventHandler]]]
    context: dict[str, Any] | None = None
    constants: dict[str, Any] | None = None
    context_listeners: Any = None
    scope: str | None = None

    @classmethod
    def from_dict(
        cls,
        data: Any,
        on_error: Callable[[str], None] | None = None,
    ) -> StateMachineDefinition:
        """
        Read a decoded JSON document.

        With `on_error`, malformed states and handlers are reported through
        it and skipped instead of raising.

        Raises:
            DefinitionError: if the document is not a state machine
        """
        if not isinstance(data, Mapping):
            raise DefinitionError("State machine definition must be an object")

        raw_states = data.get("States")
        if not isinstance(raw_states, Mapping):
            raise DefinitionError("State machine definition has no States object")

        states: dict[str, dict[str, list[EventHandler]]] = {}
        for state_name, events in raw_states.items():
            states[state_name] = {}
            if not isinstance(events, Mapping):
                _report(on_error, f"State '{state_name}' must map events to handlers")
                continue

            for event_name, handlers in events.items():
                if not isinstance(handlers, list):
                    handlers = [handlers]

                parsed: list[EventHandler] = []
                for i, h in enumerate(handlers):
                    try:
                        parsed.append(EventHandler.from_dict(h, where=f"{state_name}.{event_name}[{i}]"))
                    except DefinitionError as e:
                        _report(on_error, str(e))
                states[state_name][event_name] = parsed

        context = data.get("Context")
        if context is not None and not isinstance(context, Mapping):
            raise DefinitionError("Context must be an object")

        constants = data.get("Constants")
        if constants is not None and not isinstance(constants, Mapping):
            raise DefinitionError("Constants must be an object")

        return cls(
            states=states,
            context=dict(context) if context is not None else None,
            constants=dict(constants) if constants is not None else None,
            context_listeners=data.get("ContextListeners"),
            scope=data.get("Scope"),
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "States": {
                state: {
                    event: [h.to_dict() for h in handlers]
                    for event, handlers in events.items()
                }
                for state, events in self.states.items()
            }
        }
        if self.context is not None:
            result["Context"] = self.context
        if self.constants is not None:
            result["Constants"] = self.constants
        if self.context_listeners is not None:
            result["ContextListeners"] = self.context_listeners
        if self.scope is not None:
            result["Scope"] = self.scope
        return result

    def has_state(self, state: str) -> bool:
        return state in self.states

    def initial_context(self) -> dict[str, Any]:
        """A fresh copy of the context template."""
        return clone_value(self.context) if self.context is not None else {}

    def select_handlers(self, state: str, event_name: str) -> tuple[str, list[EventHandler]] | None:
        """
        Pick the handler list for an event in a state.

        Returns (matched event key, handlers), falling back to "-", or None
        when the state has neither. The state must exist.
        """
        events = self.states[state]
        if event_name in events:
            return event_name, events[event_name]
        if FALLBACK_EVENT in events:
            return FALLBACK_EVENT, events[FALLBACK_EVENT]
        return None


def _report(on_error: Callable[[str], None] | None, message: str) -> None:
    if on_error is None:
        raise DefinitionError(message)
    on_error(message)


def load_definition(
    data: Any,
    on_error: Callable[[str], None] | None = None,
) -> StateMachineDefinition:
    """Accept either a decoded document or an already-typed definition."""
    if isinstance(data, StateMachineDefinition):
        return data
    return StateMachineDefinition.from_dict(data, on_error=on_error)


# ============================================================================
# Factory functions for building definitions in code
# ============================================================================

def handler(
    condition: Any = None,
    actions: Any = None,
    transition: str | None = None,
) -> dict[str, Any]:
    """Create a handler document; None fields are omitted."""
    result: dict[str, Any] = {}
    if condition is not None:
        result["Condition"] = condition
    if actions is not None:
        result["Actions"] = actions
    if transition is not None:
        result["Transition"] = transition
    return result


def state_machine(
    states: dict[str, Any],
    context: dict[str, Any] | None = None,
    constants: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create a state machine document."""
    result: dict[str, Any] = {"States": states}
    if context is not None:
        result["Context"] = context
    if constants is not None:
        result["Constants"] = constants
    return result
