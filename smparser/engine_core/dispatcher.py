"""
Event Dispatcher - runs one event through a state machine.

    handle_event(definition, "Start", "Kill", context, timers, timestamp, value=event)
        -> EventResult(state="Success", context=context)

Design principles:
- Single point where handlers are selected and applied
- First handler whose condition passes wins; later handlers are skipped
- Context and Timer Registry are mutated in place (caller-owned)
- Never reads a clock: `$after` only sees the timestamp passed in
"""

from __future__ import annotations
from collections import ChainMap
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from typing import Any

from ..log import LogFunction, engine_logger
from .definition import (
    EventHandler,
    StateMachineDefinition,
    TIMER_EVENT,
    load_definition,
)
from .actions import ActionExecutor
from .errors import EvaluationError, UnknownStateError
from .expression import ExpressionEvaluator
from .options import ActionOptions, EvaluationOptions, PushUniqueFunction
from .resolution import VariableResolver, PathResolver
from .timers import Timer

EVENT_VALUE_KEY = "Value"


@dataclass
class EventResult:
    """Outcome of a dispatch."""
    state: str
    context: MutableMapping[str, Any]
    previous_state: str
    handled: bool = False
    event_key: str | None = None
    handler_index: int | None = None

    @property
    def transitioned(self) -> bool:
        return self.state != self.previous_state


class EventDispatcher:
    """
    Dispatches events against state machine definitions.

    Stateless apart from the collaborators it was built with; all session
    data (state, context, timers) is passed in on every call.
    """

    def __init__(
        self,
        resolver: VariableResolver | None = None,
        logger: LogFunction | None = None,
        push_unique: PushUniqueFunction | None = None,
    ):
        self.resolver = resolver or PathResolver()
        self.logger = logger or engine_logger()
        self.push_unique = push_unique
        self.evaluator = ExpressionEvaluator()
        self.executor = ActionExecutor()

    def dispatch(
        self,
        definition: StateMachineDefinition | Mapping[str, Any],
        current_state: str,
        event_name: str,
        context: MutableMapping[str, Any],
        timers: list[Timer] | None = None,
        event_timestamp: float | None = None,
        value: Any = None,
    ) -> EventResult:
        """
        Dispatch one event.

        Args:
            definition: State machine document or typed definition
            current_state: State the machine is in
            event_name: Incoming event ("$timer" for timer ticks)
            context: Session context, mutated in place
            timers: Session Timer Registry, mutated in place
            event_timestamp: Event time in seconds, used by $after
            value: Event payload, visible as "$Value" while handling

        Returns:
            EventResult with the next state and the context

        Malformed handlers anywhere in the document are skipped and reported
        under "validation"; they never stop dispatch in another state.

        Raises:
            DefinitionError: if the document has no States object
            UnknownStateError: if current_state is not declared
            EvaluationError: if context is missing
            MissingOriginalContextError: if a selected handler uses $reset
                and the definition has no Context
        """
        log = self.logger
        machine = load_definition(definition, on_error=lambda message: log("validation", message))

        if context is None:
            raise EvaluationError("Context is missing")

        if not machine.has_state(current_state):
            raise UnknownStateError(current_state)

        unchanged = EventResult(state=current_state, context=context, previous_state=current_state)

        selected = machine.select_handlers(current_state, event_name)
        if selected is None:
            log("disregard-event", f"{current_state} has no listeners for {event_name}")
            return unchanged

        event_key, handlers = selected
        event_layer = {EVENT_VALUE_KEY: value}
        constants = machine.constants or {}
        read_scope = ChainMap(context, event_layer, constants)

        for index, handler in enumerate(handlers):
            root_path = f"{current_state}.{event_key}[{index}]"

            if not self._condition_passes(handler, read_scope, root_path, timers, event_timestamp):
                continue

            action_options = ActionOptions(
                resolver=self.resolver,
                logger=log,
                original_context=machine.context,
                scope=ChainMap(event_layer, constants),
            )
            self.executor.apply_all(handler.actions, context, action_options)

            state = current_state
            if handler.transition is not None:
                state = handler.transition
                log("transition", f"{current_state} -> {state} on {event_name}")
                if timers is not None:
                    # Windows belong to the state being left.
                    timers.clear()

            return EventResult(
                state=state,
                context=context,
                handled=True,
                event_key=event_key,
                handler_index=index,
                previous_state=current_state,
            )

        return unchanged

    def _condition_passes(
        self,
        handler: EventHandler,
        scope: Mapping[str, Any],
        root_path: str,
        timers: list[Timer] | None,
        event_timestamp: float | None,
    ) -> bool:
        if not handler.has_condition:
            return True

        options = EvaluationOptions(
            resolver=self.resolver,
            path=f"{root_path}.Condition",
            event_timestamp=event_timestamp,
            logger=self.logger,
            timers=timers,
            push_unique=self.push_unique,
        )
        return bool(self.evaluator.evaluate(handler.condition, scope, options))


def handle_event(
    definition: StateMachineDefinition | Mapping[str, Any],
    current_state: str,
    event_name: str,
    context: MutableMapping[str, Any],
    timers: list[Timer] | None = None,
    event_timestamp: float | None = None,
    *,
    value: Any = None,
    resolver: VariableResolver | None = None,
    logger: LogFunction | None = None,
    push_unique: PushUniqueFunction | None = None,
) -> EventResult:
    """Dispatch one event with a one-off dispatcher. See EventDispatcher.dispatch."""
    dispatcher = EventDispatcher(resolver=resolver, logger=logger, push_unique=push_unique)
    return dispatcher.dispatch(
        definition, current_state, event_name, context, timers, event_timestamp, value
    )


def tick(
    definition: StateMachineDefinition | Mapping[str, Any],
    current_state: str,
    context: MutableMapping[str, Any],
    timers: list[Timer] | None,
    event_timestamp: float,
    **kwargs: Any,
) -> EventResult:
    """Dispatch a "$timer" tick."""
    return handle_event(
        definition, current_state, TIMER_EVENT, context, timers, event_timestamp, **kwargs
    )
