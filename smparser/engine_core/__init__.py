"""
Engine Core - Condition evaluation, actions and event dispatch.

The engine is the interpreter that:
1. Loads a StateMachineDefinition
2. Evaluates handler conditions against a context
3. Applies action bags to the context
4. Computes the next state
5. Keeps `$after` windows in a caller-owned Timer Registry
"""

from .definition import (
    StateMachineDefinition,
    EventHandler,
    FALLBACK_EVENT,
    TIMER_EVENT,
    DEFAULT_INITIAL_STATE,
    load_definition,
)
from .errors import (
    StateMachineError,
    EvaluationError,
    DefinitionError,
    UnknownStateError,
    MissingOriginalContextError,
    SessionNotFoundError,
)
from .options import EvaluationOptions, ActionOptions
from .resolution import VariableResolver, PathResolver, clone_value
from .timers import Timer
from .expression import ExpressionEvaluator, evaluate
from .actions import ActionExecutor, handle_actions
from .dispatcher import EventDispatcher, EventResult, handle_event, tick

__all__ = [
    "StateMachineDefinition",
    "EventHandler",
    "FALLBACK_EVENT",
    "TIMER_EVENT",
    "DEFAULT_INITIAL_STATE",
    "load_definition",
    "StateMachineError",
    "EvaluationError",
    "DefinitionError",
    "UnknownStateError",
    "MissingOriginalContextError",
    "SessionNotFoundError",
    "EvaluationOptions",
    "ActionOptions",
    "VariableResolver",
    "PathResolver",
    "clone_value",
    "Timer",
    "ExpressionEvaluator",
    "evaluate",
    "ActionExecutor",
    "handle_actions",
    "EventDispatcher",
    "EventResult",
    "handle_event",
    "tick",
]
