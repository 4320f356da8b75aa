"""
Engine errors.

Only usage errors are raised: a missing context, a state that the
definition does not declare, a document that is not a state machine, or a
`$reset` with nothing to reset from. Malformed nodes inside an otherwise
valid document never raise; they evaluate to False (or are skipped) and
are reported through the logger sink.
"""

from __future__ import annotations


class StateMachineError(Exception):
    """Base class for all engine errors."""


class EvaluationError(StateMachineError):
    """Raised when a condition is evaluated without its required inputs."""


class DefinitionError(StateMachineError):
    """Raised when a document cannot be read as a state machine definition."""


class UnknownStateError(StateMachineError):
    """Raised when dispatching from a state the definition does not declare."""

    def __init__(self, state: str):
        self.state = state
        super().__init__(f"Unknown state: '{state}'")


class MissingOriginalContextError(StateMachineError):
    """Raised by `$reset` when no original context snapshot was supplied."""

    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(
            f"Cannot $reset '{reference}': no original context was provided"
        )


class SessionNotFoundError(StateMachineError, KeyError):
    """Raised when a session ID does not exist (or has already ended)."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")

    def __str__(self) -> str:
        return f"Session not found: {self.session_id}"
