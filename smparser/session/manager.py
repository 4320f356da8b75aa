"""
Session Manager - Creates and manages state machine sessions.

LIFECYCLE:
1. Caller submits a definition → validated, session created
2. Session starts in the initial state with a copy of the definition's Context
3. Events are dispatched against the session:
   - conditions see the context, the event's Value and Constants
   - actions mutate the session context
   - `$after` windows live in the session's Timer Registry
4. Caller drives "$timer" ticks periodically
5. Session ends → removed from memory

PERSISTENCE RULES:
- NO database
- Sessions are in-memory only
- A session's context and timers can be exported with `snapshot()`

CONCURRENCY:
- One dispatch in flight per session (per-session lock)
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
import logging
import threading
import time
import uuid

from ..engine_core import (
    DEFAULT_INITIAL_STATE,
    EventDispatcher,
    EventResult,
    SessionNotFoundError,
    StateMachineDefinition,
    TIMER_EVENT,
    Timer,
    UnknownStateError,
)
from ..engine_core.options import PushUniqueFunction
from ..engine_core.resolution import clone_value
from ..log import LogFunction, engine_logger
from ..spec_schema import validate_definition

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """State of a session."""
    ACTIVE = "active"
    ENDED = "ended"


@dataclass
class Session:
    """
    An in-memory state machine session.

    Contains:
    - The definition being run
    - Current state name, context and Timer Registry
    - Session metadata
    """
    session_id: str
    definition: StateMachineDefinition
    created_at: float

    state: str = DEFAULT_INITIAL_STATE
    context: dict[str, Any] = field(default_factory=dict)
    timers: list[Timer] = field(default_factory=list)

    status: SessionState = SessionState.ACTIVE
    event_count: int = 0
    last_event_at: float | None = None
    updated_at: float | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def is_active(self) -> bool:
        """Check if session is still active."""
        return self.status is SessionState.ACTIVE

    def snapshot(self) -> dict[str, Any]:
        """Export the session's mutable data."""
        return {
            "state": self.state,
            "context": clone_value(self.context),
            "timers": [timer.to_dict() for timer in self.timers],
        }


class SessionManager:
    """
    Manages state machine sessions.

    Responsibilities:
    - Create sessions from definitions
    - Dispatch events and timer ticks, one at a time per session
    - Clean up stale sessions

    No persistence - sessions are in-memory only.
    """

    def __init__(
        self,
        logger: LogFunction | None = None,
        push_unique: PushUniqueFunction | None = None,
    ):
        self._sessions: dict[str, Session] = {}
        self._dispatcher = EventDispatcher(logger=logger or engine_logger(), push_unique=push_unique)

    def create_session(
        self,
        definition: Any,
        initial_state: str = DEFAULT_INITIAL_STATE,
        context: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Session:
        """
        Create a new session.

        Args:
            definition: Decoded state machine document
            initial_state: State the session starts in
            context: Optional starting context (defaults to the definition's Context)
            metadata: Free-form data kept with the session

        Returns:
            New Session

        Raises:
            DefinitionValidationError: if the document has errors
            UnknownStateError: if initial_state is not declared
        """
        if isinstance(definition, StateMachineDefinition):
            machine = definition
        else:
            validate_definition(definition, initial_state=initial_state).raise_for_errors()
            machine = StateMachineDefinition.from_dict(definition)

        if not machine.has_state(initial_state):
            raise UnknownStateError(initial_state)

        session = Session(
            session_id=str(uuid.uuid4()),
            definition=machine,
            created_at=time.time(),
            state=initial_state,
            context=clone_value(context) if context is not None else machine.initial_context(),
            metadata=metadata or {},
        )

        self._sessions[session.session_id] = session
        logger.info("Created session %s in state %s", session.session_id, initial_state)
        return session

    def get_session(self, session_id: str) -> Session | None:
        """Get a session by ID."""
        return self._sessions.get(session_id)

    def require_session(self, session_id: str) -> Session:
        """Get a session by ID or raise SessionNotFoundError."""
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def dispatch(
        self,
        session_id: str,
        event_name: str,
        value: Any = None,
        timestamp: float | None = None,
    ) -> EventResult:
        """
        Dispatch an event against a session.

        The timestamp defaults to the current wall-clock time.
        """
        session = self.require_session(session_id)
        event_time = time.time() if timestamp is None else timestamp

        with session._lock:
            result = self._dispatcher.dispatch(
                session.definition,
                session.state,
                event_name,
                session.context,
                session.timers,
                event_time,
                value,
            )
            session.state = result.state
            session.event_count += 1
            session.last_event_at = event_time
            session.updated_at = time.time()

        if result.transitioned:
            logger.info(
                "Session %s: %s -> %s on %s",
                session_id, result.previous_state, result.state, event_name,
            )
        return result

    def tick(self, session_id: str, timestamp: float | None = None) -> EventResult:
        """Dispatch a "$timer" tick against a session."""
        return self.dispatch(session_id, TIMER_EVENT, timestamp=timestamp)

    def end_session(self, session_id: str) -> bool:
        """
        End a session and clean up.

        The session is removed from memory.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False

        with session._lock:
            session.status = SessionState.ENDED
            session.timers.clear()
        logger.info("Ended session %s", session_id)
        return True

    def list_active_sessions(self) -> list[str]:
        """List IDs of active sessions."""
        return [
            sid for sid, session in self._sessions.items()
            if session.is_active()
        ]

    def cleanup_stale_sessions(self, max_age_seconds: float = 3600, now: float | None = None) -> int:
        """
        End sessions untouched for max_age_seconds of wall-clock time.

        Event timestamps are caller time and are not consulted.

        Returns the number of sessions removed.
        """
        current_time = time.time() if now is None else now
        to_remove = []

        for session_id, session in self._sessions.items():
            last_seen = session.updated_at or session.created_at
            if current_time - last_seen > max_age_seconds:
                to_remove.append(session_id)

        for session_id in to_remove:
            self.end_session(session_id)

        return len(to_remove)
