"""
API Service - Business logic layer between API and engine.

The service:
1. Translates API requests to engine calls
2. Manages sessions
3. Formats engine results as response schemas

This layer is framework-agnostic (can be used with FastAPI, Flask, etc.)
"""

from __future__ import annotations
from dataclasses import dataclass, field

from .schemas import (
    # Requests
    CreateSessionRequest,
    DispatchEventRequest,
    TickRequest,
    EvaluateRequest,
    ValidateRequest,
    # Responses
    SessionResponse,
    DispatchResponse,
    EvaluateResponse,
    ValidateResponse,
    ErrorResponse,
    # Shared
    TimerInfo,
    LogEntry,
    # Enums
    SessionStatus,
    ErrorCode,
)
from ..engine_core import EvaluationOptions, EventResult, Timer, UnknownStateError, evaluate
from ..engine_core.resolution import clone_value
from ..log import collecting_logger, engine_logger
from ..session import SessionManager, Session
from ..spec_schema import validate_definition, DefinitionValidationError


def _timer_infos(timers: list[Timer]) -> list[TimerInfo]:
    return [
        TimerInfo(path=t.path, start_time=t.start_time, end_time=t.end_time)
        for t in timers
    ]


@dataclass
class APIService:
    """
    Main API service.

    Usage:
        service = APIService()

        session = service.create_session(CreateSessionRequest(definition=doc))
        result = service.dispatch_event(session.session_id, DispatchEventRequest(event_name="Kill"))
    """
    session_manager: SessionManager = field(default_factory=SessionManager)

    def create_session(self, request: CreateSessionRequest) -> SessionResponse | ErrorResponse:
        """Create a new session from a definition."""
        try:
            session = self.session_manager.create_session(
                definition=request.definition,
                initial_state=request.initial_state,
                context=request.context,
                metadata=request.metadata,
            )
        except DefinitionValidationError as e:
            return ErrorResponse(
                error=str(e),
                error_code=ErrorCode.INVALID_DEFINITION,
                details={"errors": e.errors},
            )
        except UnknownStateError as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.UNKNOWN_STATE)

        return self._session_to_response(session)

    def get_session(self, session_id: str) -> SessionResponse | ErrorResponse:
        """Get session status."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)
        return self._session_to_response(session)

    def end_session(self, session_id: str) -> bool:
        """End a session."""
        return self.session_manager.end_session(session_id)

    def list_sessions(self) -> list[str]:
        """List active session IDs."""
        return self.session_manager.list_active_sessions()

    def dispatch_event(
        self, session_id: str, request: DispatchEventRequest
    ) -> DispatchResponse | ErrorResponse:
        """Dispatch an event against a session."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)

        try:
            result = self.session_manager.dispatch(
                session_id,
                request.event_name,
                value=request.value,
                timestamp=request.timestamp,
            )
        except UnknownStateError as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.UNKNOWN_STATE)

        return self._result_to_response(session, result)

    def tick(self, session_id: str, request: TickRequest) -> DispatchResponse | ErrorResponse:
        """Drive a $timer tick against a session."""
        session = self.session_manager.get_session(session_id)
        if not session:
            return self._not_found(session_id)

        try:
            result = self.session_manager.tick(session_id, timestamp=request.timestamp)
        except UnknownStateError as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.UNKNOWN_STATE)

        return self._result_to_response(session, result)

    def evaluate(self, request: EvaluateRequest) -> EvaluateResponse:
        """Evaluate a condition tree against a context, outside any session."""
        entries: list[tuple[str, str]] = []
        sink = engine_logger()
        timers = [Timer(path=t.path, start_time=t.start_time, end_time=t.end_time) for t in request.timers]

        options = EvaluationOptions(
            event_timestamp=request.timestamp,
            timers=timers,
            logger=collecting_logger(entries, forward=sink) if request.trace else sink,
        )
        result = evaluate(request.condition, clone_value(request.context), options)

        return EvaluateResponse(
            result=result,
            timers=_timer_infos(timers),
            log=[LogEntry(category=c, message=m) for c, m in entries],
        )

    def validate(self, request: ValidateRequest) -> ValidateResponse:
        """Validate a state machine document."""
        result = validate_definition(request.definition, initial_state=request.initial_state)
        return ValidateResponse(
            valid=result.valid,
            errors=result.errors,
            warnings=result.warnings,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _not_found(self, session_id: str) -> ErrorResponse:
        return ErrorResponse(
            error=f"Session not found: {session_id}",
            error_code=ErrorCode.SESSION_NOT_FOUND,
        )

    def _session_to_response(self, session: Session) -> SessionResponse:
        """Convert session to response format."""
        return SessionResponse(
            session_id=session.session_id,
            status=SessionStatus(session.status.value),
            state=session.state,
            context=clone_value(session.context),
            timers=_timer_infos(session.timers),
            event_count=session.event_count,
            created_at=session.created_at,
            last_event_at=session.last_event_at,
        )

    def _result_to_response(self, session: Session, result: EventResult) -> DispatchResponse:
        return DispatchResponse(
            session_id=session.session_id,
            previous_state=result.previous_state,
            state=result.state,
            handled=result.handled,
            transitioned=result.transitioned,
            event_key=result.event_key,
            handler_index=result.handler_index,
            context=clone_value(dict(result.context)),
            timers=_timer_infos(session.timers),
        )
