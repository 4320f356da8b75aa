"""
Pydantic Schemas for API - Request/response models for OpenAPI.

These models define the contract between API clients and the engine.

Error Codes:
- SESSION_NOT_FOUND: Session does not exist or has ended
- UNKNOWN_STATE: The session or request names an undeclared state
- INVALID_DEFINITION: State machine document failed validation
- VALIDATION_ERROR: Request body is malformed
- INTERNAL_ERROR: Unexpected engine failure
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field


# =============================================================================
# Enums
# =============================================================================

class SessionStatus(str, Enum):
    """Session status values."""
    ACTIVE = "active"
    ENDED = "ended"


class ErrorCode(str, Enum):
    """Structured error codes."""
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    UNKNOWN_STATE = "UNKNOWN_STATE"
    INVALID_DEFINITION = "INVALID_DEFINITION"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class TimerInfo(BaseModel):
    """An active `$after` window."""
    path: str
    start_time: float = Field(alias="startTime")
    end_time: float = Field(alias="endTime")

    model_config = {"populate_by_name": True}


class LogEntry(BaseModel):
    """One logger sink entry captured during evaluation."""
    category: str
    message: str


# =============================================================================
# Requests
# =============================================================================

class CreateSessionRequest(BaseModel):
    """Request to start a session."""
    definition: dict[str, Any] = Field(..., description="State machine document")
    initial_state: str = Field("Start", min_length=1, description="State to start in")
    context: Optional[dict[str, Any]] = Field(
        None, description="Starting context (defaults to the definition's Context)"
    )
    metadata: dict[str, Any] = Field(default_factory=dict)


class DispatchEventRequest(BaseModel):
    """Request to dispatch an event against a session."""
    event_name: str = Field(..., min_length=1, description="Event name")
    value: Any = Field(None, description="Event payload, visible as $Value")
    timestamp: Optional[float] = Field(
        None, description="Event time in seconds (defaults to server time)"
    )


class TickRequest(BaseModel):
    """Request to drive a $timer tick."""
    timestamp: Optional[float] = Field(None, description="Tick time in seconds")


class EvaluateRequest(BaseModel):
    """Request to evaluate a condition tree outside any session."""
    condition: Any = Field(..., description="Condition tree")
    context: dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[float] = None
    timers: list[TimerInfo] = Field(default_factory=list)
    trace: bool = Field(False, description="Return visit/trace log entries")


class ValidateRequest(BaseModel):
    """Request to validate a state machine document."""
    definition: Any = Field(..., description="State machine document")
    initial_state: str = Field("Start", min_length=1)


# =============================================================================
# Responses
# =============================================================================

class SessionResponse(BaseModel):
    """Session status and data."""
    session_id: str
    status: SessionStatus
    state: str
    context: dict[str, Any]
    timers: list[TimerInfo] = Field(default_factory=list)
    event_count: int = 0
    created_at: float
    last_event_at: Optional[float] = None


class DispatchResponse(BaseModel):
    """Outcome of dispatching an event."""
    session_id: str
    previous_state: str
    state: str
    handled: bool
    transitioned: bool
    event_key: Optional[str] = None
    handler_index: Optional[int] = None
    context: dict[str, Any]
    timers: list[TimerInfo] = Field(default_factory=list)


class EvaluateResponse(BaseModel):
    """Outcome of evaluating a condition tree."""
    result: Any
    timers: list[TimerInfo] = Field(default_factory=list)
    log: list[LogEntry] = Field(default_factory=list)


class ValidateResponse(BaseModel):
    """Definition validation result."""
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SessionListResponse(BaseModel):
    """Active sessions."""
    sessions: list[str]
    count: int


class EndSessionResponse(BaseModel):
    """Result of ending a session."""
    success: bool
    session_id: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    service: str
    version: str


class ErrorResponse(BaseModel):
    """Structured error."""
    error: str
    error_code: ErrorCode
    details: Optional[dict[str, Any]] = None
