"""
API Module - HTTP interface.

Exposes the engine via REST API. Clients:
1. Create a session from a state machine definition
2. Dispatch events (and periodic $timer ticks) against it
3. Read back state, context and active timers
4. End the session

All state is session-scoped and in-memory.
"""

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
from .service import APIService

__all__ = [
    # Requests
    "CreateSessionRequest",
    "DispatchEventRequest",
    "TickRequest",
    "EvaluateRequest",
    "ValidateRequest",
    # Responses
    "SessionResponse",
    "DispatchResponse",
    "EvaluateResponse",
    "ValidateResponse",
    "ErrorResponse",
    # Shared
    "TimerInfo",
    "LogEntry",
    # Enums
    "SessionStatus",
    "ErrorCode",
    # Service
    "APIService",
]
