"""
FastAPI Application - REST API over the state machine engine.

Endpoints:
    POST   /api/v1/sessions                 Create a session from a definition
    GET    /api/v1/sessions                 List active sessions
    GET    /api/v1/sessions/{id}            Get session state, context and timers
    DELETE /api/v1/sessions/{id}            End session
    POST   /api/v1/sessions/{id}/events     Dispatch an event
    POST   /api/v1/sessions/{id}/tick       Drive a $timer tick
    POST   /api/v1/evaluate                 Evaluate a condition tree
    POST   /api/v1/validate                 Validate a definition

All responses are JSON with explicit Pydantic schemas.
"""

from contextlib import asynccontextmanager
from typing import Optional, Union
import os

from ..log import configure_logging

# Environment configuration
SMPARSER_ENV = os.getenv("SMPARSER_ENV", "development")
SMPARSER_LOG_LEVEL = os.getenv("SMPARSER_LOG_LEVEL", "INFO")
SMPARSER_SESSION_TTL = float(os.getenv("SMPARSER_SESSION_TTL", "3600"))
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")

SERVICE_NAME = "smparser"
API_VERSION = "1.0.0"


def create_app(service=None):
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)

    Returns:
        FastAPI application instance
    """
    try:
        from fastapi import FastAPI
        from fastapi.exceptions import RequestValidationError
        from fastapi.middleware.cors import CORSMiddleware
        from fastapi.encoders import jsonable_encoder
        from fastapi.responses import JSONResponse
    except ImportError:
        raise ImportError(
            "FastAPI not installed. Install with: pip install fastapi uvicorn"
        )

    from .service import APIService
    from .schemas import (
        # Request models
        CreateSessionRequest,
        DispatchEventRequest,
        TickRequest,
        EvaluateRequest,
        ValidateRequest,
        # Response models
        SessionResponse,
        DispatchResponse,
        EvaluateResponse,
        ValidateResponse,
        SessionListResponse,
        EndSessionResponse,
        HealthResponse,
        ErrorResponse,
        # Enums
        ErrorCode,
    )
    from ..engine_core import StateMachineError

    @asynccontextmanager
    async def lifespan(app):
        configure_logging(SMPARSER_LOG_LEVEL)
        yield

    app = FastAPI(
        lifespan=lifespan,
        title="State Machine Parser API",
        description="""
Interpreter for JSON state machines: condition trees, action bags and
event dispatch with `$after` timers.

## Sessions

Create a session from a definition, then `POST /events` for each event and
`POST /tick` periodically to drive `$timer` handlers.

## Error Codes

| Code | Description |
|------|-------------|
| `SESSION_NOT_FOUND` | Session does not exist |
| `UNKNOWN_STATE` | State is not declared by the definition |
| `INVALID_DEFINITION` | Definition failed validation |
| `VALIDATION_ERROR` | Request body is malformed |
| `INTERNAL_ERROR` | Unexpected engine failure |
        """,
        version=API_VERSION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    api_service = service or APIService()

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    _STATUS_BY_CODE = {
        ErrorCode.SESSION_NOT_FOUND: 404,
        ErrorCode.UNKNOWN_STATE: 409,
        ErrorCode.INVALID_DEFINITION: 422,
    }

    def error_to_json(error: ErrorResponse) -> JSONResponse:
        return make_error_response(
            error.error_code,
            error.error,
            status_code=_STATUS_BY_CODE.get(error.error_code, 400),
            details=error.details,
        )

    @app.exception_handler(StateMachineError)
    async def state_machine_error_handler(request, exc: StateMachineError):
        return make_error_response(ErrorCode.INTERNAL_ERROR, str(exc), status_code=500)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request, exc: RequestValidationError):
        return make_error_response(
            ErrorCode.VALIDATION_ERROR,
            "Request body is malformed",
            status_code=422,
            details={"errors": jsonable_encoder(exc.errors())},
        )

    # =========================================================================
    # Session Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/sessions",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Create a session from a state machine definition",
    )
    async def create_session(request: CreateSessionRequest) -> Union[SessionResponse, JSONResponse]:
        api_service.session_manager.cleanup_stale_sessions(SMPARSER_SESSION_TTL)
        response = api_service.create_session(request)
        if isinstance(response, ErrorResponse):
            return error_to_json(response)
        return response

    @app.get(
        "/api/v1/sessions",
        response_model=SessionListResponse,
        tags=["Sessions"],
        summary="List active sessions",
    )
    async def list_sessions() -> SessionListResponse:
        sessions = api_service.list_sessions()
        return SessionListResponse(sessions=sessions, count=len(sessions))

    @app.get(
        "/api/v1/sessions/{session_id}",
        response_model=SessionResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Get session state",
    )
    async def get_session(session_id: str) -> Union[SessionResponse, JSONResponse]:
        response = api_service.get_session(session_id)
        if isinstance(response, ErrorResponse):
            return error_to_json(response)
        return response

    @app.delete(
        "/api/v1/sessions/{session_id}",
        response_model=EndSessionResponse,
        tags=["Sessions"],
        summary="End a session",
    )
    async def end_session(session_id: str) -> EndSessionResponse:
        success = api_service.end_session(session_id)
        return EndSessionResponse(success=success, session_id=session_id)

    @app.post(
        "/api/v1/sessions/{session_id}/events",
        response_model=DispatchResponse,
        responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Dispatch an event",
    )
    async def dispatch_event(
        session_id: str, request: DispatchEventRequest
    ) -> Union[DispatchResponse, JSONResponse]:
        response = api_service.dispatch_event(session_id, request)
        if isinstance(response, ErrorResponse):
            return error_to_json(response)
        return response

    @app.post(
        "/api/v1/sessions/{session_id}/tick",
        response_model=DispatchResponse,
        responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
        tags=["Sessions"],
        summary="Drive a $timer tick",
    )
    async def tick(session_id: str, request: TickRequest) -> Union[DispatchResponse, JSONResponse]:
        response = api_service.tick(session_id, request)
        if isinstance(response, ErrorResponse):
            return error_to_json(response)
        return response

    # =========================================================================
    # Stateless Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/evaluate",
        response_model=EvaluateResponse,
        tags=["Engine"],
        summary="Evaluate a condition tree",
    )
    async def evaluate_condition(request: EvaluateRequest) -> EvaluateResponse:
        return api_service.evaluate(request)

    @app.post(
        "/api/v1/validate",
        response_model=ValidateResponse,
        tags=["Engine"],
        summary="Validate a state machine definition",
    )
    async def validate(request: ValidateRequest) -> ValidateResponse:
        return api_service.validate(request)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service=SERVICE_NAME,
            version=API_VERSION,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "State Machine Parser API",
            "version": API_VERSION,
            "environment": SMPARSER_ENV,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn smparser.api.app:app
app = create_app()
