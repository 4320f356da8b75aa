"""
Session Module - Manages in-memory state machine sessions.

A session represents one running state machine:
- Created from a validated definition
- Holds the current state, context and Timer Registry
- Receives events and timer ticks
- Destroyed when ended

Sessions are EPHEMERAL:
- No persistence to database
- Export with Session.snapshot() if the caller needs to keep one
"""

from .manager import SessionManager, Session, SessionState

__all__ = [
    "SessionManager",
    "Session",
    "SessionState",
]
