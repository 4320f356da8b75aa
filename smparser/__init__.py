"""
smparser - JSON State Machine Interpreter

Runs the state machines used to drive game logic: per-state event
handlers with condition trees, action bags and transitions. Provides:
- Condition evaluation (comparisons, boolean logic, array quantifiers)
- Context mutation through action bags
- Event dispatch with time-windowed `$after` conditions
- In-memory sessions and an HTTP API
"""

__version__ = "0.1.0"
