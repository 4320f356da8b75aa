"""State machine document schema - structural validation of definitions."""

from .validation import validate_definition, ValidationResult, DefinitionValidationError

__all__ = [
    "validate_definition",
    "ValidationResult",
    "DefinitionValidationError",
]
