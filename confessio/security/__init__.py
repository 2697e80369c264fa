"""
Input validation for questions and request parameters.
"""

from confessio.security.input_validation import (
    validate_search_query,
    validate_document_code,
    sanitize_string,
    validate_integer_range,
    InputValidationError,
)

__all__ = [
    "validate_search_query",
    "validate_document_code",
    "sanitize_string",
    "validate_integer_range",
    "InputValidationError",
]
