"""
Input validation for user-supplied questions and parameters.

Everything that reaches search or generation passes through here first;
InputValidationError is the only error the answering path raises to its
callers.
"""

import re
from typing import Optional

MAX_QUESTION_LENGTH = 1000

DOCUMENT_CODE_PATTERN = re.compile(r"^[A-Za-z]{1,10}$")


class InputValidationError(ValueError):
    """Raised when input validation fails."""

    pass


def sanitize_string(value: str, allow_newlines: bool = True) -> str:
    """Remove control characters, keeping tabs and (optionally) newlines."""
    if not isinstance(value, str):
        return str(value)

    allowed_controls = {"\t"}
    if allow_newlines:
        allowed_controls.update({"\n", "\r"})

    return "".join(c for c in value if ord(c) >= 32 or c in allowed_controls)


def validate_search_query(
    query: str,
    max_length: int = MAX_QUESTION_LENGTH,
    min_length: int = 1,
) -> str:
    """
    Validate and sanitize a question.

    Args:
        query: The question to validate
        max_length: Maximum allowed length
        min_length: Minimum allowed length

    Returns:
        Sanitized question

    Raises:
        InputValidationError: If validation fails
    """
    if not isinstance(query, str):
        raise InputValidationError("Question must be a string")

    query = sanitize_string(query).strip()

    if len(query) < min_length:
        raise InputValidationError(f"Question too short (min {min_length} characters)")

    if len(query) > max_length:
        raise InputValidationError(f"Question too long (max {max_length} characters)")

    return query


def validate_document_code(code: Optional[str]) -> Optional[str]:
    """
    Validate a document acronym such as CFW or cm.

    Returns:
        The uppercased code, or None when no code was given
    """
    if code is None:
        return None
    if not isinstance(code, str) or not DOCUMENT_CODE_PATTERN.match(code.strip()):
        raise InputValidationError(f"Invalid document code: {code!r}")
    return code.strip().upper()


def validate_integer_range(
    value: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
    name: str = "value",
) -> int:
    """
    Validate an integer is within a range.

    Raises:
        InputValidationError: If validation fails
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputValidationError(f"{name} must be an integer")

    if min_val is not None and value < min_val:
        raise InputValidationError(f"{name} must be >= {min_val}")

    if max_val is not None and value > max_val:
        raise InputValidationError(f"{name} must be <= {max_val}")

    return value
