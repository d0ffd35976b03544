"""
Utils module - Parameter validation helpers.
"""

from cipherkit.utils.validators import (
    ValidationError,
    validate_bytes,
    validate_exact_length,
    validate_positive_int,
)

__all__ = [
    "ValidationError",
    "validate_bytes",
    "validate_exact_length",
    "validate_positive_int",
]
