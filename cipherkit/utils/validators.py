"""
Validation Utilities
====================

Parameter validation for the cipher engines. Every check here runs before
a cipher context exists and raises ``InvalidParameterError`` naming the
offending field, never truncating or padding the value.
"""

from __future__ import annotations

from typing import Collection, Optional

from cipherkit.core.errors import InvalidParameterError

_VALIDATE_STEP = "validate"


class ValidationError(InvalidParameterError):
    """Raised when validation fails."""
    pass


def validate_bytes(
    value: object,
    field_name: str = "value",
    allow_empty: bool = True,
) -> bytes:
    """
    Validate a binary buffer and return it as ``bytes``.

    Args:
        value: bytes, bytearray or memoryview
        field_name: Name of the field for error messages
        allow_empty: If False, empty buffers are rejected

    Returns:
        The buffer as immutable bytes

    Raises:
        ValidationError: If the value is not binary or is empty when required
    """
    if isinstance(value, str):
        raise ValidationError(_VALIDATE_STEP, f"{field_name} must be bytes, not str")
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise ValidationError(
            _VALIDATE_STEP, f"{field_name} must be bytes, got {type(value).__name__}"
        )

    data = bytes(value)
    if not allow_empty and not data:
        raise ValidationError(_VALIDATE_STEP, f"{field_name} cannot be empty")
    return data


def validate_optional_bytes(value: object, field_name: str = "value") -> Optional[bytes]:
    """Validate an optional buffer; ``None`` passes through."""
    if value is None:
        return None
    return validate_bytes(value, field_name)


def validate_exact_length(data: bytes, expected: int, field_name: str) -> bytes:
    """Reject a buffer whose length is not exactly ``expected``."""
    if len(data) != expected:
        raise ValidationError(
            _VALIDATE_STEP,
            f"{field_name} must be exactly {expected} bytes, got {len(data)}",
        )
    return data


def validate_length_range(
    data: bytes,
    minimum: int,
    maximum: int,
    field_name: str,
) -> bytes:
    """Reject a buffer whose length falls outside ``[minimum, maximum]``."""
    if not minimum <= len(data) <= maximum:
        raise ValidationError(
            _VALIDATE_STEP,
            f"{field_name} must be between {minimum} and {maximum} bytes, got {len(data)}",
        )
    return data


def validate_int_choice(value: object, allowed: Collection[int], field_name: str) -> int:
    """Validate an integer drawn from a fixed set of allowed values."""
    value = validate_positive_int(value, field_name)
    if value not in allowed:
        choices = ", ".join(str(v) for v in sorted(allowed))
        raise ValidationError(
            _VALIDATE_STEP, f"{field_name} must be one of {choices}, got {value}"
        )
    return value


def validate_int_range(value: object, minimum: int, maximum: int, field_name: str) -> int:
    """Validate an integer within ``[minimum, maximum]``."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(_VALIDATE_STEP, f"{field_name} must be an integer")
    if not minimum <= value <= maximum:
        raise ValidationError(
            _VALIDATE_STEP,
            f"{field_name} must be between {minimum} and {maximum}, got {value}",
        )
    return value


def validate_positive_int(value: object, field_name: str = "value") -> int:
    """
    Validate a strictly positive integer.

    ``bool`` is rejected even though it subclasses ``int``.
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(_VALIDATE_STEP, f"{field_name} must be an integer")
    if value <= 0:
        raise ValidationError(_VALIDATE_STEP, f"{field_name} must be positive, got {value}")
    return value
