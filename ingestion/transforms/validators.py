"""
Core validators for provider response shapes.
Pure functions - no IO, network, or side effects.
Every decoder fails closed: an unexpected shape or a non-finite number
raises ValidationError instead of producing NaN.
"""

import math
from typing import Any, Dict, Iterable, List, Optional


class ValidationError(ValueError):
    """Raised when data validation fails."""
    pass


def require_mapping(payload: Any, context: str) -> Dict[str, Any]:
    """
    Require a JSON object.

    Args:
        payload: Decoded JSON value
        context: Description used in error messages

    Returns:
        The payload, typed as a dict

    Raises:
        ValidationError: If payload is not an object
    """
    if not isinstance(payload, dict):
        raise ValidationError(f"{context} must be an object, got {type(payload).__name__}")
    return payload


def require_list(payload: Any, context: str, allow_empty: bool = False) -> List[Any]:
    """
    Require a JSON array (non-empty unless allow_empty).

    Raises:
        ValidationError: If payload is not a list or is empty
    """
    if not isinstance(payload, list):
        raise ValidationError(f"{context} must be a list, got {type(payload).__name__}")

    if not payload and not allow_empty:
        raise ValidationError(f"{context} is empty")

    return payload


def require_key(payload: Dict[str, Any], key: str, context: str) -> Any:
    """Return payload[key] or raise ValidationError."""
    if key not in payload or payload[key] is None:
        raise ValidationError(f"{context} missing '{key}'")
    return payload[key]


def first_present(payload: Dict[str, Any], keys: Iterable[str]) -> Any:
    """Return the first non-null value among alternative field names."""
    for key in keys:
        value = payload.get(key)
        if value is not None:
            return value
    return None


def parse_finite(value: Any, field: str) -> float:
    """
    Parse a numeric value that must be finite.

    Accepts numbers and numeric strings (providers often quote numbers).

    Args:
        value: Raw value from the response
        field: Field name for error messages

    Returns:
        Parsed float

    Raises:
        ValidationError: If value is missing, unparseable, or not finite
    """
    if value is None:
        raise ValidationError(f"{field} is missing")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric, got bool")

    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            raise ValidationError(f"{field} is too large for a float")
    elif isinstance(value, str):
        text = value.strip().rstrip('%')
        try:
            number = float(text)
        except ValueError:
            raise ValidationError(f"{field} is not numeric: {value!r}")
    else:
        raise ValidationError(f"{field} must be numeric, got {type(value).__name__}")

    if not math.isfinite(number):
        raise ValidationError(f"{field} must be finite, got {value!r}")

    return number


def parse_optional_finite(
    value: Any,
    field: str,
    missing_markers: Iterable[str] = ()
) -> Optional[float]:
    """
    Parse a value that may be legitimately absent.

    None and the provider's documented missing markers map to None;
    anything else must parse as a finite number.

    Raises:
        ValidationError: If value is present but unparseable or not finite
    """
    if value is None:
        return None

    if isinstance(value, str) and value.strip() in set(missing_markers):
        return None

    return parse_finite(value, field)


def parse_positive(value: Any, field: str) -> float:
    """Parse a finite, strictly positive value (prices)."""
    number = parse_finite(value, field)
    if number <= 0:
        raise ValidationError(f"{field} must be positive, got {number}")
    return number


def check_label_uniqueness(labels: List[str], context: str) -> None:
    """
    Check that series labels are unique.

    Raises:
        ValidationError: If a label appears more than once
    """
    seen = set()
    for label in labels:
        if label in seen:
            raise ValidationError(f"{context}: duplicate label {label}")
        seen.add(label)
