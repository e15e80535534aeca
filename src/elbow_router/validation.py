"""
Input validation for elbow-router MCP server tool parameters.

Provides reusable validators that produce clear error messages for all
parameters received from LLM callers.
"""

from __future__ import annotations

from typing import Any


# ---------------------------------------------------------------------------
# Validation result
# ---------------------------------------------------------------------------

class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Primitive validators
# ---------------------------------------------------------------------------

def validate_non_empty_string(value: Any, field_name: str) -> str:
    """Ensure *value* is a non-empty string after stripping whitespace."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty string.")
    return value.strip()


def validate_number(
    value: Any,
    field_name: str,
    *,
    min_val: float | None = None,
    max_val: float | None = None,
) -> float:
    """Validate a numeric value and optional range."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ValidationError(
            f"'{field_name}' must be a number, got {type(value).__name__}."
        )
    val = float(value)
    if val != val or val in (float("inf"), float("-inf")):
        raise ValidationError(f"'{field_name}' must be a finite number, got {val}.")
    if min_val is not None and val < min_val:
        raise ValidationError(
            f"'{field_name}' must be >= {min_val}, got {val}."
        )
    if max_val is not None and val > max_val:
        raise ValidationError(
            f"'{field_name}' must be <= {max_val}, got {val}."
        )
    return val


def validate_positive_number(value: Any, field_name: str) -> float:
    """Validate that a number is positive (> 0)."""
    return validate_number(value, field_name, min_val=0.001)


def validate_non_negative_number(value: Any, field_name: str) -> float:
    """Validate that a number is >= 0."""
    return validate_number(value, field_name, min_val=0)


def validate_enum(value: Any, field_name: str, allowed: set[str]) -> str:
    """Validate that a string value is one of the allowed choices (case-insensitive)."""
    if not isinstance(value, str):
        raise ValidationError(
            f"'{field_name}' must be a string, got {type(value).__name__}."
        )
    normalized = value.strip().upper()
    if normalized not in {a.upper() for a in allowed}:
        choices = ", ".join(sorted(allowed))
        raise ValidationError(
            f"'{field_name}' must be one of [{choices}], got '{value}'."
        )
    return normalized


def validate_list(value: Any, field_name: str, *, min_length: int = 0) -> list:
    """Ensure *value* is a list with at least *min_length* items."""
    if not isinstance(value, list):
        raise ValidationError(
            f"'{field_name}' must be a list, got {type(value).__name__}."
        )
    if len(value) < min_length:
        raise ValidationError(
            f"'{field_name}' must have at least {min_length} item(s), got {len(value)}."
        )
    return value


def validate_file_path(value: Any, field_name: str) -> str:
    """Validate that a file path is a non-empty string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"'{field_name}' must be a non-empty file path string.")
    return value.strip()


# ---------------------------------------------------------------------------
# Composite / domain validators
# ---------------------------------------------------------------------------

_SCENE_ACTIONS = {"CREATE", "LIST", "GET_JSON", "IMPORT_JSON", "SAVE", "LOAD", "DELETE"}
_SHAPE_ACTIONS = {"ADD", "UPDATE", "DELETE"}
_ARROW_ACTIONS = {"ADD", "BIND", "UNBIND", "ROUTE"}
_INSPECT_ACTIONS = {"ARROW", "ELEMENTS"}

_SHAPE_TYPES = {"RECTANGLE", "DIAMOND", "ELLIPSE"}
_ENDPOINTS = {"START", "END"}
_ARROWHEADS = {"ARROW", "BAR", "DOT", "TRIANGLE"}


def validate_action(value: Any, tool_name: str, allowed: set[str]) -> str:
    """Validate the action parameter for a tool."""
    if not isinstance(value, str) or not value.strip():
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"'{tool_name}' requires an 'action' parameter. Valid actions: {choices}."
        )
    normalized = value.strip().upper()
    if normalized not in allowed:
        choices = ", ".join(sorted(a.lower() for a in allowed))
        raise ValidationError(
            f"Unknown {tool_name} action '{value}'. Valid actions: {choices}."
        )
    return value.strip().lower()


def validate_shape_type(value: Any) -> str:
    """Validate a shape type name, returned lower-case."""
    return validate_enum(value, "shape_type", _SHAPE_TYPES).lower()


def validate_arrowhead(value: Any, field_name: str) -> str | None:
    """Validate an arrowhead name; an empty string means no arrowhead."""
    if isinstance(value, str) and not value.strip():
        return None
    return validate_enum(value, field_name, _ARROWHEADS).lower()


def validate_start_or_end(value: Any) -> str:
    """Validate an endpoint selector ("start" or "end"), returned lower-case."""
    return validate_enum(value, "start_or_end", _ENDPOINTS).lower()


def validate_point(value: Any, field_name: str) -> tuple[float, float]:
    """Validate an ``[x, y]`` pair of numbers."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ValidationError(f"'{field_name}' must be an [x, y] pair of numbers.")
    return (
        validate_number(value[0], f"{field_name}[0]"),
        validate_number(value[1], f"{field_name}[1]"),
    )


def validate_endpoints(value: Any) -> list[tuple[float, float]]:
    """Validate a list of exactly two ``[x, y]`` points."""
    validate_list(value, "endpoints", min_length=2)
    if len(value) != 2:
        raise ValidationError(
            f"'endpoints' must hold exactly 2 points (start and end), got {len(value)}."
        )
    return [validate_point(p, f"endpoints[{i}]") for i, p in enumerate(value)]


# ---------------------------------------------------------------------------
# Shape dict validators
# ---------------------------------------------------------------------------

def validate_shape_dict(s: dict, index: int) -> None:
    """Validate a single shape dict from the shapes list."""
    if not isinstance(s, dict):
        raise ValidationError(f"Shape at index {index} must be a dict/object.")
    for key in ("x", "y"):
        if key not in s:
            raise ValidationError(f"Shape at index {index} missing required key '{key}'.")
        if not isinstance(s[key], (int, float)) or isinstance(s[key], bool):
            raise ValidationError(f"Shape at index {index}: '{key}' must be a number.")
    for key in ("width", "height"):
        if key in s:
            if not isinstance(s[key], (int, float)) or isinstance(s[key], bool):
                raise ValidationError(f"Shape at index {index}: '{key}' must be a number.")
            if s[key] <= 0:
                raise ValidationError(f"Shape at index {index}: '{key}' must be > 0.")
    if "angle" in s and (not isinstance(s["angle"], (int, float)) or isinstance(s["angle"], bool)):
        raise ValidationError(f"Shape at index {index}: 'angle' must be a number (degrees).")
    if "type" in s:
        if not isinstance(s["type"], str) or s["type"].strip().upper() not in _SHAPE_TYPES:
            choices = ", ".join(sorted(t.lower() for t in _SHAPE_TYPES))
            raise ValidationError(
                f"Shape at index {index}: unknown type '{s['type']}'. "
                f"Valid types: {choices}."
            )
    if "id" in s and (not isinstance(s["id"], str) or not s["id"].strip()):
        raise ValidationError(f"Shape at index {index}: 'id' must be a non-empty string.")


def validate_shapes(value: Any) -> list[dict]:
    """Validate the shapes list for ``shape(action="add")``."""
    validate_list(value, "shapes", min_length=1)
    seen: set[str] = set()
    for i, s in enumerate(value):
        validate_shape_dict(s, i)
        if "id" in s:
            shape_id = s["id"].strip()
            if shape_id in seen:
                raise ValidationError(
                    f"Shape at index {i}: duplicate id '{shape_id}' in this batch."
                )
            seen.add(shape_id)
    return value
