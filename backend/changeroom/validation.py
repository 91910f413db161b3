from __future__ import annotations

from typing import Any, Iterable

from .errors import ValidationError

MAX_BARCODE_LENGTH = 64


def normalize_barcode(value: Any, *, field: str = "barcode") -> str:
    """
    Scanner and keyboard input are treated identically: a non-empty string.

    Surrounding whitespace (trailing CR/LF from keyboard-wedge scanners) is
    stripped; nothing else is rewritten.
    """
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if not stripped:
        raise ValidationError(f"{field} is required")
    if len(stripped) > MAX_BARCODE_LENGTH:
        raise ValidationError(f"{field} must be at most {MAX_BARCODE_LENGTH} characters")
    return stripped


def require_choice(value: Any, choices: Iterable[str], *, field: str) -> str:
    choices = tuple(choices)
    if not isinstance(value, str) or value.strip().lower() not in choices:
        raise ValidationError(f"{field} must be one of: {', '.join(choices)}")
    return value.strip().lower()


def parse_int(value: Any, *, field: str) -> int:
    """Strict integer coercion for JSON bodies (no bools, floats or '12.5')."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    raise ValidationError(f"{field} must be an integer")
