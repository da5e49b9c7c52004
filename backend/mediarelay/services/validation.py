"""Small field validators used by every provider's ``normalize``.

Each helper either returns the cleaned value (or the documented default when
the option is absent) or raises ``ValidationError`` naming the field.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Iterable, TypeVar

from mediarelay.errors import ValidationError

T = TypeVar("T")

_MISSING = object()
_URL_RE = re.compile(r"^https?://\S+$", re.IGNORECASE)


def is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def require_text(value: Any, field: str, *, max_length: int | None = None) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{field} must be under {max_length} characters")
    return value


def optional_text(options: dict[str, Any], field: str, default: str | None = None) -> str | None:
    value = options.get(field)
    if is_blank(value):
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value.strip()


def optional_url(value: Any, field: str) -> str | None:
    if is_blank(value):
        return None
    if not isinstance(value, str) or not _URL_RE.match(value.strip()):
        raise ValidationError(f"{field} must be an http(s) URL")
    return value.strip()


def choice(
    options: dict[str, Any],
    field: str,
    allowed: Iterable[T],
    default: T,
    *,
    coerce: Callable[[Any], T] | None = None,
) -> T:
    allowed = tuple(allowed)
    shown = ", ".join(str(a) for a in allowed)
    value = options.get(field, _MISSING)
    if value is _MISSING or value is None:
        return default
    # coercion must not truncate: 5.7 is not 5
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field} must be one of: {shown}")
    if coerce is not None and not isinstance(value, bool):
        try:
            value = coerce(value)
        except (TypeError, ValueError):
            pass
    if value not in allowed or isinstance(value, bool):
        raise ValidationError(f"{field} must be one of: {shown}")
    return value


def number(
    options: dict[str, Any],
    field: str,
    low: float,
    high: float,
    default: float | int,
    *,
    integer: bool = False,
) -> float | int:
    value = options.get(field, _MISSING)
    if value is _MISSING or value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number")
    if integer:
        if isinstance(value, float) and not value.is_integer():
            raise ValidationError(f"{field} must be an integer")
        value = int(value)
    if value < low or value > high:
        raise ValidationError(f"{field} must be between {low:g} and {high:g}")
    return value


def boolean(options: dict[str, Any], field: str, default: bool) -> bool:
    value = options.get(field, _MISSING)
    if value is _MISSING or value is None:
        return default
    if not isinstance(value, bool):
        raise ValidationError(f"{field} must be true or false")
    return value
