from __future__ import annotations

import math

TRUE_LIKE_VALUES = {"1", "true", "yes", "y", "on"}


def as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in TRUE_LIKE_VALUES


def as_int(
    value: str | None,
    *,
    default: int,
    min_value: int | None = None,
    max_value: int | None = None,
) -> int:
    try:
        parsed = int(str(value or "").strip())
    except ValueError:
        parsed = int(default)
    if min_value is not None:
        parsed = max(int(min_value), parsed)
    if max_value is not None:
        parsed = min(int(max_value), parsed)
    return parsed


def as_float(
    value: str | None,
    *,
    default: float,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    try:
        parsed = float(str(value or "").strip())
    except ValueError:
        parsed = float(default)
    if min_value is not None:
        parsed = max(float(min_value), parsed)
    if max_value is not None:
        parsed = min(float(max_value), parsed)
    return parsed


def as_number(value, default: float = 0.0) -> float:
    """Coerce loosely typed numeric input (imports, form payloads) to a finite float."""
    if value is None or isinstance(value, bool):
        return float(default)
    raw = value if isinstance(value, (int, float)) else str(value).strip().replace(",", "")
    try:
        parsed = float(raw)
    except (ValueError, OverflowError):
        return float(default)
    return parsed if math.isfinite(parsed) else float(default)


def as_optional_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except (ValueError, OverflowError):
        return None


def clean_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value != value:
        return ""
    return str(value).strip()
