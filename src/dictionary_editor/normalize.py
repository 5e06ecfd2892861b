"""Input normalization helpers shared by the editor modules."""

from __future__ import annotations

from dictionary_editor.exceptions import StaleVersionError, ValidationError


def require_text(value: str | None, field: str) -> str:
    """Return *value* trimmed, or raise ValidationError if it is blank."""
    if value is None or not value.strip():
        raise ValidationError(f"{field} must be provided")
    return value.strip()


def optional_text(value: str | None) -> str | None:
    """Trim *value*; blank becomes None."""
    if value is None:
        return None
    out = value.strip()
    return out or None


def require_int(value: int | None, field: str) -> int:
    if value is None:
        raise ValidationError(f"{field} must be provided")
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer, got {value!r}")
    return value


def optional_int(value: int | None, field: str) -> int | None:
    if value is None:
        return None
    return require_int(value, field)


def check_version(
    label: str, entity_id: str, current: int, expected: int | None
) -> None:
    """Fail fast when the caller edited an older version of the row."""
    if expected is not None and expected != current:
        raise StaleVersionError(
            f"{label} {entity_id!r} is at version {current}, not {expected}"
        )
