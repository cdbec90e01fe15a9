"""Normalization helpers shared by the field merge, registry and validators."""

from datetime import datetime, timezone
from typing import Any, Iterable

# Exactly these values count as "yes" for boolean-ish wizard fields
TRUTHY_FLAG_VALUES = {"true", "YES", "yes"}


def to_text(value: Any) -> str:
    """Return value trimmed if it is a string, else an empty string."""
    return value.strip() if isinstance(value, str) else ""


def has_value(value: Any) -> bool:
    """True when value is a string with non-whitespace content."""
    return isinstance(value, str) and value.strip() != ""


def pick_first_non_empty(*values: Any) -> str:
    """
    Return the first value that is non-empty after trimming, trimmed.

    Non-string values are skipped. Returns "" when nothing qualifies.
    Every precedence chain in the service goes through this function.
    """
    return resolve_with_precedence(values)


def resolve_with_precedence(values: Iterable[Any]) -> str:
    """Iterable form of pick_first_non_empty (highest precedence first)."""
    for value in values:
        if has_value(value):
            return value.strip()
    return ""


def is_truthy_flag(value: Any) -> bool:
    """Truthy flags accept exactly True, "true", "YES" or "yes"."""
    if value is True:
        return True
    return isinstance(value, str) and value in TRUTHY_FLAG_VALUES


def normalize_identity_part(value: Any) -> str:
    """Trim and lowercase one component of a customer identity key."""
    return to_text(value).lower()


def stringify_flag(value: Any) -> str:
    """Serialize a boolean form value the way job fields store it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (e.g. from SQLite) as UTC so they compare with aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
