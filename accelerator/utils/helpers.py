"""Shared parsing helpers used by services and blueprints.

parse_datetime:  ISO-8601 string -> aware datetime (raises ValidationError)
parse_date:      ISO date string -> date (raises ValidationError)
ensure_aware:    naive datetimes read back from SQLite are UTC
to_decimal:      JSON number/string -> Decimal (raises ValidationError)
require_fields:  reject payloads that are missing mandatory keys
require_str:     same, and the values must be strings
"""
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation

from accelerator.core.exceptions import ValidationError


def ensure_aware(value):
    """Attach UTC to a naive datetime; aware values and None pass through."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def parse_datetime(value, field="date"):
    """Parse an ISO-8601 date or datetime into an aware UTC datetime.

    A trailing ``Z`` is accepted. A bare date is taken as midnight UTC.
    Offsets are normalised to UTC. Empty input returns None.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date", details={field: "invalid date"})
    return ensure_aware(parsed).astimezone(timezone.utc)


def parse_date(value, field="date"):
    if value in (None, ""):
        return None
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)", details={field: "invalid date"})


def to_decimal(value, field="amount"):
    """Convert a JSON number or numeric string to Decimal."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", details={field: "invalid number"})
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number", details={field: "invalid number"})
    if not result.is_finite():
        raise ValidationError(f"{field} must be a number", details={field: "invalid number"})
    return result


def require_fields(data, *fields):
    """Raise ValidationError listing every missing or blank field."""
    missing = [f for f in fields if data.get(f) in (None, "") or (isinstance(data.get(f), str) and not data.get(f).strip())]
    if missing:
        raise ValidationError(
            f"Missing required field(s): {', '.join(missing)}",
            details={f: "required" for f in missing},
        )


def require_str(data, *fields):
    """require_fields, plus every listed value must be a string."""
    require_fields(data, *fields)
    wrong = [f for f in fields if not isinstance(data[f], str)]
    if wrong:
        raise ValidationError(
            f"Field(s) must be text: {', '.join(wrong)}",
            details={f: "must be a string" for f in wrong},
        )


def optional_str(data, field, default=""):
    """An optional text field; non-string values are refused."""
    value = data.get(field)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be text", details={field: "must be a string"})
    return value
