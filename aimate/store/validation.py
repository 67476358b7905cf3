"""Field validation and coercion shared by the resource stores."""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Optional


class ValidationError(ValueError):
    """Raised when a create/update payload is missing or malformed."""


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def require_text(value: Any, field: str) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"Please provide a {field}")
    return text


def require_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    choices = tuple(choices)
    if value not in choices:
        raise ValidationError(
            f"Invalid {field} '{value}'. Expected one of: {', '.join(choices)}"
        )
    return value


def parse_datetime(value: Any, field: str = "date") -> Optional[datetime]:
    """Parse an ISO date or datetime into an aware UTC datetime.

    Accepts None, datetime, date, or ISO-8601 strings (a trailing ``Z`` is allowed).
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        result = value
    elif isinstance(value, date):
        result = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            result = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValidationError(f"Invalid {field}: {value!r}") from exc
    else:
        raise ValidationError(f"Invalid {field}: {value!r}")

    if result.tzinfo is None:
        result = result.replace(tzinfo=timezone.utc)
    return result


def iso_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def coerce_str_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [str(value).strip()]
