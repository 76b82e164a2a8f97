import datetime
from decimal import Decimal, InvalidOperation

from slotbook.errors import InvalidDuration, ValidationFailed


def require_fields(data, fields):
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationFailed(f'Missing required fields: {", ".join(missing)}')


def parse_int(value, field):
    if isinstance(value, bool):
        raise ValidationFailed(f"{field} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be an integer")


def parse_duration(value):
    if value is None or value == "" or isinstance(value, bool):
        raise InvalidDuration()
    try:
        minutes = int(value)
    except (TypeError, ValueError):
        raise InvalidDuration()
    if minutes <= 0:
        raise InvalidDuration()
    return minutes


def parse_price(value):
    try:
        price = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationFailed("price must be a number")
    if price < 0:
        raise ValidationFailed("price must be zero or greater")
    return price


def parse_date(value, field="date"):
    try:
        return datetime.date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be an ISO date (YYYY-MM-DD)")


def parse_time(value, field):
    try:
        return datetime.time.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{field} must be a time (HH:MM)")


def parse_datetime(value, field="appointmentDate"):
    """
    Parse an ISO-8601 datetime into naive server-local time.

    Offsets such as ``Z`` or ``+03:00`` are converted to the server's local
    zone; appointments are stored without tzinfo.
    """
    if not isinstance(value, str):
        raise ValidationFailed(f"{field} must be an ISO-8601 datetime")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.datetime.fromisoformat(text)
    except ValueError:
        raise ValidationFailed(
            f"{field} must be an ISO-8601 datetime (e.g. 2026-11-20T10:30:00)"
        )
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed
