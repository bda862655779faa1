"""Lecture et validation des données reçues par l'API."""
from datetime import date, datetime, time

from flask import request

from errors import ValidationError
from utils import to_naive_utc


def get_json():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("A JSON object body is required", field="body")
    return data


def require(data, field):
    value = data.get(field)
    if value is None or value == "":
        raise ValidationError(f"'{field}' is required", field=field)
    return value


def parse_datetime(value, field):
    if isinstance(value, datetime):
        return to_naive_utc(value)
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f"Invalid datetime for '{field}'. Expected ISO 8601", field=field)
    return to_naive_utc(parsed)


def parse_date(value, field):
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    try:
        return datetime.strptime(str(value), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date format for '{field}'. Expected YYYY-MM-DD", field=field)


def parse_time(value, field):
    if value is None or value == "":
        return None
    if isinstance(value, time):
        return value
    try:
        return datetime.strptime(str(value), "%H:%M").time()
    except ValueError:
        raise ValidationError(f"Invalid time format for '{field}'. Expected HH:MM", field=field)


def parse_int(value, field, minimum=None):
    if isinstance(value, bool):
        raise ValidationError(f"'{field}' must be an integer", field=field)
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{field}' must be an integer", field=field)
    if minimum is not None and number < minimum:
        raise ValidationError(f"'{field}' must be an integer >= {minimum}", field=field)
    return number


def parse_bool(value, field):
    if isinstance(value, bool):
        return value
    raise ValidationError(f"'{field}' must be a boolean", field=field)


def parse_choice(value, field, enum_cls):
    allowed = [member.value for member in enum_cls]
    if value not in allowed:
        raise ValidationError(f"'{field}' must be one of: {', '.join(allowed)}", field=field)
    return value


def parse_choices_csv(value, field, enum_cls):
    return [parse_choice(item.strip(), field, enum_cls) for item in value.split(',') if item.strip()]


def parse_interval(start_value, end_value):
    start = parse_datetime(start_value, "start")
    end = parse_datetime(end_value, "end")
    if end <= start:
        raise ValidationError("'end' must be after 'start'", field="end")
    return start, end
