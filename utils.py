from datetime import datetime, timezone


def utcnow():
    # Les dates sont stockées en UTC naïf
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value):
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def whole_minutes(start, end):
    """Nombre de minutes entières écoulées de start à end (arrondi vers le bas)."""
    return int((end - start).total_seconds() // 60)


def isoformat(value):
    return value.isoformat() if value is not None else None
