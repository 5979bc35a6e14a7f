from datetime import UTC, datetime


def utcnow():
    return datetime.now(UTC)


def as_utc(value):
    """Normalise a datetime to aware UTC.

    The memory provider keeps whatever was assigned while relational
    providers return naive values; naive values are stored as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
