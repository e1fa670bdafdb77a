import datetime
import logging

logger = logging.getLogger(__name__)

def as_datetime(value) -> datetime.datetime:
    """Coerces a datetime, date or ISO-8601 string into a naive datetime.

    Aware datetimes are converted to UTC; plain dates become midnight of
    that day.
    """
    if isinstance(value, str):
        value = value.strip()
        if value.endswith(('Z', 'z')):
            value = value[:-1] + '+00:00'
        value = datetime.datetime.fromisoformat(value)
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time.min)
    raise TypeError(f"Expected a date, datetime or ISO string, got {value!r}")

def today() -> datetime.datetime:
    return datetime.datetime.combine(datetime.date.today(), datetime.time.min)
