"""Time helpers. Stored datetimes may come back naive from some providers; treat those as UTC."""

from datetime import UTC, datetime


def utc_now():
    return datetime.now(UTC)


def as_utc(moment):
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)
