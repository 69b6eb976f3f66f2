from __future__ import annotations

from datetime import datetime, timezone

LOCALE_DATETIME_FORMAT = "%c"
LOCALE_DATE_FORMAT = "%x"


def coerce_datetime(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return value

    if isinstance(value, str):
        candidate = value.strip().replace(" ", "T", 1)
        try:
            return datetime.fromisoformat(candidate)
        except ValueError:
            for fmt in ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d %H:%M:%S.%f"):
                try:
                    return datetime.strptime(value, fmt)
                except ValueError:
                    continue

    raise ValueError(f"Unsupported datetime value: {value!r}")


def utc_now() -> datetime:
    """Naive UTC timestamp, matching what SQLite's CURRENT_TIMESTAMP stores."""

    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_local(value: datetime | str) -> datetime:
    moment = coerce_datetime(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone()


def format_check_in_time(value: datetime | str) -> str:
    return to_local(value).strftime(LOCALE_DATETIME_FORMAT)


def format_local_date(value: datetime | str) -> str:
    return to_local(value).strftime(LOCALE_DATE_FORMAT)


def format_relative_time(value: datetime | str, *, now: datetime | None = None) -> str:
    reference = now or utc_now()
    moment = coerce_datetime(value)

    delta = reference - moment
    total_seconds = int(delta.total_seconds())

    if total_seconds < 60:
        return "just now"

    minutes = total_seconds // 60
    if minutes == 1:
        return "1 minute ago"
    if minutes < 60:
        return f"{minutes} minutes ago"

    hours = minutes // 60
    if hours == 1:
        return "1 hour ago"
    if hours < 24:
        return f"{hours} hours ago"

    days = hours // 24
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"

    weeks = days // 7
    if weeks == 1:
        return "1 week ago"
    if weeks < 5:
        return f"{weeks} weeks ago"

    months = days // 30
    if months == 1:
        return "1 month ago"
    if months < 12:
        return f"{months} months ago"

    years = days // 365
    if years == 1:
        return "1 year ago"
    return f"{years} years ago"
