from datetime import datetime, timedelta

import pytest

from checkin_app.utils import coerce_datetime, format_relative_time


def test_format_relative_time_minutes():
    now = datetime(2025, 10, 2, 12, 0, 0)
    timestamp = now - timedelta(minutes=30)
    assert format_relative_time(timestamp, now=now) == "30 minutes ago"


def test_format_relative_time_just_now():
    now = datetime(2025, 10, 2, 12, 0, 0)
    timestamp = now - timedelta(seconds=10)
    assert format_relative_time(timestamp, now=now) == "just now"


def test_format_relative_time_days():
    now = datetime(2025, 10, 2, 12, 0, 0)
    assert format_relative_time(now - timedelta(days=1), now=now) == "Yesterday"
    assert format_relative_time(now - timedelta(days=3), now=now) == "3 days ago"


def test_coerce_datetime_reads_sqlite_timestamps():
    assert coerce_datetime("2025-10-02 12:30:15.250") == datetime(2025, 10, 2, 12, 30, 15, 250000)
    assert coerce_datetime("2025-10-02 12:30:15") == datetime(2025, 10, 2, 12, 30, 15)


def test_coerce_datetime_rejects_garbage():
    with pytest.raises(ValueError):
        coerce_datetime("not a date")
