from .codes import clean_manual_code, parse_team_code
from .time import coerce_datetime, format_check_in_time, format_local_date, format_relative_time, utc_now

__all__ = [
    "clean_manual_code",
    "coerce_datetime",
    "format_check_in_time",
    "format_local_date",
    "format_relative_time",
    "parse_team_code",
    "utc_now",
]
