from .attendance import AttendanceEntry, AttendanceRecord, TeamRef
from .team import RecordShapeError, Team, TeamMember

__all__ = [
    "AttendanceEntry",
    "AttendanceRecord",
    "RecordShapeError",
    "Team",
    "TeamMember",
    "TeamRef",
]
