from __future__ import annotations

from checkin_app.ui.components.collapsible_nav import NavigationItem

CHECK_IN_KEY = "check_in"
ATTENDANCE_KEY = "attendance"

NAV_ITEMS: tuple[NavigationItem, ...] = (
    NavigationItem(
        key=CHECK_IN_KEY,
        label="Check teams",
        icon_text="CT",
        icon_filename="check_in.png",
    ),
    NavigationItem(
        key=ATTENDANCE_KEY,
        label="Attendance",
        icon_text="AT",
        icon_filename="attendance.png",
    ),
)
