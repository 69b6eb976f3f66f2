from .attendance_service import AttendanceService, DuplicateTeamCodeError
from .camera import CameraDevice, CameraSessionManager, CameraState, Facing, enumerate_cameras, qr_scanner_factory
from .check_in import CheckInFlow, CheckInResult, CheckInService, EntryMethod
from .qr_scanner import QRScanner

__all__ = [
    "AttendanceService",
    "CameraDevice",
    "CameraSessionManager",
    "CameraState",
    "CheckInFlow",
    "CheckInResult",
    "CheckInService",
    "DuplicateTeamCodeError",
    "EntryMethod",
    "Facing",
    "QRScanner",
    "enumerate_cameras",
    "qr_scanner_factory",
]
