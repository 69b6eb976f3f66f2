from __future__ import annotations


class CheckInError(RuntimeError):
    """Base class for failures surfaced by the check-in station."""


class ValidationError(CheckInError):
    """Raised when a team code is empty or not purely numeric."""


class NotFoundError(CheckInError):
    """Raised when a well-formed code matches no registered team."""

    def __init__(self, code: int) -> None:
        super().__init__("No team found with this code")
        self.code = code


class StoreReadError(CheckInError):
    """Raised when the registry or attendance log cannot be read."""


class StoreWriteError(CheckInError):
    """Raised when an attendance event could not be appended."""


class DeviceError(CheckInError):
    """Raised for camera enumeration, start or stop failures."""


class CameraPermissionError(DeviceError):
    """Raised when the operating system refuses access to a camera."""
