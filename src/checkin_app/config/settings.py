from __future__ import annotations

import getpass
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parents[3]
ENV_PATH = BASE_DIR / ".env"
load_dotenv(ENV_PATH)

DOCUMENTS_PATH = Path(os.path.expanduser("~")) / "Documents"
APP_NAME = os.getenv("APP_NAME", "Team Check-in Station")
APP_DATA_DIR = Path(os.getenv("APP_DATA_DIR", str(DOCUMENTS_PATH / APP_NAME))).expanduser()


def _default_operator() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return "station"


def _optional_int(name: str) -> int | None:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


@dataclass(frozen=True)
class Settings:
    app_name: str = APP_NAME
    database_path: Path = field(
        default_factory=lambda: Path(os.getenv("DATABASE_PATH", str(APP_DATA_DIR / "checkin.db"))).expanduser()
    )
    qr_camera_index: int | None = field(default_factory=lambda: _optional_int("QR_CAMERA_INDEX"))
    qr_scan_fps: int = field(default_factory=lambda: int(os.getenv("QR_SCAN_FPS", "10")))
    qr_box_size: int = field(default_factory=lambda: int(os.getenv("QR_BOX_SIZE", "250")))
    qr_max_cameras: int = field(default_factory=lambda: int(os.getenv("QR_MAX_CAMERAS", "4")))
    check_in_location: str = field(default_factory=lambda: os.getenv("CHECKIN_LOCATION", "Check-in Station"))
    operator_name: str = field(default_factory=lambda: os.getenv("CHECKIN_OPERATOR") or _default_operator())
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    def __post_init__(self) -> None:
        if not 1 <= self.qr_scan_fps <= 30:
            raise ValueError("QR_SCAN_FPS must be between 1 and 30.")
        if self.qr_box_size <= 0:
            raise ValueError("QR_BOX_SIZE must be positive.")
        if self.qr_max_cameras <= 0:
            raise ValueError("QR_MAX_CAMERAS must be positive.")

    def describe(self) -> str:
        return (
            f"Settings(app_name={self.app_name}, "
            f"database_path={self.database_path}, "
            f"qr_camera_index={self.qr_camera_index}, "
            f"qr_scan_fps={self.qr_scan_fps}, "
            f"qr_box_size={self.qr_box_size}, "
            f"qr_max_cameras={self.qr_max_cameras}, "
            f"check_in_location={self.check_in_location}, "
            f"operator_name={self.operator_name})"
        )


settings = Settings()
