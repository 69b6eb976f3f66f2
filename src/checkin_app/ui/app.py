from __future__ import annotations

import logging
import os
from tkinter import PhotoImage

import customtkinter as ctk

from checkin_app.config.settings import Settings, settings
from checkin_app.data import Database
from checkin_app.services import AttendanceService, CheckInService
from checkin_app.ui.attendance_view import AttendanceView
from checkin_app.ui.check_in_view import CheckInView
from checkin_app.ui.components.collapsible_nav import CollapsibleNav
from checkin_app.ui.navigation import ATTENDANCE_KEY, CHECK_IN_KEY, NAV_ITEMS
from checkin_app.ui.theme import VS_BG
from checkin_app.ui.utils import get_asset_path

log = logging.getLogger(__name__)


class CheckInApp:
    def __init__(self, app_settings: Settings = settings) -> None:
        try:
            from ctypes import windll  # type: ignore[attr-defined]

            windll.shcore.SetProcessDpiAwareness(1)
        except (ImportError, AttributeError):
            pass

        ctk.set_appearance_mode("dark")

        self._root = ctk.CTk()
        self._root.title(app_settings.app_name)
        self._root.geometry("1280x720")
        self._root.minsize(1080, 640)
        self._root.configure(fg_color=VS_BG)

        icon_path = get_asset_path("icon.png")
        self._icon_photo: PhotoImage | None = None
        if icon_path is not None:
            try:
                self._icon_photo = PhotoImage(file=str(icon_path))
                self._root.iconphoto(True, self._icon_photo)
            except Exception:
                log.debug("Window icon %s could not be loaded", icon_path, exc_info=True)
                self._icon_photo = None

        self._root.grid_rowconfigure(0, weight=1)
        self._root.grid_columnconfigure(1, weight=1)

        self._database = Database(app_settings.database_path)
        self._attendance_service = AttendanceService(self._database, operator=app_settings.operator_name)
        self._attendance_service.initialize()
        self._check_in_service = CheckInService(self._attendance_service, location=app_settings.check_in_location)

        self._nav = CollapsibleNav(self._root, items=NAV_ITEMS, on_select=self._show_view)
        self._nav.grid(row=0, column=0, sticky="nsw")

        self._content = ctk.CTkFrame(self._root, corner_radius=0, fg_color=VS_BG)
        self._content.grid(row=0, column=1, sticky="nsew")
        self._content.grid_rowconfigure(0, weight=1)
        self._content.grid_columnconfigure(0, weight=1)

        self._attendance_view = AttendanceView(self._content, self._attendance_service)
        self._check_in_view = CheckInView(
            self._content,
            self._check_in_service,
            app_settings=app_settings,
        )
        self._views: dict[str, ctk.CTkFrame] = {
            CHECK_IN_KEY: self._check_in_view,
            ATTENDANCE_KEY: self._attendance_view,
        }
        for view in self._views.values():
            view.grid(row=0, column=0, sticky="nsew")

        self._current_key: str | None = None
        self._nav.select(CHECK_IN_KEY)

        self._root.after(0, self._maximize_window)
        self._root.protocol("WM_DELETE_WINDOW", self._on_close)

    def _show_view(self, key: str) -> None:
        if key not in self._views or key == self._current_key:
            return

        if self._current_key == CHECK_IN_KEY:
            self._check_in_view.deactivate()

        for view in self._views.values():
            view.grid_remove()
        self._views[key].grid()
        self._current_key = key

        if key == CHECK_IN_KEY:
            self._check_in_view.activate()
        elif key == ATTENDANCE_KEY:
            self._attendance_view.refresh()

    def _on_close(self) -> None:
        log.info("Closing %s", self._root.title())
        # destroy() on the check-in view releases the camera.
        self._root.destroy()

    def run(self) -> None:
        self._root.mainloop()

    def _maximize_window(self) -> None:
        try:
            if os.name == "nt":
                self._root.state("zoomed")
            else:
                self._root.attributes("-zoomed", True)
        except Exception:
            # Ignore platforms that don't support zoomed state
            pass
