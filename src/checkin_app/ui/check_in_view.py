from __future__ import annotations

import logging
import threading
from functools import partial
from tkinter import StringVar, TclError
from typing import Any, Callable

import customtkinter as ctk
from PIL import Image, ImageOps

from checkin_app.config.settings import Settings
from checkin_app.errors import DeviceError, ValidationError
from checkin_app.services import (
    CameraSessionManager,
    CameraState,
    CheckInFlow,
    CheckInService,
    EntryMethod,
    enumerate_cameras,
    qr_scanner_factory,
)
from checkin_app.services.check_in import CheckInOutcome, CheckInTicket
from checkin_app.services.team_summary import UPCOMING, TeamSummary, summarize_team
from checkin_app.ui.theme import (
    BADGE_COMPLETED,
    BADGE_UPCOMING,
    VS_ACCENT,
    VS_ACCENT_HOVER,
    VS_BG,
    VS_BORDER,
    VS_CARD,
    VS_DANGER,
    VS_DANGER_HOVER,
    VS_DIVIDER,
    VS_SUCCESS,
    VS_SURFACE,
    VS_SURFACE_ALT,
    VS_TEXT,
    VS_TEXT_MUTED,
    tone_color,
)
from checkin_app.utils.codes import clean_manual_code

log = logging.getLogger(__name__)

SCAN_TAB = "Scan QR"
MANUAL_TAB = "Manual Entry"
TOAST_DURATION_MS = 4000

CAMERA_STATUS_TEXT = {
    CameraState.UNINITIALIZED: "Scanner idle",
    CameraState.ENUMERATING: "Initializing camera…",
    CameraState.PERMISSION_DENIED: "Camera permission denied",
    CameraState.NO_CAMERAS: "No camera detected",
    CameraState.READY: "Camera ready",
    CameraState.STARTING: "Starting scanner…",
    CameraState.SCANNING: "Point the QR code at the camera",
    CameraState.STOPPING: "Stopping scanner…",
    CameraState.STOPPED: "Scanner stopped",
}


class CheckInView(ctk.CTkFrame):
    """Scan or type a team code, show the team, and log the check-in."""

    def __init__(
        self,
        master,
        check_in_service: CheckInService,
        *,
        app_settings: Settings,
        on_checked_in: Callable[[], None] | None = None,
    ) -> None:
        super().__init__(master, fg_color=VS_BG)
        self._flow = CheckInFlow(check_in_service)
        self._on_checked_in = on_checked_in
        self._active = False

        self._camera = CameraSessionManager(
            enumerator=partial(enumerate_cameras, max_devices=app_settings.qr_max_cameras),
            scanner_factory=qr_scanner_factory(fps=app_settings.qr_scan_fps, box_size=app_settings.qr_box_size),
            on_payload=lambda payload: self._dispatch(lambda: self._handle_qr_payload(payload)),
            on_error=lambda error: self._dispatch(lambda: self._handle_camera_error(error)),
            on_state_change=lambda state: self._dispatch(lambda: self._render_camera_state(state)),
            on_frame=lambda frame: self._dispatch(lambda f=frame: self._handle_qr_frame(f)),
            preferred_index=app_settings.qr_camera_index,
        )

        self._manual_code_var = StringVar()
        self._manual_error_var = StringVar(value="")
        self._qr_status_var = StringVar(value=CAMERA_STATUS_TEXT[CameraState.UNINITIALIZED])
        self._camera_choice_var = StringVar(value="No cameras")
        self._result_status_var = StringVar(value="No team data to display yet")
        self._toast_var = StringVar(value="")
        self._camera_choices: dict[str, int] = {}

        self._preview_size: tuple[int, int] = (360, 360)
        placeholder = Image.new("RGB", self._preview_size, color=(24, 24, 24))
        self._preview_placeholder = ctk.CTkImage(light_image=placeholder, dark_image=placeholder.copy(), size=self._preview_size)
        self._preview_image: ctk.CTkImage | None = None
        self._preview_busy = False
        self._toast_job: str | None = None

        self._build_widgets()
        self._render_camera_state(self._camera.state)
        self._render_flow_state()

    # ------------------------------------------------------------------
    # Lifecycle hooks called by the app shell
    # ------------------------------------------------------------------
    def activate(self) -> None:
        self._active = True
        if self._tab_view.get() == SCAN_TAB and self._flow.state.team is None:
            self._run_camera_task(self._mount_and_start)

    def deactivate(self) -> None:
        self._active = False
        self._run_camera_task(self._camera.teardown)

    def destroy(self) -> None:
        self._active = False
        self._cancel_toast()
        self._camera.teardown()
        super().destroy()

    # ------------------------------------------------------------------
    # Layout construction
    # ------------------------------------------------------------------
    def _build_widgets(self) -> None:
        self.grid_rowconfigure(0, weight=1)
        self.grid_columnconfigure(0, weight=1, uniform="check_in")
        self.grid_columnconfigure(1, weight=1, uniform="check_in")

        lookup_card = ctk.CTkFrame(self, corner_radius=14, fg_color=VS_SURFACE)
        lookup_card.grid(row=0, column=0, padx=(24, 12), pady=24, sticky="nsew")
        lookup_card.grid_columnconfigure(0, weight=1)
        lookup_card.grid_rowconfigure(2, weight=1)
        self._build_card_header(lookup_card, "Team Lookup", "Scan a QR code or manually enter a team code")

        self._tab_view = ctk.CTkTabview(
            lookup_card,
            fg_color=VS_SURFACE_ALT,
            segmented_button_fg_color=VS_DIVIDER,
            segmented_button_selected_color=VS_ACCENT,
            segmented_button_selected_hover_color=VS_ACCENT_HOVER,
            command=self._handle_tab_change,
        )
        self._tab_view.grid(row=2, column=0, padx=20, pady=(0, 20), sticky="nsew")
        self._tab_view.add(SCAN_TAB)
        self._tab_view.add(MANUAL_TAB)
        self._build_scan_tab(self._tab_view.tab(SCAN_TAB))
        self._build_manual_tab(self._tab_view.tab(MANUAL_TAB))

        result_card = ctk.CTkFrame(self, corner_radius=14, fg_color=VS_SURFACE)
        result_card.grid(row=0, column=1, padx=(12, 24), pady=24, sticky="nsew")
        result_card.grid_columnconfigure(0, weight=1)
        result_card.grid_rowconfigure(3, weight=1)
        self._build_card_header(result_card, "Team Information", "Lookup a team to see information")

        self._result_status_label = ctk.CTkLabel(
            result_card,
            textvariable=self._result_status_var,
            text_color=VS_TEXT_MUTED,
            font=ctk.CTkFont(size=16),
            wraplength=420,
            justify="left",
        )
        self._result_status_label.grid(row=2, column=0, padx=20, pady=(0, 12), sticky="w")

        self._team_card = ctk.CTkFrame(result_card, corner_radius=12, fg_color=VS_CARD)
        self._team_card.grid(row=3, column=0, padx=20, pady=(0, 12), sticky="nsew")
        self._team_card.grid_columnconfigure(1, weight=1)

        footer = ctk.CTkFrame(result_card, fg_color="transparent")
        footer.grid(row=4, column=0, padx=20, pady=(0, 20), sticky="ew")
        footer.grid_columnconfigure(0, weight=1)

        self._toast_label = ctk.CTkLabel(footer, textvariable=self._toast_var, text_color=VS_TEXT_MUTED, font=ctk.CTkFont(size=15))
        self._toast_label.grid(row=0, column=0, sticky="w")

        self._reset_button = ctk.CTkButton(
            footer,
            text="Check Another Team",
            command=self._handle_reset,
            width=200,
            fg_color=VS_ACCENT,
            hover_color=VS_ACCENT_HOVER,
            text_color=VS_TEXT,
        )
        self._reset_button.grid(row=0, column=1, sticky="e")

    def _build_card_header(self, frame: ctk.CTkFrame, title: str, subtitle: str) -> None:
        ctk.CTkLabel(frame, text=title, font=ctk.CTkFont(size=22, weight="bold"), text_color=VS_TEXT).grid(
            row=0, column=0, padx=20, pady=(20, 2), sticky="w"
        )
        ctk.CTkLabel(frame, text=subtitle, font=ctk.CTkFont(size=14), text_color=VS_TEXT_MUTED).grid(
            row=1, column=0, padx=20, pady=(0, 12), sticky="w"
        )

    def _build_scan_tab(self, tab: ctk.CTkFrame) -> None:
        tab.grid_columnconfigure(0, weight=1)
        tab.grid_rowconfigure(2, weight=1)

        controls = ctk.CTkFrame(tab, fg_color="transparent")
        controls.grid(row=0, column=0, padx=12, pady=(8, 8), sticky="ew")
        controls.grid_columnconfigure(0, weight=1)

        self._camera_menu = ctk.CTkOptionMenu(
            controls,
            variable=self._camera_choice_var,
            values=["No cameras"],
            command=self._handle_camera_choice,
            fg_color=VS_SURFACE,
            button_color=VS_ACCENT,
            button_hover_color=VS_ACCENT_HOVER,
            dropdown_fg_color=VS_SURFACE,
            dropdown_hover_color=VS_ACCENT,
        )
        self._camera_menu.grid(row=0, column=0, sticky="ew", padx=(0, 8))

        self._scan_control_button = ctk.CTkButton(
            controls,
            text="Start scanner",
            command=self._handle_scan_control,
            width=160,
            fg_color=VS_ACCENT,
            hover_color=VS_ACCENT_HOVER,
            text_color=VS_TEXT,
        )
        self._scan_control_button.grid(row=0, column=1, sticky="e")

        self._qr_status_label = ctk.CTkLabel(
            tab,
            textvariable=self._qr_status_var,
            text_color=VS_TEXT,
            font=ctk.CTkFont(size=17),
            wraplength=self._preview_size[0],
            justify="center",
        )
        self._qr_status_label.grid(row=1, column=0, padx=12, pady=(4, 8), sticky="ew")

        self._preview_frame = ctk.CTkFrame(tab, corner_radius=18, fg_color=VS_SURFACE, border_width=3, border_color=VS_DIVIDER)
        self._preview_frame.grid(row=2, column=0, padx=12, pady=(0, 12))
        self._preview_label = ctk.CTkLabel(
            self._preview_frame,
            text="Camera preview inactive",
            text_color=VS_TEXT_MUTED,
            image=self._preview_placeholder,
            compound="center",
        )
        self._preview_label.pack(expand=True, fill="both", padx=10, pady=10)

    def _build_manual_tab(self, tab: ctk.CTkFrame) -> None:
        tab.grid_columnconfigure(0, weight=1)

        ctk.CTkLabel(tab, text="Team Code", font=ctk.CTkFont(size=18), text_color=VS_TEXT).grid(
            row=0, column=0, padx=20, pady=(24, 6), sticky="w"
        )
        self._manual_entry = ctk.CTkEntry(
            tab,
            textvariable=self._manual_code_var,
            placeholder_text="Enter 4-digit team code (e.g., 1001)",
            font=ctk.CTkFont(size=20, family="Courier"),
            justify="center",
            fg_color=VS_BG,
            border_color=VS_BORDER,
            text_color=VS_TEXT,
            placeholder_text_color=VS_TEXT_MUTED,
        )
        self._manual_entry.grid(row=1, column=0, padx=20, pady=6, sticky="ew")
        self._manual_entry.bind("<Return>", lambda _event: self._handle_manual_submit())

        self._manual_error_label = ctk.CTkLabel(
            tab, textvariable=self._manual_error_var, text_color=tone_color("warning"), font=ctk.CTkFont(size=14)
        )
        self._manual_error_label.grid(row=2, column=0, padx=20, pady=(0, 6), sticky="w")

        self._manual_submit_button = ctk.CTkButton(
            tab,
            text="Find Team",
            command=self._handle_manual_submit,
            height=40,
            fg_color=VS_ACCENT,
            hover_color=VS_ACCENT_HOVER,
            text_color=VS_TEXT,
        )
        self._manual_submit_button.grid(row=3, column=0, padx=20, pady=(6, 20), sticky="ew")

    # ------------------------------------------------------------------
    # Check-in flow
    # ------------------------------------------------------------------
    def _handle_manual_submit(self) -> None:
        if self._flow.state.busy:
            return
        try:
            code = clean_manual_code(self._manual_code_var.get())
        except ValidationError as exc:
            self._manual_error_var.set(str(exc))
            return
        self._manual_error_var.set("")
        self._submit(code, EntryMethod.MANUAL)

    def _handle_qr_payload(self, payload: str) -> None:
        self._set_preview_border(VS_SUCCESS)
        self._submit(payload, EntryMethod.QR_SCAN)

    def _submit(self, code_text: str, method: EntryMethod) -> None:
        ticket = self._flow.begin(code_text, method)
        self._render_flow_state()

        def _worker() -> None:
            outcome = self._flow.execute(ticket)
            self._dispatch(lambda: self._finish(ticket, outcome))

        threading.Thread(target=_worker, daemon=True).start()

    def _finish(self, ticket: CheckInTicket, outcome: CheckInOutcome) -> None:
        if not self._flow.finish(ticket, outcome):
            return
        self._render_flow_state()
        state = self._flow.state
        if state.notice:
            self._show_toast(state.notice, state.notice_tone)
        if state.team is not None and self._on_checked_in is not None:
            self._on_checked_in()

    def _handle_reset(self) -> None:
        self._flow.reset()
        self._manual_code_var.set("")
        self._manual_error_var.set("")
        self._set_preview_border(None)
        self._render_flow_state()
        if self._active and self._tab_view.get() == SCAN_TAB:
            self._run_camera_task(self._mount_and_start)

    def _handle_tab_change(self) -> None:
        self._manual_error_var.set("")
        if self._tab_view.get() == SCAN_TAB:
            if self._active and self._flow.state.team is None:
                self._run_camera_task(self._mount_and_start)
        else:
            self._run_camera_task(self._camera.stop)
            self._manual_entry.focus_set()

    def _render_flow_state(self) -> None:
        state = self._flow.state
        busy_text = "Searching…" if state.busy else "Find Team"
        self._manual_submit_button.configure(text=busy_text, state="disabled" if state.busy else "normal")
        self._reset_button.configure(state="normal" if (state.team or state.error) else "disabled")

        for child in self._team_card.winfo_children():
            child.destroy()

        if state.busy:
            self._set_result_status(f"Looking up team {state.code_text}…")
        elif state.team is not None:
            self._set_result_status("Team found in the database", tone="success")
            self._render_team_card(summarize_team(state.team))
        elif state.error is not None:
            self._set_result_status(f"Error: {state.error}", tone="warning")
        else:
            self._set_result_status("No team data to display yet")

    def _render_team_card(self, summary: TeamSummary) -> None:
        card = self._team_card
        ctk.CTkLabel(card, text=summary.team_name, font=ctk.CTkFont(size=22, weight="bold"), text_color=VS_TEXT).grid(
            row=0, column=0, columnspan=2, padx=16, pady=(16, 2), sticky="w"
        )
        ctk.CTkLabel(card, text=f"Team code {summary.code}", text_color=VS_TEXT_MUTED).grid(
            row=1, column=0, columnspan=2, padx=16, sticky="w"
        )
        badge_color = BADGE_UPCOMING if summary.status == UPCOMING else BADGE_COMPLETED
        ctk.CTkLabel(
            card,
            text=f"{summary.round_label} · {summary.status}",
            fg_color=badge_color,
            corner_radius=10,
            text_color=VS_TEXT,
            padx=10,
        ).grid(row=0, column=2, padx=16, pady=(16, 2), sticky="e")

        ctk.CTkLabel(card, text="Team Members", font=ctk.CTkFont(size=16, weight="bold"), text_color=VS_TEXT).grid(
            row=2, column=0, columnspan=3, padx=16, pady=(16, 6), sticky="w"
        )
        for offset, member in enumerate(summary.members):
            row = 3 + offset
            ctk.CTkLabel(
                card,
                text=member.initials or "?",
                width=44,
                height=44,
                corner_radius=22,
                fg_color=VS_ACCENT,
                text_color=VS_TEXT,
                font=ctk.CTkFont(size=16, weight="bold"),
            ).grid(row=row, column=0, padx=(16, 10), pady=6)
            details = "\n".join(part for part in (member.full_name, member.email, member.phone) if part)
            ctk.CTkLabel(card, text=details, justify="left", anchor="w", text_color=VS_TEXT).grid(
                row=row, column=1, columnspan=2, pady=6, sticky="w"
            )

        ctk.CTkLabel(card, text=f"{summary.round_label}\n{summary.registered_label}", justify="left", text_color=VS_TEXT_MUTED).grid(
            row=5, column=0, columnspan=3, padx=16, pady=(12, 16), sticky="w"
        )

    def _set_result_status(self, message: str, tone: str = "info") -> None:
        self._result_status_var.set(message)
        self._result_status_label.configure(text_color=tone_color(tone))

    def _show_toast(self, message: str, tone: str = "info") -> None:
        self._cancel_toast()
        self._toast_var.set(message)
        self._toast_label.configure(text_color=tone_color(tone))
        self._toast_job = self.after(TOAST_DURATION_MS, self._clear_toast)

    def _clear_toast(self) -> None:
        self._toast_job = None
        self._toast_var.set("")

    def _cancel_toast(self) -> None:
        if self._toast_job is None:
            return
        try:
            self.after_cancel(self._toast_job)
        finally:
            self._toast_job = None

    # ------------------------------------------------------------------
    # Camera
    # ------------------------------------------------------------------
    def _mount_and_start(self) -> None:
        state = self._camera.state
        if state in (CameraState.UNINITIALIZED, CameraState.STOPPED, CameraState.NO_CAMERAS):
            state = self._camera.mount()
        if state in (CameraState.READY, CameraState.STOPPED) and self._active:
            self._camera.start()

    def _handle_scan_control(self) -> None:
        state = self._camera.state
        if state is CameraState.PERMISSION_DENIED:
            self._run_camera_task(self._grant_and_start)
        elif state is CameraState.NO_CAMERAS:
            self._run_camera_task(self._retry_and_start)
        elif self._camera.is_scanning:
            self._run_camera_task(self._camera.stop)
        else:
            self._run_camera_task(self._mount_and_start)

    def _grant_and_start(self) -> None:
        if self._camera.grant_access() is CameraState.READY and self._active:
            self._camera.start()

    def _retry_and_start(self) -> None:
        if self._camera.retry() is CameraState.READY and self._active:
            self._camera.start()

    def _handle_camera_choice(self, choice: str) -> None:
        index = self._camera_choices.get(choice)
        if index is not None:
            self._run_camera_task(lambda: self._camera.switch_camera(index))

    def _handle_camera_error(self, error: DeviceError) -> None:
        self._qr_status_var.set(str(error))
        self._qr_status_label.configure(text_color=tone_color("warning"))

    def _render_camera_state(self, state: CameraState) -> None:
        if not self.winfo_exists():
            return

        error = self._camera.last_error
        if error is not None and state in (CameraState.READY, CameraState.NO_CAMERAS, CameraState.PERMISSION_DENIED):
            self._qr_status_var.set(str(error))
            self._qr_status_label.configure(text_color=tone_color("warning"))
        else:
            self._qr_status_var.set(CAMERA_STATUS_TEXT[state])
            self._qr_status_label.configure(text_color=VS_SUCCESS if state is CameraState.SCANNING else VS_TEXT)

        self._refresh_camera_menu()

        if state is CameraState.PERMISSION_DENIED:
            self._configure_scan_control("Grant camera access", running=False)
        elif state is CameraState.NO_CAMERAS:
            self._configure_scan_control("Try again", running=False)
        elif state in (CameraState.STARTING, CameraState.SCANNING):
            self._configure_scan_control("Stop scanner", running=True)
        elif state in (CameraState.ENUMERATING, CameraState.STOPPING):
            self._scan_control_button.configure(state="disabled")
        else:
            self._configure_scan_control("Start scanner", running=False)

        if state is not CameraState.SCANNING:
            self._preview_label.configure(image=self._preview_placeholder, text="Camera preview inactive")
            self._preview_image = None
            self._preview_busy = False

    def _refresh_camera_menu(self) -> None:
        devices = self._camera.devices
        self._camera_choices = {device.display_label: device.index for device in devices}
        if not devices:
            self._camera_menu.configure(values=["No cameras"], state="disabled")
            self._camera_choice_var.set("No cameras")
            return

        self._camera_menu.configure(values=list(self._camera_choices), state="normal")
        active = self._camera.active_camera
        if active is not None:
            self._camera_choice_var.set(active.display_label)

    def _configure_scan_control(self, text: str, *, running: bool) -> None:
        self._scan_control_button.configure(
            state="normal",
            text=text,
            fg_color=VS_DANGER if running else VS_ACCENT,
            hover_color=VS_DANGER_HOVER if running else VS_ACCENT_HOVER,
        )

    def _set_preview_border(self, color: str | None) -> None:
        self._preview_frame.configure(border_color=color or VS_DIVIDER)

    def _handle_qr_frame(self, frame: Any) -> None:
        if not self.winfo_exists() or self._preview_busy or frame is None:
            return
        if self._camera.state is not CameraState.SCANNING:
            return

        self._preview_busy = True
        try:
            import cv2  # type: ignore[import-not-found]

            rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            square_image = ImageOps.fit(
                Image.fromarray(rgb_frame),
                self._preview_size,
                method=Image.Resampling.LANCZOS,
                centering=(0.5, 0.5),
            )
            self._preview_image = ctk.CTkImage(light_image=square_image, dark_image=square_image, size=self._preview_size)
            self._preview_label.configure(image=self._preview_image, text="")
        except Exception:
            log.debug("Could not render preview frame", exc_info=True)
        finally:
            self._preview_busy = False

    # ------------------------------------------------------------------
    # Threading helpers
    # ------------------------------------------------------------------
    def _dispatch(self, callback: Callable[[], None]) -> None:
        try:
            self.after(0, callback)
        except (RuntimeError, TclError):
            # The Tk loop is gone; nothing left to update.
            log.debug("Dropping UI update after shutdown")

    def _run_camera_task(self, task: Callable[[], Any]) -> None:
        def _runner() -> None:
            try:
                task()
            except Exception:
                log.exception("Camera task failed")

        threading.Thread(target=_runner, daemon=True).start()
