from __future__ import annotations

import logging
import threading
from tkinter import filedialog

import customtkinter as ctk

from checkin_app.models import AttendanceEntry
from checkin_app.services import AttendanceService
from checkin_app.services.dashboard import (
    available_rounds,
    export_filename,
    export_row,
    export_to_path,
    filter_entries,
    load_attendance,
)
from checkin_app.ui.theme import (
    VS_ACCENT,
    VS_ACCENT_HOVER,
    VS_BG,
    VS_BORDER,
    VS_DIVIDER,
    VS_SURFACE,
    VS_SURFACE_ALT,
    VS_TEXT,
    VS_TEXT_MUTED,
    tone_color,
)
from checkin_app.utils.time import format_relative_time

log = logging.getLogger(__name__)

ALL_ROUNDS_LABEL = "All rounds"

# (header, grid weight, anchor)
TABLE_COLUMNS: tuple[tuple[str, int, str], ...] = (
    ("Team", 3, "w"),
    ("Code", 1, "center"),
    ("Round", 2, "w"),
    ("Checked in", 3, "w"),
    ("Location", 2, "w"),
    ("Notes", 3, "w"),
)


class AttendanceView(ctk.CTkFrame):
    """Filterable attendance log with CSV export."""

    def __init__(self, master, attendance_service: AttendanceService) -> None:
        super().__init__(master, fg_color=VS_BG)
        self._service = attendance_service

        self._search_var = ctk.StringVar(value="")
        self._round_var = ctk.StringVar(value=ALL_ROUNDS_LABEL)
        self._count_var = ctk.StringVar(value="0 records found")
        self._status_var = ctk.StringVar(value="")

        self._entries: list[AttendanceEntry] = []
        self._visible: list[AttendanceEntry] = []
        self._row_frames: list[ctk.CTkFrame] = []
        self._loading = False

        self._header_font = ctk.CTkFont(size=16, weight="bold")
        self._body_font = ctk.CTkFont(size=14)

        self._build_layout()
        self._search_var.trace_add("write", lambda *_: self._apply_filters())

    # ------------------------------------------------------------------
    # Layout construction
    # ------------------------------------------------------------------
    def _build_layout(self) -> None:
        self.grid_rowconfigure(0, weight=1)
        self.grid_columnconfigure(0, weight=1)

        container = ctk.CTkFrame(self, fg_color=VS_SURFACE, corner_radius=16)
        container.grid(row=0, column=0, sticky="nsew", padx=24, pady=24)
        container.grid_rowconfigure(3, weight=1)
        container.grid_columnconfigure(0, weight=1)

        ctk.CTkLabel(
            container,
            text="Attendance Records",
            font=ctk.CTkFont(size=22, weight="bold"),
            text_color=VS_TEXT,
        ).grid(row=0, column=0, sticky="w", padx=20, pady=(20, 2))
        ctk.CTkLabel(
            container,
            text="View and filter team check-ins",
            font=ctk.CTkFont(size=14),
            text_color=VS_TEXT_MUTED,
        ).grid(row=1, column=0, sticky="w", padx=20, pady=(0, 12))

        self._build_filters(container)
        self._build_table(container)

        footer = ctk.CTkFrame(container, fg_color="transparent")
        footer.grid(row=4, column=0, sticky="ew", padx=20, pady=(0, 20))
        footer.grid_columnconfigure(1, weight=1)
        ctk.CTkLabel(footer, textvariable=self._count_var, text_color=VS_TEXT_MUTED).grid(row=0, column=0, sticky="w")
        self._status_label = ctk.CTkLabel(footer, textvariable=self._status_var, text_color=VS_TEXT_MUTED)
        self._status_label.grid(row=0, column=1, sticky="e")

    def _build_filters(self, parent: ctk.CTkFrame) -> None:
        filters = ctk.CTkFrame(parent, fg_color=VS_SURFACE_ALT, corner_radius=14, border_width=1, border_color=VS_DIVIDER)
        filters.grid(row=2, column=0, sticky="ew", padx=20, pady=(0, 12))
        filters.grid_columnconfigure(0, weight=1)

        self._search_entry = ctk.CTkEntry(
            filters,
            textvariable=self._search_var,
            placeholder_text="Search by team name or code",
            fg_color=VS_BG,
            border_color=VS_BORDER,
            text_color=VS_TEXT,
            placeholder_text_color=VS_TEXT_MUTED,
            height=38,
        )
        self._search_entry.grid(row=0, column=0, sticky="ew", padx=(16, 8), pady=14)

        self._round_menu = ctk.CTkOptionMenu(
            filters,
            variable=self._round_var,
            values=[ALL_ROUNDS_LABEL],
            command=lambda *_: self._apply_filters(),
            fg_color=VS_SURFACE,
            button_color=VS_ACCENT,
            button_hover_color=VS_ACCENT_HOVER,
            dropdown_fg_color=VS_SURFACE,
            dropdown_hover_color=VS_ACCENT,
            width=160,
        )
        self._round_menu.grid(row=0, column=1, padx=8, pady=14)

        self._refresh_button = ctk.CTkButton(
            filters,
            text="Refresh",
            command=self.refresh,
            width=110,
            fg_color=VS_SURFACE,
            hover_color=VS_ACCENT_HOVER,
            text_color=VS_TEXT,
            border_width=1,
            border_color=VS_BORDER,
        )
        self._refresh_button.grid(row=0, column=2, padx=8, pady=14)

        self._export_button = ctk.CTkButton(
            filters,
            text="Export CSV",
            command=self._export_csv,
            width=130,
            fg_color=VS_ACCENT,
            hover_color=VS_ACCENT_HOVER,
            text_color=VS_TEXT,
        )
        self._export_button.grid(row=0, column=3, padx=(8, 16), pady=14)

    def _build_table(self, parent: ctk.CTkFrame) -> None:
        table = ctk.CTkFrame(parent, fg_color=VS_SURFACE_ALT, corner_radius=14)
        table.grid(row=3, column=0, sticky="nsew", padx=20, pady=(0, 12))
        table.grid_rowconfigure(1, weight=1)
        table.grid_columnconfigure(0, weight=1)

        header_row = ctk.CTkFrame(table, fg_color=VS_SURFACE, corner_radius=10)
        header_row.grid(row=0, column=0, sticky="ew", padx=12, pady=(12, 6))
        self._configure_columns(header_row)
        for col, (text, _weight, anchor) in enumerate(TABLE_COLUMNS):
            ctk.CTkLabel(header_row, text=text, font=self._header_font, text_color=VS_TEXT, anchor=anchor).grid(
                row=0, column=col, sticky="ew", padx=10, pady=8
            )

        self._rows_frame = ctk.CTkScrollableFrame(
            table,
            fg_color=VS_SURFACE_ALT,
            corner_radius=12,
            scrollbar_fg_color=VS_BORDER,
            scrollbar_button_color=VS_ACCENT,
        )
        self._rows_frame.grid(row=1, column=0, sticky="nsew", padx=(12, 8), pady=(0, 12))
        self._rows_frame.grid_columnconfigure(0, weight=1)

        self._empty_label = ctk.CTkLabel(
            self._rows_frame,
            text="No attendance records match the current filters.",
            text_color=VS_TEXT_MUTED,
            font=self._body_font,
        )

    @staticmethod
    def _configure_columns(frame: ctk.CTkFrame) -> None:
        for col, (_text, weight, _anchor) in enumerate(TABLE_COLUMNS):
            frame.grid_columnconfigure(col, weight=weight, uniform="attendance_cols")

    # ------------------------------------------------------------------
    # Data loading
    # ------------------------------------------------------------------
    def refresh(self) -> None:
        """Reload the attendance log on a worker thread."""

        if self._loading:
            return
        self._loading = True
        self._refresh_button.configure(state="disabled")
        self._set_status("Loading attendance…")

        def _worker() -> None:
            entries, error = load_attendance(self._service)
            self.after(0, lambda: self._finish_refresh(entries, error))

        threading.Thread(target=_worker, daemon=True).start()

    def _finish_refresh(self, entries: list[AttendanceEntry] | None, error: str | None) -> None:
        self._loading = False
        if not self.winfo_exists():
            return
        self._refresh_button.configure(state="normal")

        if error is not None:
            self._set_status(error, tone="warning")
            return

        self._entries = entries or []
        self._refresh_round_options()
        self._set_status("")
        self._apply_filters()

    def _refresh_round_options(self) -> None:
        values = [ALL_ROUNDS_LABEL, *[f"Round {number}" for number in available_rounds(self._entries)]]
        self._round_menu.configure(values=values)
        if self._round_var.get() not in values:
            self._round_var.set(ALL_ROUNDS_LABEL)

    def _selected_round(self) -> str:
        choice = self._round_var.get()
        return "all" if choice == ALL_ROUNDS_LABEL else choice

    def _apply_filters(self) -> None:
        self._visible = filter_entries(self._entries, self._search_var.get(), self._selected_round())
        self._count_var.set(f"{len(self._visible)} records found")
        self._render_rows()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def _render_rows(self) -> None:
        for frame in self._row_frames:
            frame.destroy()
        self._row_frames.clear()

        if not self._visible:
            self._empty_label.grid(row=0, column=0, pady=24)
            return
        self._empty_label.grid_remove()

        for index, entry in enumerate(self._visible):
            cells = export_row(entry)
            round_text = "N/A" if entry.round is None else f"Round {entry.round} - {cells[3]}"
            values = (
                cells[1],
                str(entry.team_code),
                round_text,
                f"{cells[4]}\n{format_relative_time(entry.record.check_in_time)}",
                cells[5],
                cells[6],
            )

            row_frame = ctk.CTkFrame(
                self._rows_frame,
                fg_color=VS_SURFACE if index % 2 == 0 else VS_SURFACE_ALT,
                corner_radius=8,
            )
            row_frame.grid(row=index, column=0, sticky="ew", pady=2)
            self._configure_columns(row_frame)
            for col, (value, (_header, _weight, anchor)) in enumerate(zip(values, TABLE_COLUMNS)):
                ctk.CTkLabel(
                    row_frame,
                    text=value,
                    font=self._body_font,
                    text_color=VS_TEXT,
                    anchor=anchor,
                    justify="left",
                    wraplength=220,
                ).grid(row=0, column=col, sticky="ew", padx=10, pady=6)
            self._row_frames.append(row_frame)

    def _set_status(self, message: str, tone: str = "info") -> None:
        self._status_var.set(message)
        self._status_label.configure(text_color=tone_color(tone))

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def _export_csv(self) -> None:
        file_name = filedialog.asksaveasfilename(
            title="Export attendance to CSV",
            defaultextension=".csv",
            filetypes=[("CSV files", "*.csv"), ("All files", "*.*")],
            initialfile=export_filename(),
        )
        if not file_name:
            return

        try:
            count = export_to_path(self._visible, file_name)
        except OSError as exc:
            log.warning("CSV export to %s failed: %s", file_name, exc)
            self._set_status(f"Failed to export CSV: {exc}", tone="warning")
            return

        log.info("Exported %d attendance rows to %s", count, file_name)
        self._set_status(f"Exported {count} rows to CSV.", tone="success")
