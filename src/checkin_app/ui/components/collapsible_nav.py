from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

import customtkinter as ctk

from checkin_app.ui.theme import (
    VS_ACCENT,
    VS_ACCENT_HOVER,
    VS_BORDER,
    VS_SIDEBAR,
    VS_SURFACE_ALT,
    VS_TEXT,
    VS_TEXT_MUTED,
)
from checkin_app.ui.utils import load_icon_image

ICON_SIZE: tuple[int, int] = (28, 28)
BUTTON_HEIGHT = ICON_SIZE[1] + 18


@dataclass(frozen=True)
class NavigationItem:
    key: str
    label: str
    icon_text: str | None = None
    icon_filename: str | None = None


class CollapsibleNav(ctk.CTkFrame):
    """Side navigation that shrinks to short icon labels."""

    def __init__(
        self,
        master,
        items: Iterable[NavigationItem],
        on_select: Callable[[str], None],
        *,
        width: int = 200,
    ) -> None:
        super().__init__(
            master,
            width=width,
            corner_radius=0,
            fg_color=VS_SIDEBAR,
            border_width=1,
            border_color=VS_BORDER,
        )
        self._items = list(items)
        self._on_select = on_select
        self._is_collapsed = False
        self._expanded_width = width
        self._collapsed_width = max(ICON_SIZE[0] + 44, 80)
        self._enabled = True
        self._selection_key: str | None = None

        self.grid_columnconfigure(0, weight=1)
        self.grid_propagate(False)

        self._toggle_button = ctk.CTkButton(
            self,
            text="☰",
            height=36,
            command=self.toggle,
            corner_radius=6,
            fg_color=VS_SURFACE_ALT,
            hover_color=VS_ACCENT_HOVER,
            text_color=VS_TEXT,
            font=ctk.CTkFont(size=20, weight="bold"),
        )
        self._toggle_button.grid(row=0, column=0, padx=8, pady=(12, 6), sticky="ew")

        self._icons = {
            item.key: load_icon_image(item.icon_filename, ICON_SIZE)[1] if item.icon_filename else None
            for item in self._items
        }
        self._buttons: dict[str, ctk.CTkButton] = {}
        button_font = ctk.CTkFont(size=16, weight="bold")
        for row_index, item in enumerate(self._items, start=1):
            button = ctk.CTkButton(
                self,
                text=item.label,
                anchor="w",
                command=lambda k=item.key: self.select(k),
                height=BUTTON_HEIGHT,
                fg_color=VS_SIDEBAR,
                hover_color=VS_SURFACE_ALT,
                text_color=VS_TEXT,
                font=button_font,
                border_width=1,
                border_color=VS_BORDER,
            )
            button.grid(row=row_index, column=0, padx=12, pady=4, sticky="ew")
            self._buttons[item.key] = button

        self.grid_rowconfigure(len(self._items) + 1, weight=1)
        self._apply_width()

    def select(self, key: str) -> None:
        if key not in self._buttons or not self._enabled:
            return
        if self._selection_key:
            self._buttons[self._selection_key].configure(fg_color=VS_SIDEBAR)
        self._buttons[key].configure(fg_color=VS_ACCENT)
        self._selection_key = key
        self._on_select(key)

    def toggle(self) -> None:
        if not self._enabled:
            return
        self._is_collapsed = not self._is_collapsed
        self._apply_width()

    def collapse(self) -> None:
        if not self._is_collapsed:
            self.toggle()

    def expand(self) -> None:
        if self._is_collapsed:
            self.toggle()

    def set_navigation_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        state = "normal" if enabled else "disabled"
        text_color = VS_TEXT if enabled else VS_TEXT_MUTED
        self._toggle_button.configure(state=state, text_color=text_color)
        for button in self._buttons.values():
            button.configure(state=state, text_color=text_color)

    def _apply_width(self) -> None:
        width = self._collapsed_width if self._is_collapsed else self._expanded_width
        self.configure(width=width)
        self._toggle_button.configure(text="➤" if self._is_collapsed else "☰")

        for item in self._items:
            button = self._buttons[item.key]
            icon = self._icons.get(item.key)
            if self._is_collapsed:
                text = "" if icon is not None else (item.icon_text or item.label[:2].upper())
                button.configure(text=text, image=icon, compound="center", anchor="center")
            else:
                button.configure(text=item.label, image=icon, compound="left", anchor="w")
