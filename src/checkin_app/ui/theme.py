from __future__ import annotations

# Surfaces
VS_BG = "#1E1E1E"
VS_SURFACE = "#252526"
VS_SURFACE_ALT = "#2D2D30"
VS_CARD = "#2F2F33"
VS_SIDEBAR = "#252526"

# Lines
VS_BORDER = "#3C3C3C"
VS_DIVIDER = "#2F2F2F"

# Accent
VS_ACCENT = "#0E639C"
VS_ACCENT_HOVER = "#1177BB"

# Text
VS_TEXT = "#F3F3F3"
VS_TEXT_MUTED = "#9DA5B4"

# Status
VS_SUCCESS = "#6A9955"
VS_WARNING = "#F48771"
VS_DANGER = "#F26D6D"
VS_DANGER_HOVER = "#D95A5A"

# Round badge
BADGE_UPCOMING = "#3794FF"
BADGE_COMPLETED = "#5A5A5E"

TONE_COLORS = {
    "info": VS_TEXT_MUTED,
    "success": VS_SUCCESS,
    "warning": VS_WARNING,
}


def tone_color(tone: str) -> str:
    return TONE_COLORS.get(tone, VS_TEXT_MUTED)
