from __future__ import annotations

from checkin_app.errors import ValidationError

EMPTY_CODE_MESSAGE = "Please enter a team code"
NON_NUMERIC_CODE_MESSAGE = "Team code must be numeric"


def clean_manual_code(text: str | None) -> str:
    """Validate keyboard input before it is allowed anywhere near the store."""

    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationError(EMPTY_CODE_MESSAGE)

    # str.isdigit() accepts superscripts and other non-ASCII digits
    if not (cleaned.isascii() and cleaned.isdigit()):
        raise ValidationError(NON_NUMERIC_CODE_MESSAGE)

    return cleaned


def parse_team_code(text: str | None) -> int:
    return int(clean_manual_code(text))
