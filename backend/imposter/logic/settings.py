"""Game constants and per-room configurable settings."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from imposter.logic.enums import GameErrorCode
from imposter.logic.exceptions import InvalidInputError

MIN_PLAYERS = 4
MAX_NAME_LENGTH = 20

ROOM_CODE_LENGTH = 6
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O, 1/I

NO_RESPONSE = "(No response)"
DISCONNECTED = "(Disconnected)"

MAX_CHAT_LENGTH = 200
CHAT_HISTORY_LIMIT = 100
CHAT_RATE_LIMIT = 5
CHAT_RATE_WINDOW_SECONDS = 10.0

DESCRIPTION_SECONDS_MIN = 5
DESCRIPTION_SECONDS_MAX = 60
VOTING_SECONDS_MIN = 15
VOTING_SECONDS_MAX = 180

SETTING_LIMITS: dict[str, tuple[int, int]] = {
    "description_seconds": (DESCRIPTION_SECONDS_MIN, DESCRIPTION_SECONDS_MAX),
    "voting_seconds": (VOTING_SECONDS_MIN, VOTING_SECONDS_MAX),
}


class RoomSettings(BaseModel):
    """Host-configurable timings; they persist across rounds."""

    model_config = ConfigDict(frozen=True)

    description_seconds: int = Field(default=10, ge=DESCRIPTION_SECONDS_MIN, le=DESCRIPTION_SECONDS_MAX)
    voting_seconds: int = Field(default=60, ge=VOTING_SECONDS_MIN, le=VOTING_SECONDS_MAX)


def validate_settings_changes(changes: dict[str, Any]) -> dict[str, int]:
    """Range-check a partial settings update; reject it as a whole on the first bad field.

    Fields set to None are treated as absent.
    """
    validated: dict[str, int] = {}
    for field_name, value in changes.items():
        if value is None:
            continue
        limits = SETTING_LIMITS.get(field_name)
        if limits is None:
            raise InvalidInputError(GameErrorCode.INVALID_VALUE, f"Unknown setting {field_name!r}", field=field_name)
        low, high = limits
        if isinstance(value, bool) or not isinstance(value, int) or not low <= value <= high:
            raise InvalidInputError(
                GameErrorCode.INVALID_VALUE,
                f"{field_name} must be between {low} and {high}",
                field=field_name,
                limits={"min": low, "max": high},
            )
        validated[field_name] = value
    return validated
