"""Voting-phase chat log with per-player sliding-window rate limiting."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from imposter.logic.enums import GameErrorCode
from imposter.logic.exceptions import CapacityError, InvalidInputError, PreconditionError
from imposter.logic.settings import CHAT_HISTORY_LIMIT, CHAT_RATE_LIMIT, CHAT_RATE_WINDOW_SECONDS, MAX_CHAT_LENGTH
from imposter.logic.state import VotingStage
from imposter.logic.types import ChatEntry

if TYPE_CHECKING:
    from imposter.logic.state import Room

logger = structlog.get_logger()


def add_chat_message(room: Room, player_id: str, text: str, now: float) -> ChatEntry:
    """Append a chat message; ``now`` is a wall-clock timestamp in seconds."""
    stage = room.stage
    if not isinstance(stage, VotingStage):
        raise PreconditionError(GameErrorCode.CHAT_NOT_AVAILABLE, "Chat is only open during voting")
    player = room.require_player(player_id)

    trimmed = text.strip()
    if not trimmed:
        raise InvalidInputError(GameErrorCode.EMPTY_MESSAGE, "Message is empty")
    if len(trimmed) > MAX_CHAT_LENGTH:
        raise InvalidInputError(GameErrorCode.MESSAGE_TOO_LONG, f"Messages are limited to {MAX_CHAT_LENGTH} characters")

    recent = [sent for sent in stage.chat.sent_at.get(player_id, []) if now - sent < CHAT_RATE_WINDOW_SECONDS]
    if len(recent) >= CHAT_RATE_LIMIT:
        raise CapacityError(GameErrorCode.RATE_LIMITED, "You are sending messages too quickly")
    recent.append(now)
    stage.chat.sent_at[player_id] = recent

    entry = ChatEntry(
        id=f"msg_{uuid4().hex[:12]}",
        sender_id=player.id,
        sender_name=player.name,
        text=trimmed,
        timestamp=now,
    )
    stage.chat.messages.append(entry)
    del stage.chat.messages[:-CHAT_HISTORY_LIMIT]
    logger.debug("chat message added", room_code=room.code, player_id=player_id)
    return entry


def chat_history(room: Room) -> list[ChatEntry]:
    if isinstance(room.stage, VotingStage):
        return list(room.stage.chat.messages)
    return []
