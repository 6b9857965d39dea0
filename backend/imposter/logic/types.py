"""
Pydantic view models and operation results that cross the core boundary.

View models are the only shapes the session layer serializes to clients.
None of the multi-recipient views carry the secret word or the imposter's
id; the word only ever travels inside a per-player RolePayload.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, NamedTuple

from pydantic import BaseModel, ConfigDict

from imposter.logic.enums import GamePhase  # noqa: TC001
from imposter.logic.settings import RoomSettings  # noqa: TC001

if TYPE_CHECKING:
    from imposter.logic.state import Player, Room


class PlayerInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str


class SpeakerInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    index: int


class RoomView(BaseModel):
    """Public room state. Never includes the word or the imposter."""

    code: str
    host_id: str
    phase: GamePhase
    players: list[PlayerInfo]
    player_count: int
    round_number: int
    settings: RoomSettings
    topic: str | None = None


class RolePayload(BaseModel):
    """Private role delivered to exactly one player."""

    model_config = ConfigDict(frozen=True)

    is_imposter: bool
    topic: str
    word: str | None = None


class DescriptionEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    player_name: str
    text: str


class VoteCount(BaseModel):
    model_config = ConfigDict(frozen=True)

    player_id: str
    player_name: str
    votes: int


class RoundResult(BaseModel):
    """Outcome of a decided round, stored and replayed verbatim on rejoin."""

    model_config = ConfigDict(frozen=True)

    voted_out_player: PlayerInfo
    imposter_name: str
    players_win: bool
    vote_summary: list[VoteCount]
    secret_word: str


class Progress(BaseModel):
    count: int
    total: int


class ChatEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    sender_id: str
    sender_name: str
    text: str
    timestamp: float


class RejoinSnapshot(BaseModel):
    """Point-in-time view for a reconnecting player.

    Every field is derived from stored round state; fields that do not apply
    to the current phase are left as None.
    """

    room: RoomView
    player: PlayerInfo
    phase: GamePhase
    topic: str | None = None
    round_number: int
    settings: RoomSettings
    is_imposter: bool | None = None
    word: str | None = None
    speaking_order: list[PlayerInfo] | None = None
    current_speaker: SpeakerInfo | None = None
    current_speaker_index: int | None = None
    has_submitted_description: bool | None = None
    submission_progress: Progress | None = None
    descriptions: list[DescriptionEntry] | None = None
    selected_vote: str | None = None
    has_voted: bool | None = None
    confirm_progress: Progress | None = None
    chat_messages: list[ChatEntry] | None = None
    results: RoundResult | None = None
    remaining_seconds: int | None = None


# --- operation results ---


class JoinResult(NamedTuple):
    room: Room
    player: Player


class RemovalResult(NamedTuple):
    room: Room
    player: Player
    new_host_id: str | None
    room_deleted: bool


class RejoinMatch(NamedTuple):
    room: Room
    player: Player
    previous_connection_id: str


class GameStart(NamedTuple):
    topic: str
    roles: dict[str, RolePayload]  # player id -> payload


class DescriptionPhaseStart(NamedTuple):
    speaking_order: list[PlayerInfo]
    current_speaker: SpeakerInfo | None


class CurrentSpeaker(NamedTuple):
    speaker: SpeakerInfo | None
    speaking_order: list[PlayerInfo]
    all_complete: bool


class SubmissionResult(NamedTuple):
    player: PlayerInfo | None  # None when a timeout only skipped departed speakers
    text: str | None
    submitted_count: int
    total_players: int
    round_complete: bool
    next_speaker: SpeakerInfo | None


class VoteProgress(NamedTuple):
    confirmed_count: int
    total_players: int
    all_confirmed: bool


class VoteResolution(NamedTuple):
    is_tie: bool
    result: RoundResult | None
    tied_player_ids: list[str]
    max_votes: int


class TieRestart(NamedTuple):
    topic: str
    roles: dict[str, RolePayload]
    speaking_order: list[PlayerInfo]
    current_speaker: SpeakerInfo | None


class DisconnectReport(NamedTuple):
    phase: GamePhase
    auto_submitted: bool = False
    was_current_speaker: bool = False
    description_complete: bool = False
    voting_complete: bool = False
