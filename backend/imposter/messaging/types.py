from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from imposter.logic.enums import GameErrorCode, GamePhase, TimedPhase
from imposter.logic.settings import RoomSettings
from imposter.logic.types import (
    ChatEntry,
    DescriptionEntry,
    PlayerInfo,
    RejoinSnapshot,
    RoomView,
    RoundResult,
    SpeakerInfo,
)

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F


def _reject_control_characters(value: str) -> str:
    if any((ord(c) < _SPACE_ORD and c not in ("\t", "\n", "\r")) or ord(c) == _DEL_ORD for c in value):
        raise ValueError("text must not contain control characters")
    return value


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"
    UPDATE_SETTINGS = "update_settings"
    START_GAME = "start_game"
    ADVANCE_PHASE = "advance_phase"
    SUBMIT_DESCRIPTION = "submit_description"
    SELECT_VOTE = "select_vote"
    CONFIRM_VOTE = "confirm_vote"
    SUBMIT_VOTE = "submit_vote"
    CHAT = "chat"
    PLAY_AGAIN = "play_again"
    PING = "ping"


class SessionMessageType(StrEnum):
    ROOM_JOINED = "room_joined"
    ROOM_LEFT = "room_left"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    PLAYER_RECONNECTED = "player_reconnected"
    PLAYER_DISCONNECTED = "player_disconnected"
    HOST_CHANGED = "host_changed"
    SETTINGS_UPDATED = "settings_updated"
    GAME_STARTED = "game_started"
    ROLE_ASSIGNED = "role_assigned"
    DESCRIPTION_PHASE_STARTED = "description_phase_started"
    SPEAKER_CHANGED = "speaker_changed"
    DESCRIPTION_SUBMITTED = "description_submitted"
    VOTING_STARTED = "voting_started"
    VOTE_SELECTED = "vote_selected"
    VOTE_PROGRESS = "vote_progress"
    CHAT_MESSAGE = "chat_message"
    TIMER = "timer"
    TIE_BREAKER = "tie_breaker"
    RESULTS = "results"
    POST_GAME = "post_game"
    ROOM_RESET = "room_reset"
    ERROR = "error"
    PONG = "pong"


_NAME_FIELD = Field(max_length=64)  # length rules proper are enforced by the registry


# --- client -> server ---


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    player_name: str = _NAME_FIELD


class JoinRoomMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    room_code: str = Field(min_length=1, max_length=16, pattern=r"^\s*[a-zA-Z0-9]+\s*$")
    player_name: str = _NAME_FIELD


class LeaveRoomMessage(BaseModel):
    type: Literal[ClientMessageType.LEAVE_ROOM] = ClientMessageType.LEAVE_ROOM


class UpdateSettingsMessage(BaseModel):
    type: Literal[ClientMessageType.UPDATE_SETTINGS] = ClientMessageType.UPDATE_SETTINGS
    description_seconds: int | None = None
    voting_seconds: int | None = None

    def changes(self) -> dict[str, Any]:
        return self.model_dump(exclude={"type"}, exclude_none=True)


class StartGameMessage(BaseModel):
    type: Literal[ClientMessageType.START_GAME] = ClientMessageType.START_GAME


class AdvancePhaseMessage(BaseModel):
    type: Literal[ClientMessageType.ADVANCE_PHASE] = ClientMessageType.ADVANCE_PHASE


class SubmitDescriptionMessage(BaseModel):
    type: Literal[ClientMessageType.SUBMIT_DESCRIPTION] = ClientMessageType.SUBMIT_DESCRIPTION
    text: str = Field(max_length=500)

    @field_validator("text")
    @classmethod
    def _validate_text(cls, v: str) -> str:
        return _reject_control_characters(v)


class SelectVoteMessage(BaseModel):
    type: Literal[ClientMessageType.SELECT_VOTE] = ClientMessageType.SELECT_VOTE
    target_player_id: str = Field(min_length=1, max_length=64)


class ConfirmVoteMessage(BaseModel):
    type: Literal[ClientMessageType.CONFIRM_VOTE] = ClientMessageType.CONFIRM_VOTE


class SubmitVoteMessage(BaseModel):
    type: Literal[ClientMessageType.SUBMIT_VOTE] = ClientMessageType.SUBMIT_VOTE
    target_player_id: str = Field(min_length=1, max_length=64)


class ChatMessage(BaseModel):
    type: Literal[ClientMessageType.CHAT] = ClientMessageType.CHAT
    text: str = Field(max_length=1000)

    @field_validator("text")
    @classmethod
    def _validate_text(cls, v: str) -> str:
        return _reject_control_characters(v)


class PlayAgainMessage(BaseModel):
    type: Literal[ClientMessageType.PLAY_AGAIN] = ClientMessageType.PLAY_AGAIN


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = Annotated[
    CreateRoomMessage
    | JoinRoomMessage
    | LeaveRoomMessage
    | UpdateSettingsMessage
    | StartGameMessage
    | AdvancePhaseMessage
    | SubmitDescriptionMessage
    | SelectVoteMessage
    | ConfirmVoteMessage
    | SubmitVoteMessage
    | ChatMessage
    | PlayAgainMessage
    | PingMessage,
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a raw decoded frame into a typed client message."""
    return _client_message_adapter.validate_python(data)


# --- server -> client ---


class RoomJoinedMessage(BaseModel):
    """Sent to the joining connection only; ``rejoin`` is set when a seat was reclaimed."""

    type: Literal[SessionMessageType.ROOM_JOINED] = SessionMessageType.ROOM_JOINED
    room: RoomView
    player: PlayerInfo
    rejoin: RejoinSnapshot | None = None


class RoomLeftMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_LEFT] = SessionMessageType.ROOM_LEFT


class PlayerJoinedMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_JOINED] = SessionMessageType.PLAYER_JOINED
    player: PlayerInfo
    room: RoomView


class PlayerLeftMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_LEFT] = SessionMessageType.PLAYER_LEFT
    player_id: str
    player_name: str
    room: RoomView
    new_host_id: str | None = None


class PlayerReconnectedMessage(BaseModel):
    type: Literal[SessionMessageType.PLAYER_RECONNECTED] = SessionMessageType.PLAYER_RECONNECTED
    player_id: str
    player_name: str


class PlayerDisconnectedMessage(BaseModel):
    """Mid-game departure notice, sent in addition to player_left."""

    type: Literal[SessionMessageType.PLAYER_DISCONNECTED] = SessionMessageType.PLAYER_DISCONNECTED
    player_id: str
    player_name: str
    phase: GamePhase


class HostChangedMessage(BaseModel):
    type: Literal[SessionMessageType.HOST_CHANGED] = SessionMessageType.HOST_CHANGED
    new_host_id: str
    room: RoomView


class SettingsUpdatedMessage(BaseModel):
    type: Literal[SessionMessageType.SETTINGS_UPDATED] = SessionMessageType.SETTINGS_UPDATED
    settings: RoomSettings
    room: RoomView


class GameStartedMessage(BaseModel):
    type: Literal[SessionMessageType.GAME_STARTED] = SessionMessageType.GAME_STARTED
    room: RoomView
    topic: str


class RoleAssignedMessage(BaseModel):
    """Private role. Must only ever be unicast."""

    type: Literal[SessionMessageType.ROLE_ASSIGNED] = SessionMessageType.ROLE_ASSIGNED
    is_imposter: bool
    topic: str
    word: str | None = None


class DescriptionPhaseStartedMessage(BaseModel):
    type: Literal[SessionMessageType.DESCRIPTION_PHASE_STARTED] = SessionMessageType.DESCRIPTION_PHASE_STARTED
    room: RoomView
    speaking_order: list[PlayerInfo]
    current_speaker: SpeakerInfo | None = None


class SpeakerChangedMessage(BaseModel):
    type: Literal[SessionMessageType.SPEAKER_CHANGED] = SessionMessageType.SPEAKER_CHANGED
    speaking_order: list[PlayerInfo]
    current_speaker: SpeakerInfo | None = None


class DescriptionSubmittedMessage(BaseModel):
    type: Literal[SessionMessageType.DESCRIPTION_SUBMITTED] = SessionMessageType.DESCRIPTION_SUBMITTED
    player_id: str
    player_name: str
    description: str
    submitted_count: int
    total_players: int


class VotingStartedMessage(BaseModel):
    type: Literal[SessionMessageType.VOTING_STARTED] = SessionMessageType.VOTING_STARTED
    room: RoomView
    descriptions: list[DescriptionEntry]


class VoteSelectedMessage(BaseModel):
    """Echo of a pending selection, to the voter only."""

    type: Literal[SessionMessageType.VOTE_SELECTED] = SessionMessageType.VOTE_SELECTED
    target_player_id: str


class VoteProgressMessage(BaseModel):
    """Broadcast vote progress. Deliberately carries no voter or target."""

    type: Literal[SessionMessageType.VOTE_PROGRESS] = SessionMessageType.VOTE_PROGRESS
    confirmed_count: int
    total_players: int


class ChatBroadcastMessage(BaseModel):
    type: Literal[SessionMessageType.CHAT_MESSAGE] = SessionMessageType.CHAT_MESSAGE
    message: ChatEntry


class TimerMessage(BaseModel):
    type: Literal[SessionMessageType.TIMER] = SessionMessageType.TIMER
    phase: TimedPhase
    remaining_seconds: int


class TieBreakerMessage(BaseModel):
    type: Literal[SessionMessageType.TIE_BREAKER] = SessionMessageType.TIE_BREAKER
    room: RoomView
    topic: str
    speaking_order: list[PlayerInfo]
    current_speaker: SpeakerInfo | None = None


class ResultsMessage(BaseModel):
    type: Literal[SessionMessageType.RESULTS] = SessionMessageType.RESULTS
    room: RoomView
    result: RoundResult


class PostGameMessage(BaseModel):
    type: Literal[SessionMessageType.POST_GAME] = SessionMessageType.POST_GAME
    room: RoomView
    result: RoundResult


class RoomResetMessage(BaseModel):
    type: Literal[SessionMessageType.ROOM_RESET] = SessionMessageType.ROOM_RESET
    room: RoomView


class ErrorMessage(BaseModel):
    type: Literal[SessionMessageType.ERROR] = SessionMessageType.ERROR
    code: GameErrorCode
    message: str
    required: int | None = None
    current: int | None = None
    field: str | None = None
    limits: dict[str, int] | None = None


class PongMessage(BaseModel):
    type: Literal[SessionMessageType.PONG] = SessionMessageType.PONG


def to_wire(message: BaseModel) -> dict[str, Any]:
    """Serialize a server message; unset optional fields are omitted on the wire."""
    return message.model_dump(exclude_none=True)
