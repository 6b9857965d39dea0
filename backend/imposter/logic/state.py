"""
Room and player records, with phase-scoped round state as a tagged variant.

``Room.stage`` holds exactly one stage object. Each stage class declares the
GamePhase it represents and carries only the fields that exist in that
phase, so e.g. speaking order can only be reached through a DescriptionStage,
VotingStage or ResultsStage.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, ClassVar, TypeVar

from imposter.logic.enums import GameErrorCode, GamePhase
from imposter.logic.exceptions import InvalidPhaseError, NotFoundError, PreconditionError
from imposter.logic.settings import RoomSettings
from imposter.logic.types import PlayerInfo, RoomView

if TYPE_CHECKING:
    from datetime import datetime

    from imposter.logic.types import ChatEntry, RoundResult
    from imposter.logic.words import WordPick


@dataclass
class Player:
    """A participant. ``connection_id`` is rebound in place on rejoin."""

    id: str
    name: str
    connection_id: str

    def info(self) -> PlayerInfo:
        return PlayerInfo(id=self.id, name=self.name)


@dataclass(frozen=True)
class RoundSecrets:
    """Hidden round data. ``imposter_name`` is captured at assignment time."""

    topic: str
    word: str
    imposter_id: str
    imposter_name: str


@dataclass
class ChatLog:
    messages: list[ChatEntry] = field(default_factory=list)
    sent_at: dict[str, list[float]] = field(default_factory=dict)  # player id -> send timestamps


@dataclass
class LobbyStage:
    phase: ClassVar[GamePhase] = GamePhase.LOBBY


@dataclass
class RoleRevealStage:
    phase: ClassVar[GamePhase] = GamePhase.ROLE_REVEAL

    secrets: RoundSecrets


@dataclass
class DescriptionStage:
    phase: ClassVar[GamePhase] = GamePhase.DESCRIPTION

    secrets: RoundSecrets
    speaking_order: list[str]
    speaker_names: dict[str, str]  # names captured at phase entry
    descriptions: dict[str, str] = field(default_factory=dict)
    current_index: int = 0

    @property
    def turns_exhausted(self) -> bool:
        return self.current_index >= len(self.speaking_order)


@dataclass
class VotingStage:
    phase: ClassVar[GamePhase] = GamePhase.VOTING

    secrets: RoundSecrets
    speaking_order: list[str]
    speaker_names: dict[str, str]
    descriptions: dict[str, str]
    pending_votes: dict[str, str] = field(default_factory=dict)
    confirmed_votes: dict[str, str] = field(default_factory=dict)
    chat: ChatLog = field(default_factory=ChatLog)


@dataclass
class ResultsStage:
    phase: ClassVar[GamePhase] = GamePhase.RESULTS

    secrets: RoundSecrets
    speaking_order: list[str]
    speaker_names: dict[str, str]
    descriptions: dict[str, str]
    result: RoundResult


@dataclass
class PostGameStage:
    phase: ClassVar[GamePhase] = GamePhase.POST_GAME

    secrets: RoundSecrets
    result: RoundResult


Stage = LobbyStage | RoleRevealStage | DescriptionStage | VotingStage | ResultsStage | PostGameStage
StageT = TypeVar("StageT", LobbyStage, RoleRevealStage, DescriptionStage, VotingStage, ResultsStage, PostGameStage)


@dataclass
class Room:
    code: str
    host_id: str
    created_at: datetime
    players: dict[str, Player] = field(default_factory=dict)  # insertion order is host succession order
    settings: RoomSettings = field(default_factory=RoomSettings)
    round_number: int = 1
    stage: Stage = field(default_factory=LobbyStage)
    last_pick: WordPick | None = None

    @property
    def phase(self) -> GamePhase:
        return self.stage.phase

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def is_empty(self) -> bool:
        return not self.players

    @property
    def round_secrets(self) -> RoundSecrets | None:
        if isinstance(self.stage, LobbyStage):
            return None
        return self.stage.secrets

    @property
    def topic(self) -> str | None:
        secrets = self.round_secrets
        return secrets.topic if secrets is not None else None

    def find_player_by_name(self, name: str) -> Player | None:
        wanted = name.casefold()
        return next((p for p in self.players.values() if p.name.casefold() == wanted), None)

    def require_player(self, player_id: str) -> Player:
        player = self.players.get(player_id)
        if player is None:
            raise NotFoundError(GameErrorCode.PLAYER_NOT_IN_ROOM, "Player is not in this room")
        return player

    def require_host(self, player_id: str) -> None:
        self.require_player(player_id)
        if player_id != self.host_id:
            raise PreconditionError(GameErrorCode.NOT_HOST, "Only the host can do that")

    def require_stage(self, stage_type: type[StageT]) -> StageT:
        if not isinstance(self.stage, stage_type):
            raise InvalidPhaseError(self.phase, (stage_type.phase,))
        return self.stage

    def require_phase(self, *phases: GamePhase) -> None:
        if self.phase not in phases:
            raise InvalidPhaseError(self.phase, phases)

    def view(self) -> RoomView:
        return RoomView(
            code=self.code,
            host_id=self.host_id,
            phase=self.phase,
            players=[p.info() for p in self.players.values()],
            player_count=self.player_count,
            round_number=self.round_number,
            settings=self.settings,
            topic=self.topic,
        )
