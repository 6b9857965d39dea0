"""In-memory room and player registry.

The registry is an explicit store object owned by the session layer; nothing
here is module-level state, so independent instances never interact.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from imposter.logic.enums import GameErrorCode, GamePhase
from imposter.logic.exceptions import CapacityError, InvalidInputError, NotFoundError, PreconditionError
from imposter.logic.rng import GameRandom
from imposter.logic.settings import MAX_NAME_LENGTH, ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH
from imposter.logic.state import Player, Room
from imposter.logic.types import JoinResult, RejoinMatch, RemovalResult

if TYPE_CHECKING:
    from collections.abc import Iterator

logger = structlog.get_logger()

JOINABLE_PHASES = (GamePhase.LOBBY, GamePhase.POST_GAME)


def normalize_name(name: str) -> str:
    """Trim a display name and enforce its length bounds."""
    trimmed = name.strip()
    if not 1 <= len(trimmed) <= MAX_NAME_LENGTH:
        raise InvalidInputError(
            GameErrorCode.NAME_LENGTH_INVALID,
            f"Name must be between 1 and {MAX_NAME_LENGTH} characters",
        )
    return trimmed


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RoomRegistry:
    """Own every live room and the connection -> player index.

    A room exists only while it has at least one player: removing the last
    player deletes it immediately.
    """

    def __init__(
        self,
        rng: GameRandom | None = None,
        *,
        max_rooms: int | None = None,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid4()),
    ) -> None:
        self._rng = rng or GameRandom()
        self._max_rooms = max_rooms
        self._clock = clock
        self._new_id = id_factory
        self._rooms: dict[str, Room] = {}
        self._connections: dict[str, tuple[str, str]] = {}  # connection_id -> (room_code, player_id)

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def rooms(self) -> Iterator[Room]:
        return iter(list(self._rooms.values()))

    def get_room(self, code: str) -> Room | None:
        return self._rooms.get(code.strip().upper())

    def require_room(self, code: str) -> Room:
        room = self.get_room(code)
        if room is None:
            raise NotFoundError(GameErrorCode.ROOM_NOT_FOUND, "Room does not exist")
        return room

    def locate(self, connection_id: str) -> tuple[Room, Player] | None:
        """Find the room and player currently bound to a connection."""
        entry = self._connections.get(connection_id)
        if entry is None:
            return None
        room_code, player_id = entry
        room = self._rooms.get(room_code)
        player = room.players.get(player_id) if room is not None else None
        if room is None or player is None or player.connection_id != connection_id:
            return None
        return room, player

    def create_room(self, name: str, connection_id: str) -> JoinResult:
        """Allocate a fresh room with the creator as host, in the lobby."""
        self._ensure_unbound(connection_id)
        display_name = normalize_name(name)
        if self._max_rooms is not None and len(self._rooms) >= self._max_rooms:
            raise CapacityError(GameErrorCode.SERVER_AT_CAPACITY, "Server is at room capacity")

        player = Player(id=self._new_id(), name=display_name, connection_id=connection_id)
        room = Room(code=self._allocate_code(), host_id=player.id, created_at=self._clock())
        room.players[player.id] = player
        self._rooms[room.code] = room
        self._connections[connection_id] = (room.code, player.id)
        logger.info("room created", room_code=room.code, player_id=player.id)
        return JoinResult(room, player)

    def join_room(self, code: str, name: str, connection_id: str) -> JoinResult:
        self._ensure_unbound(connection_id)
        room = self.require_room(code)
        display_name = normalize_name(name)
        if room.phase not in JOINABLE_PHASES:
            raise PreconditionError(GameErrorCode.GAME_IN_PROGRESS, "A round is in progress")
        if room.find_player_by_name(display_name) is not None:
            raise InvalidInputError(GameErrorCode.NAME_TAKEN, "That name is already taken in this room")

        player = Player(id=self._new_id(), name=display_name, connection_id=connection_id)
        room.players[player.id] = player
        self._connections[connection_id] = (room.code, player.id)
        logger.info("player joined", room_code=room.code, player_id=player.id, player_count=room.player_count)
        return JoinResult(room, player)

    def attempt_rejoin(self, code: str, name: str, connection_id: str) -> RejoinMatch | None:
        """Rebind an existing player (matched by name, any phase) to a new connection.

        Returns None when the room or the name is unknown; the caller then
        treats the request as a fresh join.
        """
        room = self.get_room(code)
        if room is None:
            return None
        player = room.find_player_by_name(name.strip())
        if player is None:
            return None
        bound = self._connections.get(connection_id)
        if bound is not None and bound != (room.code, player.id):
            raise PreconditionError(GameErrorCode.ALREADY_IN_ROOM, "Leave your current room first")

        previous_connection_id = player.connection_id
        if previous_connection_id != connection_id:
            self._connections.pop(previous_connection_id, None)
        player.connection_id = connection_id
        self._connections[connection_id] = (room.code, player.id)
        logger.info(
            "player rejoined",
            room_code=room.code,
            player_id=player.id,
            phase=room.phase,
            previous_connection_id=previous_connection_id,
        )
        return RejoinMatch(room, player, previous_connection_id)

    def remove_player(self, connection_id: str) -> RemovalResult | None:
        """Remove whoever is bound to ``connection_id``; delete the room if it empties."""
        located = self.locate(connection_id)
        self._connections.pop(connection_id, None)
        if located is None:
            return None
        room, player = located
        del room.players[player.id]

        if room.is_empty:
            del self._rooms[room.code]
            logger.info("room deleted", room_code=room.code)
            return RemovalResult(room, player, new_host_id=None, room_deleted=True)

        new_host_id = None
        if room.host_id == player.id:
            new_host_id = next(iter(room.players))
            room.host_id = new_host_id
            logger.info("host transferred", room_code=room.code, new_host_id=new_host_id)
        logger.info("player removed", room_code=room.code, player_id=player.id, player_count=room.player_count)
        return RemovalResult(room, player, new_host_id=new_host_id, room_deleted=False)

    def _ensure_unbound(self, connection_id: str) -> None:
        if self.locate(connection_id) is not None:
            raise PreconditionError(GameErrorCode.ALREADY_IN_ROOM, "Leave your current room first")

    def _allocate_code(self) -> str:
        while True:
            code = self._rng.token(ROOM_CODE_ALPHABET, ROOM_CODE_LENGTH)
            if code not in self._rooms:
                return code
