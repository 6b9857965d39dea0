"""Drive a SessionManager through player actions with in-memory connections."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from imposter.logic import turn
from imposter.logic.enums import GamePhase
from imposter.logic.state import DescriptionStage
from imposter.tests.helpers.rooms import PLAYER_NAMES
from imposter.tests.mocks import MockConnection

if TYPE_CHECKING:
    from collections.abc import Callable

    from imposter.logic.state import Room
    from imposter.session.manager import SessionManager


async def create_lobby(manager: SessionManager, count: int = 4) -> tuple[Room, list[MockConnection]]:
    """Seat ``count`` players in a new room; Alice (connection 0) hosts. Outboxes start empty."""
    connections = [MockConnection(f"conn-{i}") for i in range(count)]
    for connection in connections:
        manager.register_connection(connection)
    await manager.create_room(connections[0], PLAYER_NAMES[0])
    code = connections[0].last_message("room_joined")["room"]["code"]
    for i in range(1, count):
        await manager.join_room(connections[i], code, PLAYER_NAMES[i])
    for connection in connections:
        connection.clear()
    room = manager.get_room(code)
    assert room is not None
    return room, connections


def connection_of(room: Room, connections: list[MockConnection], player_id: str) -> MockConnection:
    wanted = room.players[player_id].connection_id
    return next(c for c in connections if c.connection_id == wanted)


def connection_by_name(room: Room, connections: list[MockConnection], name: str) -> MockConnection:
    player = room.find_player_by_name(name)
    assert player is not None, f"{name} is not in room {room.code}"
    return connection_of(room, connections, player.id)


async def start_description_phase(manager: SessionManager, room: Room, connections: list[MockConnection]) -> None:
    """Start the game and let the host skip the role reveal."""
    host = connection_of(room, connections, room.host_id)
    await manager.start_game(host)
    await manager.advance_phase(host)


async def describe_all(manager: SessionManager, room: Room, connections: list[MockConnection]) -> None:
    """Have every remaining speaker submit a clue in turn order."""
    while room.phase == GamePhase.DESCRIPTION:
        speaker = turn.peek_current_speaker(room, room.require_stage(DescriptionStage))
        assert speaker is not None
        await manager.submit_description(connection_of(room, connections, speaker.id), f"clue from {speaker.name}")


async def vote_all(
    manager: SessionManager,
    room: Room,
    connections: list[MockConnection],
    votes: dict[str, str],
) -> None:
    """Cast ``voter name -> target name`` votes through the one-step path."""
    for voter, target in votes.items():
        target_player = room.find_player_by_name(target)
        assert target_player is not None
        await manager.submit_vote(connection_by_name(room, connections, voter), target_player.id)


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate`` holds; fail after ``timeout`` seconds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)
