"""Deliver outbound messages to a room's players, whole-room or one player at a time."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, NamedTuple

from imposter.messaging.types import to_wire

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pydantic import BaseModel

    from imposter.logic.state import Room
    from imposter.messaging.protocol import ConnectionProtocol


class Outbound(NamedTuple):
    """One message and who gets it.

    ``player_id`` set: only that player. Otherwise every player in the room
    except ``exclude_player_id``.
    """

    message: BaseModel
    player_id: str | None = None
    exclude_player_id: str | None = None


async def deliver(room: Room, connections: dict[str, ConnectionProtocol], outbound: Iterable[Outbound]) -> None:
    """Send each outbound message to its recipients.

    Recipients are snapshotted via list() before any await so a concurrent
    leave cannot mutate the dict mid-iteration. Send failures to individual
    connections are ignored; their disconnect is handled separately.
    """
    for item in outbound:
        payload = to_wire(item.message)
        if item.player_id is not None:
            player = room.players.get(item.player_id)
            recipients = [player] if player is not None else []
        else:
            recipients = [p for p in list(room.players.values()) if p.id != item.exclude_player_id]
        for player in recipients:
            connection = connections.get(player.connection_id)
            if connection is None:
                continue
            with contextlib.suppress(RuntimeError, OSError):
                await connection.send_message(payload)
