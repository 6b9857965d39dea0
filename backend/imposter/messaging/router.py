from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from imposter.logic.enums import GameErrorCode
from imposter.logic.exceptions import GameRuleError
from imposter.messaging.types import (
    AdvancePhaseMessage,
    ChatMessage,
    ConfirmVoteMessage,
    CreateRoomMessage,
    ErrorMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    PingMessage,
    PlayAgainMessage,
    SelectVoteMessage,
    StartGameMessage,
    SubmitDescriptionMessage,
    SubmitVoteMessage,
    UpdateSettingsMessage,
    parse_client_message,
    to_wire,
)

if TYPE_CHECKING:
    from imposter.messaging.protocol import ConnectionProtocol
    from imposter.messaging.types import ClientMessage
    from imposter.session.manager import SessionManager

logger = structlog.get_logger()


class MessageRouter:
    """
    Routes incoming messages to the session manager.

    This class contains pure dispatch logic and can be tested
    without real WebSocket connections. It is the catch site for rule
    violations caused by player actions: each becomes an error message to
    the originating connection only.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("invalid message", connection_id=connection.connection_id, error=str(e))
            await self.send_error(connection, GameErrorCode.INVALID_MESSAGE, "Invalid message")
            return

        try:
            await self._dispatch(connection, message)
        except GameRuleError as e:
            logger.info("action refused", connection_id=connection.connection_id, error_code=e.code)
            await self.send_error(connection, e.code, e.message, **e.details)

    async def _dispatch(self, connection: ConnectionProtocol, message: ClientMessage) -> None:  # noqa: PLR0912
        manager = self._session_manager
        if isinstance(message, CreateRoomMessage):
            await manager.create_room(connection, message.player_name)
        elif isinstance(message, JoinRoomMessage):
            await manager.join_room(connection, message.room_code, message.player_name)
        elif isinstance(message, LeaveRoomMessage):
            await manager.leave_room(connection)
        elif isinstance(message, UpdateSettingsMessage):
            await manager.update_settings(connection, message.changes())
        elif isinstance(message, StartGameMessage):
            await manager.start_game(connection)
        elif isinstance(message, AdvancePhaseMessage):
            await manager.advance_phase(connection)
        elif isinstance(message, SubmitDescriptionMessage):
            await manager.submit_description(connection, message.text)
        elif isinstance(message, SelectVoteMessage):
            await manager.select_vote(connection, message.target_player_id)
        elif isinstance(message, ConfirmVoteMessage):
            await manager.confirm_vote(connection)
        elif isinstance(message, SubmitVoteMessage):
            await manager.submit_vote(connection, message.target_player_id)
        elif isinstance(message, ChatMessage):
            await manager.send_chat(connection, message.text)
        elif isinstance(message, PlayAgainMessage):
            await manager.play_again(connection)
        elif isinstance(message, PingMessage):
            await manager.handle_ping(connection)

    async def send_error(
        self,
        connection: ConnectionProtocol,
        code: GameErrorCode,
        message: str,
        **details: Any,  # noqa: ANN401
    ) -> None:
        error = ErrorMessage(code=code, message=message, **details)
        with contextlib.suppress(RuntimeError, OSError):
            await connection.send_message(to_wire(error))

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.leave_room(connection, notify_player=False)
        self._session_manager.unregister_connection(connection)
