from __future__ import annotations

import contextlib
import time
from typing import TYPE_CHECKING, Any

import structlog

from imposter.logic import chat, phases, turn, voting
from imposter.logic.enums import GameErrorCode, GamePhase, TimedPhase
from imposter.logic.exceptions import GameRuleError, InvalidPhaseError, NotFoundError
from imposter.logic.registry import RoomRegistry
from imposter.logic.rejoin import build_rejoin_snapshot
from imposter.logic.rng import GameRandom
from imposter.logic.timer import DEFAULT_TICK_SECONDS
from imposter.messaging.types import (
    ChatBroadcastMessage,
    DescriptionPhaseStartedMessage,
    DescriptionSubmittedMessage,
    GameStartedMessage,
    HostChangedMessage,
    PlayerDisconnectedMessage,
    PlayerJoinedMessage,
    PlayerLeftMessage,
    PlayerReconnectedMessage,
    PongMessage,
    PostGameMessage,
    ResultsMessage,
    RoleAssignedMessage,
    RoomJoinedMessage,
    RoomLeftMessage,
    RoomResetMessage,
    SettingsUpdatedMessage,
    SpeakerChangedMessage,
    TieBreakerMessage,
    TimerMessage,
    VoteProgressMessage,
    VoteSelectedMessage,
    VotingStartedMessage,
    to_wire,
)
from imposter.session.broadcast import Outbound, deliver
from imposter.session.timer_manager import TimerManager

if TYPE_CHECKING:
    from collections.abc import Callable

    from imposter.logic.state import Player, Room
    from imposter.logic.types import DisconnectReport, RolePayload, RoomView, SubmissionResult, VoteProgress
    from imposter.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()

# phases in which a departure is announced as a mid-round disconnect
_ROUND_PHASES = (GamePhase.ROLE_REVEAL, GamePhase.DESCRIPTION, GamePhase.VOTING, GamePhase.RESULTS)


class SessionManager:
    """Orchestrates rooms: player actions and timer events in, broadcasts out.

    Every trigger is handled in two steps. First the core operations and the
    timer changes run synchronously and produce a list of Outbound messages;
    nothing is awaited until the room is in its new state. Then the messages
    are delivered. Because the planning step never suspends, two triggers
    racing for the same room are resolved purely by the core's phase checks.

    Player-initiated methods let GameRuleError propagate to the caller
    (the MessageRouter). Timer and disconnect paths log and drop it.
    """

    def __init__(
        self,
        *,
        rng: GameRandom | None = None,
        max_rooms: int | None = None,
        role_reveal_seconds: int = 10,
        results_seconds: int = 5,
        tick_seconds: float = DEFAULT_TICK_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rng = rng or GameRandom()
        self._registry = RoomRegistry(self._rng, max_rooms=max_rooms)
        self._timers = TimerManager(tick_seconds=tick_seconds)
        self._role_reveal_seconds = role_reveal_seconds
        self._results_seconds = results_seconds
        self._clock = clock
        self._connections: dict[str, ConnectionProtocol] = {}

    # --- connections ---

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def unregister_connection(self, connection: ConnectionProtocol) -> None:
        self._connections.pop(connection.connection_id, None)

    @property
    def registry(self) -> RoomRegistry:
        return self._registry

    @property
    def timers(self) -> TimerManager:
        return self._timers

    @property
    def room_count(self) -> int:
        return self._registry.room_count

    def get_room(self, room_code: str) -> Room | None:
        return self._registry.get_room(room_code)

    def room_view(self, room_code: str) -> RoomView | None:
        room = self._registry.get_room(room_code)
        return room.view() if room is not None else None

    def cancel_all_timers(self) -> None:
        self._timers.cancel_all()

    def _require_seat(self, connection: ConnectionProtocol) -> tuple[Room, Player]:
        located = self._registry.locate(connection.connection_id)
        if located is None:
            raise NotFoundError(GameErrorCode.PLAYER_NOT_IN_ROOM, "You are not in a room")
        return located

    async def _deliver(self, room: Room, outbound: list[Outbound]) -> None:
        await deliver(room, self._connections, outbound)

    # --- room membership ---

    async def create_room(self, connection: ConnectionProtocol, player_name: str) -> None:
        room, player = self._registry.create_room(player_name, connection.connection_id)
        await self._deliver(room, [Outbound(RoomJoinedMessage(room=room.view(), player=player.info()), player.id)])

    async def join_room(self, connection: ConnectionProtocol, room_code: str, player_name: str) -> None:
        """Join a room, or reclaim an existing seat when the name is already in it."""
        match = self._registry.attempt_rejoin(room_code, player_name, connection.connection_id)
        if match is not None:
            room, player = match.room, match.player
            snapshot = build_rejoin_snapshot(room, player.id).model_copy(
                update={"remaining_seconds": self._timers.remaining(room.code)},
            )
            outbound = [
                Outbound(RoomJoinedMessage(room=room.view(), player=player.info(), rejoin=snapshot), player.id),
                Outbound(
                    PlayerReconnectedMessage(player_id=player.id, player_name=player.name),
                    exclude_player_id=player.id,
                ),
            ]
            await self._deliver(room, outbound)
            return

        room, player = self._registry.join_room(room_code, player_name, connection.connection_id)
        view = room.view()
        outbound = [
            Outbound(RoomJoinedMessage(room=view, player=player.info()), player.id),
            Outbound(PlayerJoinedMessage(player=player.info(), room=view), exclude_player_id=player.id),
        ]
        await self._deliver(room, outbound)

    async def leave_room(self, connection: ConnectionProtocol, *, notify_player: bool = True) -> None:
        """Remove the connection's player; doubles as the disconnect handler.

        Mid-round cleanup runs while the player is still registered, then the
        player is removed, and finally the phase is re-checked for completion.
        """
        located = self._registry.locate(connection.connection_id)
        if located is None:
            return
        room, player = located
        with structlog.contextvars.bound_contextvars(room_code=room.code):
            report = None
            if room.phase != GamePhase.LOBBY:
                report = phases.handle_disconnect_mid_game(room, player.id)
            removal = self._registry.remove_player(connection.connection_id)
            outbound: list[Outbound] = []
            if removal is not None and removal.room_deleted:
                self._timers.clear(room.code)
            elif removal is not None:
                outbound = self._plan_departure(room, player, removal.new_host_id, report)

        if notify_player:
            with contextlib.suppress(RuntimeError, OSError):
                await connection.send_message(to_wire(RoomLeftMessage()))
        await self._deliver(room, outbound)

    def _plan_departure(
        self,
        room: Room,
        player: Player,
        new_host_id: str | None,
        report: DisconnectReport | None,
    ) -> list[Outbound]:
        view = room.view()
        outbound = [
            Outbound(
                PlayerLeftMessage(player_id=player.id, player_name=player.name, room=view, new_host_id=new_host_id),
            ),
        ]
        if new_host_id is not None:
            outbound.append(Outbound(HostChangedMessage(new_host_id=new_host_id, room=view)))
        if report is None or report.phase not in _ROUND_PHASES:
            return outbound

        outbound.append(
            Outbound(PlayerDisconnectedMessage(player_id=player.id, player_name=player.name, phase=report.phase)),
        )
        try:
            outbound.extend(self._plan_after_departure(room, report))
        except GameRuleError as e:
            logger.warning("departure follow-up dropped", error_code=e.code, error_message=e.message)
        return outbound

    def _plan_after_departure(self, room: Room, report: DisconnectReport) -> list[Outbound]:
        if report.phase == GamePhase.DESCRIPTION:
            if report.description_complete:
                return self._plan_voting_start(room)
            if report.was_current_speaker:
                return self._plan_next_turn(room)
            return []
        if report.phase == GamePhase.VOTING:
            if report.voting_complete:
                return self._plan_resolution(room)
            return [Outbound(self._vote_progress_message(voting.vote_progress(room)))]
        return []

    async def update_settings(self, connection: ConnectionProtocol, changes: dict[str, Any]) -> None:
        room, player = self._require_seat(connection)
        settings = phases.update_settings(room, player.id, changes)
        await self._deliver(room, [Outbound(SettingsUpdatedMessage(settings=settings, room=room.view()))])

    # --- round flow ---

    async def start_game(self, connection: ConnectionProtocol) -> None:
        room, player = self._require_seat(connection)
        started = phases.start_game(room, player.id, self._rng)
        self._start_timer(room, TimedPhase.ROLE_REVEAL, self._role_reveal_seconds)
        outbound = [Outbound(GameStartedMessage(room=room.view(), topic=started.topic))]
        outbound.extend(self._role_messages(started.roles))
        await self._deliver(room, outbound)

    async def advance_phase(self, connection: ConnectionProtocol) -> None:
        """Host override: finish the current timed phase now, as its timer would."""
        room, player = self._require_seat(connection)
        room.require_host(player.id)
        if room.phase == GamePhase.ROLE_REVEAL:
            outbound = self._plan_description_start(room)
        elif room.phase == GamePhase.DESCRIPTION:
            turn.auto_submit_missing_descriptions(room)
            outbound = self._plan_voting_start(room)
        elif room.phase == GamePhase.VOTING:
            voting.auto_confirm_pending_votes(room)
            outbound = self._plan_resolution(room)
        elif room.phase == GamePhase.RESULTS:
            outbound = self._plan_post_game(room)
        else:
            raise InvalidPhaseError(
                room.phase,
                (GamePhase.ROLE_REVEAL, GamePhase.DESCRIPTION, GamePhase.VOTING, GamePhase.RESULTS),
            )
        logger.info("host advanced phase", room_code=room.code, phase=room.phase)
        await self._deliver(room, outbound)

    async def submit_description(self, connection: ConnectionProtocol, text: str) -> None:
        room, player = self._require_seat(connection)
        result = turn.submit_description(room, player.id, text)
        await self._deliver(room, self._plan_after_submission(room, result))

    async def select_vote(self, connection: ConnectionProtocol, target_player_id: str) -> None:
        room, player = self._require_seat(connection)
        voting.select_vote(room, player.id, target_player_id)
        await self._deliver(room, [Outbound(VoteSelectedMessage(target_player_id=target_player_id), player.id)])

    async def confirm_vote(self, connection: ConnectionProtocol) -> None:
        room, player = self._require_seat(connection)
        progress = voting.confirm_vote(room, player.id)
        await self._deliver(room, self._plan_after_vote(room, progress))

    async def submit_vote(self, connection: ConnectionProtocol, target_player_id: str) -> None:
        room, player = self._require_seat(connection)
        progress = voting.submit_vote(room, player.id, target_player_id)
        await self._deliver(room, self._plan_after_vote(room, progress))

    async def send_chat(self, connection: ConnectionProtocol, text: str) -> None:
        room, player = self._require_seat(connection)
        entry = chat.add_chat_message(room, player.id, text, self._clock())
        await self._deliver(room, [Outbound(ChatBroadcastMessage(message=entry))])

    async def play_again(self, connection: ConnectionProtocol) -> None:
        room, player = self._require_seat(connection)
        phases.reset_room_for_new_game(room, player.id)
        self._timers.clear(room.code)
        await self._deliver(room, [Outbound(RoomResetMessage(room=room.view()))])

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await connection.send_message(to_wire(PongMessage()))

    # --- planning (synchronous: mutate, schedule, describe what to send) ---

    def _role_messages(self, roles: dict[str, RolePayload]) -> list[Outbound]:
        return [
            Outbound(RoleAssignedMessage(is_imposter=role.is_imposter, topic=role.topic, word=role.word), player_id)
            for player_id, role in roles.items()
        ]

    @staticmethod
    def _vote_progress_message(progress: VoteProgress) -> VoteProgressMessage:
        return VoteProgressMessage(confirmed_count=progress.confirmed_count, total_players=progress.total_players)

    def _plan_description_start(self, room: Room) -> list[Outbound]:
        started = phases.transition_to_description_phase(room, self._rng)
        self._start_timer(room, TimedPhase.DESCRIPTION_TURN, room.settings.description_seconds)
        message = DescriptionPhaseStartedMessage(
            room=room.view(),
            speaking_order=started.speaking_order,
            current_speaker=started.current_speaker,
        )
        return [Outbound(message)]

    def _plan_next_turn(self, room: Room) -> list[Outbound]:
        current = turn.get_current_speaker(room)
        if current.all_complete:
            return self._plan_voting_start(room)
        self._start_timer(room, TimedPhase.DESCRIPTION_TURN, room.settings.description_seconds)
        return [Outbound(SpeakerChangedMessage(speaking_order=current.speaking_order, current_speaker=current.speaker))]

    def _plan_after_submission(self, room: Room, result: SubmissionResult) -> list[Outbound]:
        outbound = []
        if result.player is not None and result.text is not None:
            message = DescriptionSubmittedMessage(
                player_id=result.player.id,
                player_name=result.player.name,
                description=result.text,
                submitted_count=result.submitted_count,
                total_players=result.total_players,
            )
            outbound.append(Outbound(message))
        if result.round_complete:
            outbound.extend(self._plan_voting_start(room))
        else:
            outbound.extend(self._plan_next_turn(room))
        return outbound

    def _plan_voting_start(self, room: Room) -> list[Outbound]:
        descriptions = phases.transition_to_voting_phase(room)
        self._start_timer(room, TimedPhase.VOTING, room.settings.voting_seconds)
        return [Outbound(VotingStartedMessage(room=room.view(), descriptions=descriptions))]

    def _plan_after_vote(self, room: Room, progress: VoteProgress) -> list[Outbound]:
        outbound = [Outbound(self._vote_progress_message(progress))]
        if progress.all_confirmed:
            outbound.extend(self._plan_resolution(room))
        return outbound

    def _plan_resolution(self, room: Room) -> list[Outbound]:
        """Resolve the vote; a tie replays the round with the same imposter."""
        resolution = voting.calculate_vote_results(room)
        if resolution.result is not None:
            self._start_timer(room, TimedPhase.RESULTS, self._results_seconds)
            return [Outbound(ResultsMessage(room=room.view(), result=resolution.result))]

        restart = phases.restart_round_with_same_imposter(room, self._rng)
        self._start_timer(room, TimedPhase.DESCRIPTION_TURN, room.settings.description_seconds)
        message = TieBreakerMessage(
            room=room.view(),
            topic=restart.topic,
            speaking_order=restart.speaking_order,
            current_speaker=restart.current_speaker,
        )
        return [Outbound(message), *self._role_messages(restart.roles)]

    def _plan_post_game(self, room: Room) -> list[Outbound]:
        result = phases.transition_to_post_game(room)
        self._timers.clear(room.code)
        return [Outbound(PostGameMessage(room=room.view(), result=result))]

    def _plan_expiry(self, room: Room, phase: TimedPhase) -> list[Outbound]:
        if phase == TimedPhase.ROLE_REVEAL:
            return self._plan_description_start(room)
        if phase == TimedPhase.DESCRIPTION_TURN:
            return self._plan_after_submission(room, turn.auto_submit_current_speaker(room))
        if phase == TimedPhase.VOTING:
            voting.auto_confirm_pending_votes(room)
            return self._plan_resolution(room)
        return self._plan_post_game(room)

    # --- timers ---

    def _start_timer(self, room: Room, phase: TimedPhase, duration: int) -> None:
        self._timers.start(room.code, phase, duration, self._on_timer_tick, self._on_timer_expire)

    async def _on_timer_tick(self, room_code: str, phase: TimedPhase, remaining: int) -> None:
        room = self._registry.get_room(room_code)
        if room is None:
            return
        await self._deliver(room, [Outbound(TimerMessage(phase=phase, remaining_seconds=remaining))])

    async def _on_timer_expire(self, room_code: str, phase: TimedPhase) -> None:
        with structlog.contextvars.bound_contextvars(room_code=room_code, timer_phase=phase):
            room = self._registry.get_room(room_code)
            if room is None:
                logger.info("timer expired for a room that no longer exists")
                return
            try:
                outbound = self._plan_expiry(room, phase)
            except GameRuleError as e:
                logger.info("timer expiry dropped", error_code=e.code, error_message=e.message)
                return
            logger.debug("timer expired", phase=room.phase)
        await self._deliver(room, outbound)
