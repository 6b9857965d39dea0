import asyncio

import pytest

from imposter.logic.enums import GamePhase, TimedPhase
from imposter.logic.settings import NO_RESPONSE
from imposter.messaging.types import SessionMessageType
from imposter.session.manager import SessionManager
from imposter.tests.helpers.session import create_lobby, describe_all, start_description_phase, vote_all, wait_for

FAST_TICK = 0.001


@pytest.fixture
async def fast_manager(rng):
    manager = SessionManager(rng=rng, tick_seconds=FAST_TICK, role_reveal_seconds=1, results_seconds=1)
    yield manager
    manager.cancel_all_timers()
    await asyncio.sleep(0)


async def _short_lobby(manager):
    room, connections = await create_lobby(manager)
    await manager.update_settings(connections[0], {"description_seconds": 5, "voting_seconds": 15})
    return room, connections


class TestTimerDrivenRound:
    async def test_reveal_countdown_ticks_then_opens_description(self, fast_manager):
        room, connections = await _short_lobby(fast_manager)

        await fast_manager.start_game(connections[0])
        await wait_for(lambda: room.phase == GamePhase.DESCRIPTION)

        ticks = [
            m["remaining_seconds"]
            for m in connections[1].messages_of_type(SessionMessageType.TIMER)
            if m["phase"] == TimedPhase.ROLE_REVEAL
        ]
        assert ticks == [1, 0]
        assert connections[1].messages_of_type(SessionMessageType.DESCRIPTION_PHASE_STARTED) != []

    async def test_silent_speakers_are_filled_on_timeout(self, fast_manager):
        room, connections = await _short_lobby(fast_manager)

        await fast_manager.start_game(connections[0])
        await wait_for(lambda: room.phase == GamePhase.VOTING)

        voting = connections[0].last_message(SessionMessageType.VOTING_STARTED)
        assert [entry["text"] for entry in voting["descriptions"]] == [NO_RESPONSE] * 4
        assert len(connections[0].messages_of_type(SessionMessageType.SPEAKER_CHANGED)) == 3

    async def test_voting_timeout_without_votes_is_a_tie(self, fast_manager):
        room, connections = await _short_lobby(fast_manager)
        await start_description_phase(fast_manager, room, connections)
        await describe_all(fast_manager, room, connections)
        imposter_id = room.round_secrets.imposter_id

        await wait_for(lambda: connections[2].messages_of_type(SessionMessageType.TIE_BREAKER) != [])

        assert room.round_secrets.imposter_id == imposter_id

    async def test_results_timer_moves_to_post_game(self, fast_manager):
        room, connections = await _short_lobby(fast_manager)
        await start_description_phase(fast_manager, room, connections)
        await describe_all(fast_manager, room, connections)
        votes = {"Alice": "Bob", "Carol": "Bob", "Dave": "Bob", "Bob": "Alice"}
        await vote_all(fast_manager, room, connections, votes)

        await wait_for(lambda: room.phase == GamePhase.POST_GAME)

        post_game = connections[3].last_message(SessionMessageType.POST_GAME)
        assert post_game["result"]["voted_out_player"]["name"] == "Bob"
        assert fast_manager.timers.has_timer(room.code) is False


class TestExpiryGuards:
    async def test_stale_expiry_is_dropped(self, session_manager):
        room, connections = await create_lobby(session_manager)
        await start_description_phase(session_manager, room, connections)
        for connection in connections:
            connection.clear()

        await session_manager._on_timer_expire(room.code, TimedPhase.ROLE_REVEAL)

        assert room.phase == GamePhase.DESCRIPTION
        assert all(connection.sent_messages == [] for connection in connections)

    async def test_expiry_for_deleted_room_is_ignored(self, session_manager):
        await session_manager._on_timer_expire("GONE42", TimedPhase.VOTING)

        assert session_manager.room_count == 0

    async def test_turn_expiry_after_round_complete_is_dropped(self, session_manager):
        room, connections = await create_lobby(session_manager)
        await start_description_phase(session_manager, room, connections)
        order = list(room.stage.speaking_order)
        await describe_all(session_manager, room, connections)

        await session_manager._on_timer_expire(room.code, TimedPhase.DESCRIPTION_TURN)

        assert room.phase == GamePhase.VOTING
        assert room.stage.descriptions[order[0]] == f"clue from {room.players[order[0]].name}"
