import pytest

from imposter.logic.enums import GameErrorCode, GamePhase, TimedPhase
from imposter.logic.exceptions import GameRuleError
from imposter.logic.settings import NO_RESPONSE
from imposter.messaging.types import SessionMessageType
from imposter.tests.helpers.session import (
    connection_by_name,
    connection_of,
    create_lobby,
    describe_all,
    start_description_phase,
    vote_all,
)


def _leaves(value):
    if isinstance(value, dict):
        for item in value.values():
            yield from _leaves(item)
    elif isinstance(value, list):
        for item in value:
            yield from _leaves(item)
    else:
        yield value


def _keys(value):
    if isinstance(value, dict):
        for key, item in value.items():
            yield key
            yield from _keys(item)
    elif isinstance(value, list):
        for item in value:
            yield from _keys(item)


def _names(room):
    return [player.name for player in room.players.values()]


def _imposter_name(room):
    return room.round_secrets.imposter_name


async def _reach_voting(manager):
    room, connections = await create_lobby(manager)
    await start_description_phase(manager, room, connections)
    await describe_all(manager, room, connections)
    for connection in connections:
        connection.clear()
    return room, connections


class TestStartGame:
    async def test_roles_are_private_with_exactly_one_imposter(self, session_manager):
        room, connections = await create_lobby(session_manager)

        await session_manager.start_game(connections[0])

        secrets = room.round_secrets
        for connection in connections:
            assert len(connection.messages_of_type(SessionMessageType.ROLE_ASSIGNED)) == 1
        roles = [c.last_message(SessionMessageType.ROLE_ASSIGNED) for c in connections]
        imposters = [role for role in roles if role["is_imposter"]]
        assert len(imposters) == 1
        assert "word" not in imposters[0]
        assert all(role["word"] == secrets.word for role in roles if not role["is_imposter"])
        assert all(role["topic"] == secrets.topic for role in roles)
        imposter_connection = connection_of(room, connections, secrets.imposter_id)
        assert imposter_connection.last_message(SessionMessageType.ROLE_ASSIGNED)["is_imposter"] is True

    async def test_game_started_broadcast_and_reveal_timer(self, session_manager):
        room, connections = await create_lobby(session_manager)

        await session_manager.start_game(connections[0])

        for connection in connections:
            started = connection.last_message(SessionMessageType.GAME_STARTED)
            assert started["room"]["phase"] == GamePhase.ROLE_REVEAL
            assert started["topic"] == room.topic
        assert session_manager.timers.timer_phase(room.code) == TimedPhase.ROLE_REVEAL

    async def test_only_host_can_start(self, session_manager):
        _, connections = await create_lobby(session_manager)

        with pytest.raises(GameRuleError) as exc_info:
            await session_manager.start_game(connections[1])

        assert exc_info.value.code == GameErrorCode.NOT_HOST

    async def test_broadcasts_never_carry_round_secrets(self, session_manager):
        room, connections = await create_lobby(session_manager)
        await start_description_phase(session_manager, room, connections)
        await describe_all(session_manager, room, connections)
        host = connection_of(room, connections, room.host_id)
        await session_manager.send_chat(host, "who was vague?")

        word = room.round_secrets.word
        for connection in connections:
            for message in connection.sent_messages:
                if message["type"] == SessionMessageType.ROLE_ASSIGNED:
                    continue
                assert word not in set(_leaves(message)), message["type"]
                assert "imposter_id" not in set(_keys(message))
                assert "word" not in set(_keys(message))


class TestDescriptionPhase:
    async def test_host_skips_reveal_into_first_turn(self, session_manager):
        room, connections = await create_lobby(session_manager)
        await session_manager.start_game(connections[0])

        await session_manager.advance_phase(connections[0])

        started = connections[2].last_message(SessionMessageType.DESCRIPTION_PHASE_STARTED)
        assert len(started["speaking_order"]) == 4
        assert started["current_speaker"]["index"] == 0
        assert started["current_speaker"]["id"] == started["speaking_order"][0]["id"]
        assert room.phase == GamePhase.DESCRIPTION
        assert session_manager.timers.timer_phase(room.code) == TimedPhase.DESCRIPTION_TURN

    async def test_out_of_turn_submission_refused(self, session_manager):
        room, connections = await create_lobby(session_manager)
        await start_description_phase(session_manager, room, connections)
        order = room.stage.speaking_order

        with pytest.raises(GameRuleError) as exc_info:
            await session_manager.submit_description(connection_of(room, connections, order[1]), "too early")

        assert exc_info.value.code == GameErrorCode.NOT_YOUR_TURN

    async def test_submission_broadcasts_and_passes_turn(self, session_manager):
        room, connections = await create_lobby(session_manager)
        await start_description_phase(session_manager, room, connections)
        order = room.stage.speaking_order

        await session_manager.submit_description(connection_of(room, connections, order[0]), "  round and sweet  ")

        submitted = connections[3].last_message(SessionMessageType.DESCRIPTION_SUBMITTED)
        assert submitted["player_id"] == order[0]
        assert submitted["description"] == "round and sweet"
        assert submitted["submitted_count"] == 1
        assert submitted["total_players"] == 4
        changed = connections[3].last_message(SessionMessageType.SPEAKER_CHANGED)
        assert changed["current_speaker"]["id"] == order[1]
        assert changed["current_speaker"]["index"] == 1

    async def test_last_submission_opens_voting(self, session_manager):
        room, connections = await create_lobby(session_manager)
        await start_description_phase(session_manager, room, connections)
        order = list(room.stage.speaking_order)

        await describe_all(session_manager, room, connections)

        voting = connections[0].last_message(SessionMessageType.VOTING_STARTED)
        assert [entry["player_id"] for entry in voting["descriptions"]] == order
        assert room.phase == GamePhase.VOTING
        assert session_manager.timers.timer_phase(room.code) == TimedPhase.VOTING

    async def test_host_advance_fills_missing_descriptions(self, session_manager):
        room, connections = await create_lobby(session_manager)
        await start_description_phase(session_manager, room, connections)

        await session_manager.advance_phase(connections[0])

        voting = connections[1].last_message(SessionMessageType.VOTING_STARTED)
        assert {entry["text"] for entry in voting["descriptions"]} == {NO_RESPONSE}
        assert len(voting["descriptions"]) == 4

    async def test_non_host_cannot_advance(self, session_manager):
        room, connections = await create_lobby(session_manager)
        await start_description_phase(session_manager, room, connections)

        with pytest.raises(GameRuleError) as exc_info:
            await session_manager.advance_phase(connections[1])

        assert exc_info.value.code == GameErrorCode.NOT_HOST


class TestVoting:
    async def test_selection_is_private(self, session_manager):
        room, connections = await _reach_voting(session_manager)
        voter = connections[1]
        target = room.find_player_by_name("Carol")

        await session_manager.select_vote(voter, target.id)

        assert voter.last_message(SessionMessageType.VOTE_SELECTED)["target_player_id"] == target.id
        for other in (connections[0], connections[2], connections[3]):
            assert other.messages_of_type(SessionMessageType.VOTE_SELECTED) == []
            assert other.messages_of_type(SessionMessageType.VOTE_PROGRESS) == []

    async def test_confirm_broadcasts_counts_only(self, session_manager):
        room, connections = await _reach_voting(session_manager)
        target = room.find_player_by_name("Carol")
        await session_manager.select_vote(connections[1], target.id)

        await session_manager.confirm_vote(connections[1])

        progress = connections[3].last_message(SessionMessageType.VOTE_PROGRESS)
        assert progress == {"type": SessionMessageType.VOTE_PROGRESS, "confirmed_count": 1, "total_players": 4}

    async def test_confirm_without_selection_refused(self, session_manager):
        _, connections = await _reach_voting(session_manager)

        with pytest.raises(GameRuleError) as exc_info:
            await session_manager.confirm_vote(connections[1])

        assert exc_info.value.code == GameErrorCode.NO_SELECTION

    async def test_catching_the_imposter(self, session_manager):
        room, connections = await _reach_voting(session_manager)
        imposter = _imposter_name(room)
        scapegoat = next(name for name in _names(room) if name != imposter)
        votes = {name: imposter for name in _names(room) if name != imposter}
        votes[imposter] = scapegoat

        await vote_all(session_manager, room, connections, votes)

        result = connections[0].last_message(SessionMessageType.RESULTS)["result"]
        assert result["players_win"] is True
        assert result["voted_out_player"]["name"] == imposter
        assert result["imposter_name"] == imposter
        assert result["secret_word"] == room.round_secrets.word
        assert room.phase == GamePhase.RESULTS
        assert session_manager.timers.timer_phase(room.code) == TimedPhase.RESULTS

    async def test_voting_out_an_innocent(self, session_manager):
        room, connections = await _reach_voting(session_manager)
        imposter = _imposter_name(room)
        innocent = next(name for name in _names(room) if name != imposter)
        votes = {name: innocent for name in _names(room) if name != innocent}
        votes[innocent] = imposter

        await vote_all(session_manager, room, connections, votes)

        result = connections[2].last_message(SessionMessageType.RESULTS)["result"]
        assert result["players_win"] is False
        assert result["voted_out_player"]["name"] == innocent
        assert result["vote_summary"][0] == {
            "player_id": room.find_player_by_name(innocent).id,
            "player_name": innocent,
            "votes": 3,
        }

    async def test_tie_replays_round_with_same_imposter(self, session_manager):
        room, connections = await _reach_voting(session_manager)
        imposter_id = room.round_secrets.imposter_id
        old_topic, old_word = room.round_secrets.topic, room.round_secrets.word
        a, b, c, d = _names(room)

        await vote_all(session_manager, room, connections, {a: b, b: a, c: b, d: a})

        tie = connections[0].last_message(SessionMessageType.TIE_BREAKER)
        assert room.phase == GamePhase.DESCRIPTION
        assert room.round_secrets.imposter_id == imposter_id
        assert (room.round_secrets.topic, room.round_secrets.word) != (old_topic, old_word)
        assert tie["topic"] == room.round_secrets.topic
        assert tie["current_speaker"]["index"] == 0
        assert session_manager.timers.timer_phase(room.code) == TimedPhase.DESCRIPTION_TURN
        for connection in connections:
            assert len(connection.messages_of_type(SessionMessageType.ROLE_ASSIGNED)) == 1
        imposter_role = connection_of(room, connections, imposter_id).last_message(SessionMessageType.ROLE_ASSIGNED)
        assert imposter_role["is_imposter"] is True

    async def test_host_advance_confirms_pending_selections(self, session_manager):
        room, connections = await _reach_voting(session_manager)
        imposter = _imposter_name(room)
        for name in _names(room):
            if name != imposter:
                voter = connection_by_name(room, connections, name)
                await session_manager.select_vote(voter, room.find_player_by_name(imposter).id)

        await session_manager.advance_phase(connection_of(room, connections, room.host_id))

        result = connections[1].last_message(SessionMessageType.RESULTS)["result"]
        assert result["voted_out_player"]["name"] == imposter

    async def test_chat_is_broadcast_during_voting(self, session_manager):
        _, connections = await _reach_voting(session_manager)

        await session_manager.send_chat(connections[2], "  it was Bob  ")

        for connection in connections:
            entry = connection.last_message(SessionMessageType.CHAT_MESSAGE)["message"]
            assert entry["text"] == "it was Bob"
            assert entry["sender_name"] == "Carol"

    async def test_chat_closed_outside_voting(self, session_manager):
        _, connections = await create_lobby(session_manager)

        with pytest.raises(GameRuleError) as exc_info:
            await session_manager.send_chat(connections[1], "hello")

        assert exc_info.value.code == GameErrorCode.CHAT_NOT_AVAILABLE


class TestAfterResults:
    async def _decided(self, manager):
        room, connections = await _reach_voting(manager)
        imposter = _imposter_name(room)
        votes = {name: imposter for name in _names(room) if name != imposter}
        votes[imposter] = next(iter(votes))
        await vote_all(manager, room, connections, votes)
        return room, connections

    async def test_host_moves_results_to_post_game(self, session_manager):
        room, connections = await self._decided(session_manager)
        result = connections[0].last_message(SessionMessageType.RESULTS)["result"]

        await session_manager.advance_phase(connection_of(room, connections, room.host_id))

        post_game = connections[3].last_message(SessionMessageType.POST_GAME)
        assert post_game["result"] == result
        assert room.phase == GamePhase.POST_GAME
        assert session_manager.timers.has_timer(room.code) is False

    async def test_play_again_returns_everyone_to_lobby(self, session_manager):
        room, connections = await self._decided(session_manager)
        host = connection_of(room, connections, room.host_id)

        await session_manager.play_again(host)

        reset = connections[1].last_message(SessionMessageType.ROOM_RESET)
        assert reset["room"]["phase"] == GamePhase.LOBBY
        assert reset["room"]["round_number"] == 2
        assert reset["room"]["player_count"] == 4
        assert session_manager.timers.has_timer(room.code) is False

    async def test_advance_in_lobby_refused(self, session_manager):
        _, connections = await create_lobby(session_manager)

        with pytest.raises(GameRuleError) as exc_info:
            await session_manager.advance_phase(connections[0])

        assert exc_info.value.code == GameErrorCode.INVALID_PHASE
