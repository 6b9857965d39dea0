from imposter.logic import chat, phases, turn, voting
from imposter.logic.enums import GamePhase
from imposter.logic.rejoin import build_rejoin_snapshot
from imposter.tests.helpers.rooms import cast_votes, imposter_id, player_id, start_description, start_voting


def _non_imposter(room):
    return next(pid for pid in room.players if pid != imposter_id(room))


class TestRejoinSnapshot:
    def test_lobby_has_no_round_fields(self, room):
        snapshot = build_rejoin_snapshot(room, player_id(room, "Bob"))
        assert snapshot.phase == GamePhase.LOBBY
        assert snapshot.is_imposter is None
        assert snapshot.word is None
        assert snapshot.results is None
        assert snapshot.round_number == 1

    def test_role_reveal_restores_role(self, room, rng):
        phases.start_game(room, room.host_id, rng)
        crewmate = _non_imposter(room)

        own = build_rejoin_snapshot(room, crewmate)
        imposter = build_rejoin_snapshot(room, imposter_id(room))

        assert own.is_imposter is False
        assert own.word == room.round_secrets.word
        assert imposter.is_imposter is True
        assert imposter.word is None
        assert imposter.topic == own.topic == room.round_secrets.topic

    def test_description_progress(self, room, rng):
        stage = start_description(room, rng)
        first, second = stage.speaking_order[:2]
        turn.submit_description(room, first, "clue")

        snapshot = build_rejoin_snapshot(room, first)

        assert snapshot.has_submitted_description is True
        assert snapshot.current_speaker.id == second
        assert snapshot.current_speaker_index == 1
        assert (snapshot.submission_progress.count, snapshot.submission_progress.total) == (1, 4)
        assert [d.player_id for d in snapshot.descriptions] == [first]
        assert [p.id for p in snapshot.speaking_order] == stage.speaking_order

    def test_voting_restores_own_selection_and_chat(self, room, rng):
        start_voting(room, rng)
        alice, bob, carol = (player_id(room, n) for n in ("Alice", "Bob", "Carol"))
        voting.select_vote(room, alice, bob)
        cast_votes(room, {carol: bob})
        chat.add_chat_message(room, carol, "sus", now=1.0)

        snapshot = build_rejoin_snapshot(room, alice)

        assert snapshot.selected_vote == bob
        assert snapshot.has_voted is False
        assert (snapshot.confirm_progress.count, snapshot.confirm_progress.total) == (1, 4)
        assert [m.text for m in snapshot.chat_messages] == ["sus"]
        assert snapshot.chat_messages == chat.chat_history(room)
        assert len(snapshot.descriptions) == 4

    def test_voting_never_exposes_other_voters_targets(self, room, rng):
        start_voting(room, rng)
        alice, bob, carol = (player_id(room, n) for n in ("Alice", "Bob", "Carol"))
        cast_votes(room, {carol: bob})

        dumped = build_rejoin_snapshot(room, alice).model_dump()

        assert dumped["selected_vote"] is None
        assert "confirmed_votes" not in dumped
        assert "pending_votes" not in dumped

    def test_results_match_the_original_outcome(self, room, rng):
        """Rejoining in results shows the same imposter, word and vote summary order."""
        start_voting(room, rng)
        alice, bob, carol, dave = (player_id(room, n) for n in ("Alice", "Bob", "Carol", "Dave"))
        cast_votes(room, {alice: bob, carol: bob, dave: alice})
        original = voting.calculate_vote_results(room).result

        snapshot = build_rejoin_snapshot(room, bob)

        assert snapshot.phase == GamePhase.RESULTS
        assert snapshot.results == original
        assert snapshot.results.imposter_name == original.imposter_name
        assert snapshot.results.secret_word == original.secret_word
        assert [e.player_id for e in snapshot.results.vote_summary] == [e.player_id for e in original.vote_summary]

    def test_post_game_keeps_results_but_hides_role(self, room, rng):
        start_voting(room, rng)
        alice, bob = player_id(room, "Alice"), player_id(room, "Bob")
        cast_votes(room, {alice: bob})
        original = voting.calculate_vote_results(room).result
        phases.transition_to_post_game(room)

        snapshot = build_rejoin_snapshot(room, alice)

        assert snapshot.results == original
        assert snapshot.is_imposter is None
        assert snapshot.word is None

    def test_snapshot_does_not_mutate_room(self, room, rng):
        stage = start_description(room, rng)
        before = (stage.current_index, dict(stage.descriptions), room.round_secrets)
        build_rejoin_snapshot(room, stage.speaking_order[0])
        assert (stage.current_index, dict(stage.descriptions), room.round_secrets) == before
