"""
Phase state machine.

    lobby -> role_reveal -> description -> voting -> results -> post_game
    results | post_game -> lobby            (replay)
    voting -> description                   (tie-breaker replay)

Every transition checks the current phase first and raises InvalidPhaseError
otherwise. When a host action and a timer expiry race for the same
transition, whichever is processed first wins and the other fails on that
check without touching the room.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from imposter.logic.enums import GameErrorCode, GamePhase
from imposter.logic.exceptions import NotEnoughPlayersError, PreconditionError
from imposter.logic.settings import MIN_PLAYERS, validate_settings_changes
from imposter.logic.state import (
    DescriptionStage,
    LobbyStage,
    PostGameStage,
    ResultsStage,
    RoleRevealStage,
    RoundSecrets,
    VotingStage,
)
from imposter.logic.turn import attributed_descriptions, peek_current_speaker, present_speaking_order, release_departing_player
from imposter.logic.types import DescriptionPhaseStart, DisconnectReport, GameStart, RolePayload, TieRestart
from imposter.logic.voting import others_all_confirmed
from imposter.logic.words import WordPick, pick_word

if TYPE_CHECKING:
    from imposter.logic.rng import GameRandom
    from imposter.logic.settings import RoomSettings
    from imposter.logic.state import Room
    from imposter.logic.types import DescriptionEntry, RoundResult

logger = structlog.get_logger()


def role_payloads(room: Room, secrets: RoundSecrets) -> dict[str, RolePayload]:
    """Per-player role: the imposter gets the topic only, everyone else also the word."""
    return {
        player_id: RolePayload(is_imposter=True, topic=secrets.topic)
        if player_id == secrets.imposter_id
        else RolePayload(is_imposter=False, topic=secrets.topic, word=secrets.word)
        for player_id in room.players
    }


def _require_enough_players(room: Room) -> None:
    if room.player_count < MIN_PLAYERS:
        raise NotEnoughPlayersError(required=MIN_PLAYERS, current=room.player_count)


def start_game(room: Room, requester_id: str, rng: GameRandom) -> GameStart:
    room.require_host(requester_id)
    if room.phase != GamePhase.LOBBY:
        raise PreconditionError(GameErrorCode.GAME_ALREADY_STARTED, "The game has already started")
    _require_enough_players(room)

    pick = pick_word(rng, exclude=room.last_pick)
    imposter = rng.choice(list(room.players.values()))
    secrets = RoundSecrets(topic=pick.topic, word=pick.word, imposter_id=imposter.id, imposter_name=imposter.name)
    room.stage = RoleRevealStage(secrets=secrets)
    room.last_pick = pick
    logger.info(
        "game started",
        room_code=room.code,
        round_number=room.round_number,
        topic=pick.topic,
        word=pick.word,
        imposter_id=imposter.id,
    )
    return GameStart(topic=pick.topic, roles=role_payloads(room, secrets))


def _enter_description(room: Room, secrets: RoundSecrets, rng: GameRandom) -> DescriptionPhaseStart:
    order = rng.shuffled(list(room.players))
    stage = DescriptionStage(
        secrets=secrets,
        speaking_order=order,
        speaker_names={player_id: room.players[player_id].name for player_id in order},
    )
    room.stage = stage
    return DescriptionPhaseStart(
        speaking_order=present_speaking_order(room, order),
        current_speaker=peek_current_speaker(room, stage),
    )


def transition_to_description_phase(room: Room, rng: GameRandom) -> DescriptionPhaseStart:
    stage = room.require_stage(RoleRevealStage)
    started = _enter_description(room, stage.secrets, rng)
    logger.info("description phase started", room_code=room.code)
    return started


def transition_to_voting_phase(room: Room) -> list[DescriptionEntry]:
    """Open voting; returns the attributed descriptions shown to voters."""
    stage = room.require_stage(DescriptionStage)
    room.stage = VotingStage(
        secrets=stage.secrets,
        speaking_order=stage.speaking_order,
        speaker_names=stage.speaker_names,
        descriptions=stage.descriptions,
    )
    logger.info("voting phase started", room_code=room.code)
    return attributed_descriptions(room)


def transition_to_post_game(room: Room) -> RoundResult:
    stage = room.require_stage(ResultsStage)
    room.stage = PostGameStage(secrets=stage.secrets, result=stage.result)
    logger.info("post game", room_code=room.code)
    return stage.result


def reset_room_for_new_game(room: Room, requester_id: str) -> None:
    """Return to the lobby for another round; players, host and settings persist."""
    room.require_phase(GamePhase.RESULTS, GamePhase.POST_GAME)
    room.require_host(requester_id)
    _require_enough_players(room)
    room.stage = LobbyStage()
    room.round_number += 1
    logger.info("room reset for new game", room_code=room.code, round_number=room.round_number)


def restart_round_with_same_imposter(room: Room, rng: GameRandom) -> TieRestart:
    """Tie-breaker replay: new topic/word and speaking order, same imposter.

    Only reachable from voting after a tie. If the imposter has left the room
    since the round started, a new imposter is drawn from those present.
    """
    stage = room.require_stage(VotingStage)
    imposter = room.players.get(stage.secrets.imposter_id)
    if imposter is None:
        imposter = rng.choice(list(room.players.values()))
        logger.warning("imposter left before tie-breaker, drawing a new one", room_code=room.code)

    pick = pick_word(rng, exclude=WordPick(stage.secrets.topic, stage.secrets.word))
    secrets = RoundSecrets(topic=pick.topic, word=pick.word, imposter_id=imposter.id, imposter_name=imposter.name)
    room.last_pick = pick
    started = _enter_description(room, secrets, rng)
    logger.info("tie-breaker round started", room_code=room.code, topic=pick.topic, word=pick.word)
    return TieRestart(
        topic=pick.topic,
        roles=role_payloads(room, secrets),
        speaking_order=started.speaking_order,
        current_speaker=started.current_speaker,
    )


def handle_disconnect_mid_game(room: Room, player_id: str) -> DisconnectReport:
    """Phase cleanup for a departing player; call before removing them from the registry.

    The report tells the caller whether the departure completes the phase:
    in description, every player (the leaver included, now filled) has an
    entry; in voting, every *other* player has confirmed.
    """
    room.require_player(player_id)
    stage = room.stage
    if isinstance(stage, DescriptionStage):
        auto_submitted, was_current = release_departing_player(room, player_id)
        return DisconnectReport(
            phase=room.phase,
            auto_submitted=auto_submitted,
            was_current_speaker=was_current,
            description_complete=all(pid in stage.descriptions for pid in room.players),
        )
    if isinstance(stage, VotingStage):
        return DisconnectReport(phase=room.phase, voting_complete=others_all_confirmed(room, player_id))
    return DisconnectReport(phase=room.phase)


def update_settings(room: Room, requester_id: str, changes: dict[str, Any]) -> RoomSettings:
    room.require_phase(GamePhase.LOBBY, GamePhase.POST_GAME)
    room.require_host(requester_id)
    validated = validate_settings_changes(changes)
    room.settings = room.settings.model_copy(update=validated)
    logger.info("room settings updated", room_code=room.code, updated_fields=sorted(validated))
    return room.settings
