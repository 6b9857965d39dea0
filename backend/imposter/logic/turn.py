"""
Turn engine for the description phase.

Speakers go strictly in ``speaking_order``. The pointer only moves forward:
on a submission, on a turn timeout, or when the current speaker leaves.
Entries whose player has since left the room are skipped and filled with
the disconnect placeholder; the skip loop is bounded by the order length.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from imposter.logic.enums import GameErrorCode
from imposter.logic.exceptions import InvalidInputError, PreconditionError
from imposter.logic.settings import DISCONNECTED, NO_RESPONSE
from imposter.logic.state import DescriptionStage, ResultsStage, VotingStage
from imposter.logic.types import CurrentSpeaker, DescriptionEntry, PlayerInfo, SpeakerInfo, SubmissionResult

if TYPE_CHECKING:
    from imposter.logic.state import Room

logger = structlog.get_logger()


def _first_present_index(room: Room, stage: DescriptionStage) -> int:
    index = stage.current_index
    for _ in range(len(stage.speaking_order)):
        if index >= len(stage.speaking_order) or stage.speaking_order[index] in room.players:
            break
        index += 1
    return index


def _skip_departed(room: Room, stage: DescriptionStage) -> None:
    target = _first_present_index(room, stage)
    for player_id in stage.speaking_order[stage.current_index : target]:
        if player_id not in stage.descriptions:
            stage.descriptions[player_id] = DISCONNECTED
            logger.info("skipped departed speaker", room_code=room.code, player_id=player_id)
    stage.current_index = target


def peek_current_speaker(room: Room, stage: DescriptionStage) -> SpeakerInfo | None:
    """The speaker whose turn it is, without moving the pointer."""
    index = _first_present_index(room, stage)
    if index >= len(stage.speaking_order):
        return None
    player = room.players[stage.speaking_order[index]]
    return SpeakerInfo(id=player.id, name=player.name, index=index)


def present_speaking_order(room: Room, order: list[str]) -> list[PlayerInfo]:
    return [room.players[pid].info() for pid in order if pid in room.players]


def get_current_speaker(room: Room) -> CurrentSpeaker:
    stage = room.require_stage(DescriptionStage)
    _skip_departed(room, stage)
    speaker = peek_current_speaker(room, stage)
    return CurrentSpeaker(
        speaker=speaker,
        speaking_order=present_speaking_order(room, stage.speaking_order),
        all_complete=speaker is None,
    )


def _advance(room: Room, stage: DescriptionStage, player: PlayerInfo | None, text: str | None) -> SubmissionResult:
    stage.current_index += 1
    _skip_departed(room, stage)
    return SubmissionResult(
        player=player,
        text=text,
        submitted_count=len(stage.descriptions),
        total_players=room.player_count,
        round_complete=stage.turns_exhausted,
        next_speaker=peek_current_speaker(room, stage),
    )


def submit_description(room: Room, player_id: str, text: str) -> SubmissionResult:
    """Store the current speaker's description and pass the turn on.

    Blank text is stored as the no-response placeholder instead of being
    rejected, so a turn can never stall on a refusal to speak.
    """
    stage = room.require_stage(DescriptionStage)
    player = room.require_player(player_id)
    index = _first_present_index(room, stage)
    if index >= len(stage.speaking_order) or stage.speaking_order[index] != player_id:
        raise PreconditionError(GameErrorCode.NOT_YOUR_TURN, "It is not your turn to describe")
    if player_id in stage.descriptions:
        raise InvalidInputError(GameErrorCode.ALREADY_SUBMITTED, "You already submitted a description")

    _skip_departed(room, stage)
    final_text = text.strip() or NO_RESPONSE
    stage.descriptions[player_id] = final_text
    logger.info("description submitted", room_code=room.code, player_id=player_id)
    return _advance(room, stage, player.info(), final_text)


def auto_submit_current_speaker(room: Room) -> SubmissionResult:
    """Fill the no-response placeholder for the current speaker after a turn timeout."""
    stage = room.require_stage(DescriptionStage)
    _skip_departed(room, stage)
    if stage.turns_exhausted:
        return SubmissionResult(
            player=None,
            text=None,
            submitted_count=len(stage.descriptions),
            total_players=room.player_count,
            round_complete=True,
            next_speaker=None,
        )
    player = room.players[stage.speaking_order[stage.current_index]]
    text = stage.descriptions.setdefault(player.id, NO_RESPONSE)
    logger.info("description auto-submitted on timeout", room_code=room.code, player_id=player.id)
    return _advance(room, stage, player.info(), text)


def auto_submit_missing_descriptions(room: Room) -> int:
    """Fill the no-response placeholder for every present player without an entry.

    Moves the pointer to the end of the order. Returns how many were filled.
    """
    stage = room.require_stage(DescriptionStage)
    filled = 0
    for player_id in room.players:
        if player_id not in stage.descriptions:
            stage.descriptions[player_id] = NO_RESPONSE
            filled += 1
    stage.current_index = len(stage.speaking_order)
    logger.info("missing descriptions auto-submitted", room_code=room.code, count=filled)
    return filled


def attributed_descriptions(room: Room) -> list[DescriptionEntry]:
    """Descriptions in speaking order with the speaker's name.

    During the description phase this is the live feed (submitted entries
    only); afterwards every speaker appears, missing text shown as the
    no-response placeholder.
    """
    stage = room.stage
    if not isinstance(stage, DescriptionStage | VotingStage | ResultsStage):
        return []
    live = isinstance(stage, DescriptionStage)
    return [
        DescriptionEntry(
            player_id=player_id,
            player_name=stage.speaker_names[player_id],
            text=stage.descriptions.get(player_id, NO_RESPONSE),
        )
        for player_id in stage.speaking_order
        if not live or player_id in stage.descriptions
    ]


def release_departing_player(room: Room, player_id: str) -> tuple[bool, bool]:
    """Fill the disconnect placeholder for a player who is about to leave.

    Must run while the player is still registered. If they held the turn,
    the pointer advances exactly as a normal submission would. Returns
    ``(auto_submitted, was_current_speaker)``.
    """
    stage = room.require_stage(DescriptionStage)
    if player_id in stage.descriptions:
        return False, False
    speaker = peek_current_speaker(room, stage)
    was_current = speaker is not None and speaker.id == player_id
    stage.descriptions[player_id] = DISCONNECTED
    if was_current:
        _skip_departed(room, stage)
        stage.current_index += 1
        _skip_departed(room, stage)
    logger.info("departing player auto-submitted", room_code=room.code, player_id=player_id, was_current=was_current)
    return True, was_current
