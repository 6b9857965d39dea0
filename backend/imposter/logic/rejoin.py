"""Reconstruct a reconnecting player's view from stored round state.

Nothing here draws randomness or computes new secrets: the role, word and
results a player sees after rejoining are exactly the ones already stored
on the room.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from imposter.logic.chat import chat_history
from imposter.logic.state import DescriptionStage, LobbyStage, PostGameStage, ResultsStage, VotingStage
from imposter.logic.turn import attributed_descriptions, peek_current_speaker, present_speaking_order
from imposter.logic.types import Progress, RejoinSnapshot
from imposter.logic.voting import vote_progress

if TYPE_CHECKING:
    from imposter.logic.state import Room


def build_rejoin_snapshot(room: Room, player_id: str) -> RejoinSnapshot:
    player = room.require_player(player_id)
    stage = room.stage
    fields: dict[str, Any] = {
        "room": room.view(),
        "player": player.info(),
        "phase": room.phase,
        "topic": room.topic,
        "round_number": room.round_number,
        "settings": room.settings,
    }

    if not isinstance(stage, LobbyStage | PostGameStage):
        is_imposter = player_id == stage.secrets.imposter_id
        fields["is_imposter"] = is_imposter
        if not is_imposter:
            fields["word"] = stage.secrets.word

    if isinstance(stage, DescriptionStage | VotingStage):
        fields["has_submitted_description"] = player_id in stage.descriptions
        fields["submission_progress"] = Progress(count=len(stage.descriptions), total=room.player_count)
        fields["descriptions"] = attributed_descriptions(room)

    if isinstance(stage, DescriptionStage):
        speaker = peek_current_speaker(room, stage)
        fields["speaking_order"] = present_speaking_order(room, stage.speaking_order)
        fields["current_speaker"] = speaker
        fields["current_speaker_index"] = speaker.index if speaker is not None else len(stage.speaking_order)
    elif isinstance(stage, VotingStage):
        progress = vote_progress(room)
        fields["selected_vote"] = stage.pending_votes.get(player_id)
        fields["has_voted"] = player_id in stage.confirmed_votes
        fields["confirm_progress"] = Progress(count=progress.confirmed_count, total=progress.total_players)
        fields["chat_messages"] = chat_history(room)
    elif isinstance(stage, ResultsStage):
        fields["descriptions"] = attributed_descriptions(room)
        fields["results"] = stage.result
    elif isinstance(stage, PostGameStage):
        fields["results"] = stage.result

    return RejoinSnapshot(**fields)
