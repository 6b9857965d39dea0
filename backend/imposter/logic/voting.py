"""
Two-step voting and round resolution.

A vote is first *selected* (pending, may change) and then *confirmed*
(write-once). Only confirmed votes are tallied. Players who never confirm
are abstainers: they add nothing to anyone's tally.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from imposter.logic.enums import GameErrorCode
from imposter.logic.exceptions import InvalidInputError, NotFoundError
from imposter.logic.state import ResultsStage, VotingStage
from imposter.logic.types import RoundResult, VoteCount, VoteProgress, VoteResolution

if TYPE_CHECKING:
    from imposter.logic.state import Room

logger = structlog.get_logger()


def _validate_selection(room: Room, stage: VotingStage, voter_id: str, target_id: str) -> None:
    room.require_player(voter_id)
    if voter_id in stage.confirmed_votes:
        raise InvalidInputError(GameErrorCode.ALREADY_CONFIRMED, "Your vote is already confirmed")
    if target_id == voter_id:
        raise InvalidInputError(GameErrorCode.CANNOT_VOTE_SELF, "You cannot vote for yourself")
    if target_id not in room.players:
        raise NotFoundError(GameErrorCode.TARGET_NOT_IN_ROOM, "That player is not in the room")


def select_vote(room: Room, voter_id: str, target_id: str) -> None:
    """Record or replace the voter's pending selection."""
    stage = room.require_stage(VotingStage)
    _validate_selection(room, stage, voter_id, target_id)
    stage.pending_votes[voter_id] = target_id
    logger.debug("vote selected", room_code=room.code, player_id=voter_id)


def confirm_vote(room: Room, voter_id: str) -> VoteProgress:
    """Lock in the voter's pending selection."""
    stage = room.require_stage(VotingStage)
    room.require_player(voter_id)
    if voter_id in stage.confirmed_votes:
        raise InvalidInputError(GameErrorCode.ALREADY_CONFIRMED, "Your vote is already confirmed")
    target_id = stage.pending_votes.get(voter_id)
    if target_id is None:
        raise InvalidInputError(GameErrorCode.NO_SELECTION, "Select a player before confirming")
    if target_id not in room.players:
        raise NotFoundError(GameErrorCode.TARGET_NOT_IN_ROOM, "That player has left the room")

    stage.confirmed_votes[voter_id] = target_id
    logger.info("vote confirmed", room_code=room.code, player_id=voter_id)
    return vote_progress(room)


def submit_vote(room: Room, voter_id: str, target_id: str) -> VoteProgress:
    """One-step select and confirm, with the same validation as the two-step path."""
    stage = room.require_stage(VotingStage)
    _validate_selection(room, stage, voter_id, target_id)
    stage.pending_votes[voter_id] = target_id
    stage.confirmed_votes[voter_id] = target_id
    logger.info("vote confirmed", room_code=room.code, player_id=voter_id)
    return vote_progress(room)


def vote_progress(room: Room) -> VoteProgress:
    stage = room.require_stage(VotingStage)
    confirmed = sum(1 for player_id in room.players if player_id in stage.confirmed_votes)
    return VoteProgress(
        confirmed_count=confirmed,
        total_players=room.player_count,
        all_confirmed=confirmed == room.player_count,
    )


def others_all_confirmed(room: Room, leaving_player_id: str) -> bool:
    """Whether every player except ``leaving_player_id`` has confirmed (and at least one remains)."""
    stage = room.require_stage(VotingStage)
    others = [player_id for player_id in room.players if player_id != leaving_player_id]
    return bool(others) and all(player_id in stage.confirmed_votes for player_id in others)


def auto_confirm_pending_votes(room: Room) -> int:
    """Promote every present player's unconfirmed selection whose target is still here."""
    stage = room.require_stage(VotingStage)
    promoted = 0
    for voter_id, target_id in stage.pending_votes.items():
        if voter_id in stage.confirmed_votes or voter_id not in room.players or target_id not in room.players:
            continue
        stage.confirmed_votes[voter_id] = target_id
        promoted += 1
    if promoted:
        logger.info("pending votes auto-confirmed", room_code=room.code, count=promoted)
    return promoted


def tally_votes(room: Room, stage: VotingStage) -> dict[str, int]:
    """Confirmed votes per present player, in registry order.

    Every present player starts at zero. Votes aimed at a player who has
    since left are dropped; votes cast by a player who has since left count.
    """
    counts = dict.fromkeys(room.players, 0)
    for target_id in stage.confirmed_votes.values():
        if target_id in counts:
            counts[target_id] += 1
    return counts


def calculate_vote_results(room: Room) -> VoteResolution:
    """Resolve the vote.

    A single top-tally player is eliminated and the room moves to results.
    Two or more players sharing the top tally is a tie: nothing changes and
    the caller is expected to run the tie-breaker replay.
    """
    stage = room.require_stage(VotingStage)
    counts = tally_votes(room, stage)
    max_votes = max(counts.values())
    leaders = [player_id for player_id, count in counts.items() if count == max_votes]

    if len(leaders) > 1:
        logger.info("vote tied", room_code=room.code, tied_player_ids=leaders, max_votes=max_votes)
        return VoteResolution(is_tie=True, result=None, tied_player_ids=leaders, max_votes=max_votes)

    voted_out = room.players[leaders[0]]
    summary = sorted(
        (
            VoteCount(player_id=player_id, player_name=room.players[player_id].name, votes=count)
            for player_id, count in counts.items()
        ),
        key=lambda entry: entry.votes,
        reverse=True,
    )
    result = RoundResult(
        voted_out_player=voted_out.info(),
        imposter_name=stage.secrets.imposter_name,
        players_win=voted_out.id == stage.secrets.imposter_id,
        vote_summary=summary,
        secret_word=stage.secrets.word,
    )
    room.stage = ResultsStage(
        secrets=stage.secrets,
        speaking_order=stage.speaking_order,
        speaker_names=stage.speaker_names,
        descriptions=stage.descriptions,
        result=result,
    )
    logger.info(
        "round decided",
        room_code=room.code,
        voted_out_player_id=voted_out.id,
        players_win=result.players_win,
        imposter_id=stage.secrets.imposter_id,
    )
    return VoteResolution(is_tie=False, result=result, tied_player_ids=[], max_votes=max_votes)
