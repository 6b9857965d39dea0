"""
String enum definitions for game concepts.
"""

from enum import StrEnum


class GamePhase(StrEnum):
    """Phases of a room, in the order a round walks through them."""

    LOBBY = "lobby"
    ROLE_REVEAL = "role_reveal"
    DESCRIPTION = "description"
    VOTING = "voting"
    RESULTS = "results"
    POST_GAME = "post_game"


class TimedPhase(StrEnum):
    """What a room's countdown is currently timing."""

    ROLE_REVEAL = "role_reveal"
    DESCRIPTION_TURN = "description_turn"
    VOTING = "voting"
    RESULTS = "results"


class GameErrorCode(StrEnum):
    """Error codes sent to clients when an operation is refused."""

    # precondition
    INVALID_PHASE = "INVALID_PHASE"
    NOT_HOST = "NOT_HOST"
    NOT_YOUR_TURN = "NOT_YOUR_TURN"
    GAME_ALREADY_STARTED = "GAME_ALREADY_STARTED"
    GAME_IN_PROGRESS = "GAME_IN_PROGRESS"
    CHAT_NOT_AVAILABLE = "CHAT_NOT_AVAILABLE"
    ALREADY_IN_ROOM = "ALREADY_IN_ROOM"

    # not found
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    PLAYER_NOT_IN_ROOM = "PLAYER_NOT_IN_ROOM"
    TARGET_NOT_IN_ROOM = "TARGET_NOT_IN_ROOM"

    # validation
    NAME_LENGTH_INVALID = "NAME_LENGTH_INVALID"
    NAME_TAKEN = "NAME_TAKEN"
    EMPTY_DESCRIPTION = "EMPTY_DESCRIPTION"
    CANNOT_VOTE_SELF = "CANNOT_VOTE_SELF"
    ALREADY_SUBMITTED = "ALREADY_SUBMITTED"
    ALREADY_CONFIRMED = "ALREADY_CONFIRMED"
    NO_SELECTION = "NO_SELECTION"
    INVALID_VALUE = "INVALID_VALUE"
    EMPTY_MESSAGE = "EMPTY_MESSAGE"
    MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"

    # capacity
    NOT_ENOUGH_PLAYERS = "NOT_ENOUGH_PLAYERS"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_AT_CAPACITY = "SERVER_AT_CAPACITY"

    # transport
    INVALID_MESSAGE = "INVALID_MESSAGE"
