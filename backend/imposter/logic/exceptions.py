"""Typed domain exceptions for game rule violations.

Every refusal in the core is a subclass of GameRuleError carrying a
GameErrorCode. Core operations check all of their preconditions before
touching any state, so a raised GameRuleError always leaves the room exactly
as it was. The session layer is the single catch site: it converts the error
into an error message for the originating connection, or logs and drops it
when the trigger was a timer or a disconnect.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from imposter.logic.enums import GameErrorCode

if TYPE_CHECKING:
    from collections.abc import Iterable

    from imposter.logic.enums import GamePhase


class GameRuleError(Exception):
    """Base exception for refused operations.

    Attributes:
        code: Machine-readable error code forwarded to the client.
        message: Human-readable explanation.
        details: Extra fields forwarded with the error (e.g. required/current).

    """

    def __init__(self, code: GameErrorCode, message: str, **details: Any) -> None:  # noqa: ANN401
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"{code}: {message}")


class PreconditionError(GameRuleError):
    """The operation is not valid in the room's current state."""


class NotFoundError(GameRuleError):
    """A referenced room or player no longer exists (stale client state)."""


class InvalidInputError(GameRuleError):
    """User-correctable input problem."""


class CapacityError(GameRuleError):
    """A count-based limit was not met or was exceeded."""


class InvalidPhaseError(PreconditionError):
    def __init__(self, actual: GamePhase, expected: Iterable[GamePhase]) -> None:
        expected_names = ", ".join(str(phase) for phase in expected)
        super().__init__(
            GameErrorCode.INVALID_PHASE,
            f"Not allowed during {actual} (expected {expected_names})",
        )
        self.actual = actual


class NotEnoughPlayersError(CapacityError):
    def __init__(self, *, required: int, current: int) -> None:
        super().__init__(
            GameErrorCode.NOT_ENOUGH_PLAYERS,
            f"At least {required} players are needed (currently {current})",
            required=required,
            current=current,
        )
