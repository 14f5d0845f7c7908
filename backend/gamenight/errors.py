from __future__ import annotations


class GameError(Exception):
    """Base class for every error raised by gamenight."""

    reason = "error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.reason)
        self.message = message


class InvalidParameter(GameError):
    """Player count or quest number outside the supported table."""

    reason = "invalid_parameter"


# Game state machine validation. Handlers log these and drop the action.


class GameRuleError(GameError):
    reason = "rule_violation"


class InvalidTeamSize(GameRuleError):
    reason = "invalid_team_size"


class InvalidRoleSelection(GameRuleError):
    reason = "invalid_role_selection"


class MissingSetup(GameRuleError):
    reason = "missing_setup"


class NotYourTurn(GameRuleError):
    reason = "not_your_turn"


class InvalidGuess(GameRuleError):
    reason = "invalid_guess"


class InvalidClue(GameRuleError):
    reason = "invalid_clue"


class WrongPhase(GameRuleError):
    reason = "wrong_phase"


class StalePhase(GameRuleError):
    """A trigger referenced a phase instance that has already been left."""

    reason = "stale_phase"


# Room coordinator boundary failures, surfaced to the client.


class PartyError(GameError):
    reason = "party_error"


class PartyNotFound(PartyError):
    reason = "party_not_found"


class UnsupportedGame(PartyError):
    reason = "unsupported_game"


class GameAlreadyStarted(PartyError):
    reason = "game_started"


class ConnectionReplaced(PartyError):
    reason = "connection_replaced"


class PartyCodeExhausted(PartyError):
    reason = "party_code_exhausted"


class ProjectionError(GameError):
    reason = "projection_failed"


class PersistenceError(GameError):
    reason = "persistence_failed"
