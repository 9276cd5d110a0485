"""
Error taxonomy for the game core.

Every error carries:
- code: stable, machine-readable (clients switch on this)
- message: human-readable text that can be shown to a player

The HTTP layer maps these to status codes (see main.py); the core itself
never retries or swallows them.
"""

from typing import Optional


class GameError(Exception):
    code = "game_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.message}


# --- Code validation ---

class InvalidCodeError(GameError):
    code = "invalid_code"


class ShapeError(InvalidCodeError):
    code = "code_shape"


class FormatError(InvalidCodeError):
    code = "code_format"


class DuplicateDigitError(InvalidCodeError):
    code = "code_duplicate_digit"


# --- State machine preconditions ---

class UnknownParticipantError(GameError):
    code = "unknown_participant"

    def __init__(self, match_id: str, participant_id: str):
        super().__init__(f"Participant {participant_id!r} is not playing in match {match_id}.")
        self.match_id = match_id
        self.participant_id = participant_id


class AlreadySetError(GameError):
    code = "secret_already_set"

    def __init__(self, match_id: str, participant_id: str):
        super().__init__(f"Secret already set for {participant_id!r} in match {match_id}.")
        self.match_id = match_id
        self.participant_id = participant_id


class NotInProgressError(GameError):
    code = "match_not_in_progress"

    def __init__(self, match_id: str, phase: str):
        super().__init__(f"Match {match_id} is not in progress (phase: {phase}).")
        self.match_id = match_id
        self.phase = phase


class NotYourTurnError(GameError):
    code = "not_your_turn"

    def __init__(self, match_id: str, participant_id: str, turn_holder: Optional[str] = None):
        super().__init__(f"It is not {participant_id!r}'s turn in match {match_id}.")
        self.match_id = match_id
        self.participant_id = participant_id
        self.turn_holder = turn_holder


class SeatTakenError(GameError):
    code = "seat_taken"

    def __init__(self, match_id: str):
        super().__init__(f"Match {match_id} has no open seat.")
        self.match_id = match_id


# --- Request shape ---

class InvalidRequestError(GameError):
    code = "invalid_request"


class ReservedParticipantError(GameError):
    code = "reserved_participant"

    def __init__(self, participant_id: str):
        super().__init__(f"Participant id {participant_id!r} is reserved.")
        self.participant_id = participant_id


# --- Concurrency / lookup ---

class LockTimeoutError(GameError):
    code = "lock_timeout"

    def __init__(self, match_id: str, timeout: float):
        super().__init__(f"Match {match_id} is busy; gave up after {timeout:g}s. Safe to retry.")
        self.match_id = match_id
        self.timeout = timeout


class NotFoundError(GameError):
    code = "match_not_found"

    def __init__(self, match_id: str):
        super().__init__(f"Match {match_id} not found.")
        self.match_id = match_id
