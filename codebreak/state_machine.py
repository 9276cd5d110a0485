"""
Match lifecycle: awaiting_secrets -> in_progress -> finished (never backward).

Every operation is a single read-modify-write against the repository:
load a copy, check *all* preconditions, mutate the copy, write it back.
Nothing is written if any check fails.

This class does no locking. In production it is only driven through
MatchCoordinator, which serializes operations per match id.
"""

import logging
import random
from dataclasses import dataclass
from typing import List, Optional
from uuid import uuid4

from .engine import CODE_LENGTH, Feedback, is_winning_guess, score, validate_code
from .errors import (
    AlreadySetError,
    NotInProgressError,
    NotYourTurnError,
    SeatTakenError,
    UnknownParticipantError,
)
from .opponent import HISTORY_WINDOW, SyntheticOpponent
from .store import Match, MatchRepository, Move, utcnow
from .types import Code, Difficulty, Mode, SYNTHETIC_PARTICIPANT_ID

logger = logging.getLogger(__name__)

MODES = ("ai", "friend", "random")


@dataclass(frozen=True)
class GuessOutcome:
    move: Move
    feedback: Feedback
    match_finished: bool
    match: Match


class MatchStateMachine:
    def __init__(
        self,
        repository: MatchRepository,
        code_length: int = CODE_LENGTH,
        opponent_rng: Optional[random.Random] = None,
        use_random_org: bool = False,
    ) -> None:
        self.repository = repository
        self.code_length = code_length
        self._opponent_rng = opponent_rng
        self._use_random_org = use_random_org

    def opponent_for(self, match: Match) -> SyntheticOpponent:
        return SyntheticOpponent(
            match.difficulty,
            rng=self._opponent_rng,
            use_random_org=self._use_random_org,
        )

    # --- Mutations ---

    def create_match(
        self,
        participant_a: str,
        participant_b: Optional[str] = None,
        mode: Optional[Mode] = None,
        difficulty: Difficulty = "standard",
    ) -> Match:
        """
        participant_b=None with the default mode is a synthetic-opponent
        match. A human mode ("friend"/"random") without participant_b leaves
        the second seat open for join_match().
        """
        if mode is None:
            mode = "ai" if participant_b is None else "friend"
        if mode not in MODES:
            raise ValueError(f"Unknown mode: {mode!r}")
        if difficulty not in HISTORY_WINDOW:
            raise ValueError(f"Unknown difficulty: {difficulty!r}")
        if mode == "ai" and participant_b is not None:
            raise ValueError("A synthetic-opponent match takes no second participant.")
        if participant_a == SYNTHETIC_PARTICIPANT_ID or participant_b == SYNTHETIC_PARTICIPANT_ID:
            raise ValueError(f"{SYNTHETIC_PARTICIPANT_ID!r} is a reserved participant id.")
        if participant_b is not None and participant_b == participant_a:
            raise ValueError("A participant cannot play against themselves.")

        match = Match(
            id=str(uuid4()),
            participant_a=participant_a,
            participant_b=participant_b,
            mode=mode,
            difficulty=difficulty,
            code_length=self.code_length,
        )
        self.repository.save_match(match)
        logger.info("match %s created (mode=%s, difficulty=%s)", match.id, mode, difficulty)
        return match

    def join_match(self, match_id: str, participant_id: str) -> Match:
        match = self.repository.load_match(match_id)
        if (
            match.is_synthetic
            or match.participant_b is not None
            or participant_id in (match.participant_a, SYNTHETIC_PARTICIPANT_ID)
        ):
            raise SeatTakenError(match_id)

        match.participant_b = participant_id
        self.repository.save_match(match)
        logger.info("match %s: %s joined", match_id, participant_id)
        return match

    def set_secret(self, match_id: str, participant_id: str, code: Code) -> Match:
        match = self.repository.load_match(match_id)

        validate_code(code, match.code_length)
        # the synthetic secret is generated, never set from outside
        if participant_id == SYNTHETIC_PARTICIPANT_ID or not match.is_participant(participant_id):
            raise UnknownParticipantError(match_id, participant_id)
        if match.secret_of(participant_id) is not None:
            raise AlreadySetError(match_id, participant_id)

        if participant_id == match.participant_a:
            match.secret_a = code
        else:
            match.secret_b = code

        if match.is_synthetic and match.secret_b is None:
            match.secret_b = self.opponent_for(match).choose_secret(match.code_length)

        if match.secret_a is not None and match.secret_b is not None:
            match.phase = "in_progress"
            match.started_at = utcnow()
            match.turn_holder = match.participant_a
            logger.info("match %s started; %s to move", match_id, match.turn_holder)

        self.repository.save_match(match)
        return match

    def submit_guess(
        self,
        match_id: str,
        participant_id: str,
        guess: Code,
        expected_turn: Optional[int] = None,
    ) -> GuessOutcome:
        """
        expected_turn is an optional compare-and-set token: the turn_number
        the caller saw when it decided to move. If the match has moved on
        since, the guess is rejected as NotYourTurnError.
        """
        match = self.repository.load_match(match_id)

        if match.phase != "in_progress":
            raise NotInProgressError(match_id, match.phase)
        if participant_id != match.turn_holder:
            raise NotYourTurnError(match_id, participant_id, match.turn_holder)
        if expected_turn is not None and expected_turn != match.turn_number:
            raise NotYourTurnError(match_id, participant_id, match.turn_holder)
        validate_code(guess, match.code_length)

        opponent = match.opponent_of(participant_id)
        secret = match.secret_of(opponent)
        feedback = score(guess, secret)

        move = Move(
            match_id=match_id,
            participant_id=participant_id,
            guess=guess,
            feedback=feedback,
            sequence_number=len(match.moves_of(participant_id)) + 1,
        )
        match.moves.append(move)
        match.turn_number += 1

        finished = is_winning_guess(guess, secret)
        if finished:
            match.phase = "finished"
            match.winner = participant_id
            match.turn_holder = None
            match.ended_at = utcnow()
            logger.info("match %s finished; winner %s after %d moves", match_id, participant_id, move.sequence_number)
        else:
            match.turn_holder = opponent

        self.repository.append_move(match_id, move)
        self.repository.save_match(match)
        return GuessOutcome(move=move, feedback=feedback, match_finished=finished, match=match)

    def play_synthetic_turn(self, match_id: str) -> Optional[GuessOutcome]:
        """Let the synthetic opponent move if it holds the turn; else no-op."""
        match = self.repository.load_match(match_id)
        if (
            not match.is_synthetic
            or match.phase != "in_progress"
            or match.turn_holder != SYNTHETIC_PARTICIPANT_ID
        ):
            return None

        guess = self.opponent_for(match).choose_guess(
            match.code_length, match.moves_of(SYNTHETIC_PARTICIPANT_ID)
        )
        return self.submit_guess(match_id, SYNTHETIC_PARTICIPANT_ID, guess)

    # --- Reads ---

    def get_match(self, match_id: str) -> Match:
        return self.repository.load_match(match_id)

    def get_move_journal(self, match_id: str, participant_id: Optional[str] = None) -> List[Move]:
        match = self.repository.load_match(match_id)
        if participant_id is None:
            return list(match.moves)
        return match.moves_of(participant_id)

    def list_matches(self, participant_id: str) -> List[Match]:
        return self.repository.list_matches(participant_id)
