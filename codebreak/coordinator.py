"""
Coordinator: the only way mutations reach a match in production.

- one exclusive lock per match id (MatchLocks); different matches never wait
  on each other
- lock acquisition is bounded; a stuck holder yields LockTimeoutError
  instead of a deadlock
- the lock is released on every exit path
- events are published while the lock is still held, so each match's event
  stream follows the same order as its mutations
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Iterator, List, Optional

from .errors import LockTimeoutError
from .events import (
    GuessSubmitted,
    GuessSubmittedPayload,
    MatchFinished,
    MatchFinishedPayload,
    ParticipantJoined,
    ParticipantJoinedPayload,
    SecretSet,
    SecretSetPayload,
)
from .relay import NotificationRelay
from .state_machine import GuessOutcome, MatchStateMachine
from .store import Match, Move
from .types import Code, Difficulty, Mode

logger = logging.getLogger(__name__)


@dataclass
class _LockEntry:
    lock: Lock
    users: int = 0


class MatchLocks:
    """Keyed lock registry. Entries are dropped once nobody holds or waits."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._entries: Dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, match_id: str, timeout: float) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(match_id)
            if entry is None:
                entry = self._entries[match_id] = _LockEntry(Lock())
            entry.users += 1
        try:
            if not entry.lock.acquire(timeout=timeout):
                logger.warning("lock on match %s not acquired within %.2fs", match_id, timeout)
                raise LockTimeoutError(match_id, timeout)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[match_id]

    def is_held(self, match_id: str) -> bool:
        with self._guard:
            entry = self._entries.get(match_id)
            return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class MatchCoordinator:
    def __init__(
        self,
        machine: MatchStateMachine,
        locks: MatchLocks,
        relay: NotificationRelay,
        lock_timeout: float = 5.0,
    ) -> None:
        self.machine = machine
        self.locks = locks
        self.relay = relay
        self.lock_timeout = lock_timeout

    # --- Mutations ---

    def create_match(
        self,
        participant_a: str,
        participant_b: Optional[str] = None,
        mode: Optional[Mode] = None,
        difficulty: Difficulty = "standard",
    ) -> Match:
        # fresh id: nobody else can address it yet, so no lock needed
        return self.machine.create_match(participant_a, participant_b, mode, difficulty)

    def join_match(self, match_id: str, participant_id: str) -> Match:
        with self.locks.hold(match_id, self.lock_timeout):
            match = self.machine.join_match(match_id, participant_id)
            self.relay.publish(match_id, ParticipantJoined(
                match_id=match_id,
                payload=ParticipantJoinedPayload(participant_id=participant_id),
            ))
            return match

    def set_secret(self, match_id: str, participant_id: str, code: Code) -> Match:
        with self.locks.hold(match_id, self.lock_timeout):
            match = self.machine.set_secret(match_id, participant_id, code)
            self.relay.publish(match_id, SecretSet(
                match_id=match_id,
                payload=SecretSetPayload(
                    participant_id=participant_id,
                    phase=match.phase,
                    turn_holder=match.turn_holder,
                ),
            ))
            return match

    def submit_guess(
        self,
        match_id: str,
        participant_id: str,
        guess: Code,
        expected_turn: Optional[int] = None,
    ) -> GuessOutcome:
        with self.locks.hold(match_id, self.lock_timeout):
            outcome = self.machine.submit_guess(match_id, participant_id, guess, expected_turn)
            self._publish_guess(outcome)
            return outcome

    def play_synthetic_turn(self, match_id: str) -> Optional[GuessOutcome]:
        with self.locks.hold(match_id, self.lock_timeout):
            outcome = self.machine.play_synthetic_turn(match_id)
            if outcome is not None:
                self._publish_guess(outcome)
            return outcome

    def _publish_guess(self, outcome: GuessOutcome) -> None:
        match, move = outcome.match, outcome.move
        self.relay.publish(match.id, GuessSubmitted(
            match_id=match.id,
            payload=GuessSubmittedPayload(
                participant_id=move.participant_id,
                guess=move.guess,
                shared_count=outcome.feedback.shared_count,
                exact_count=outcome.feedback.exact_count,
                sequence_number=move.sequence_number,
                turn_number=match.turn_number,
                turn_holder=match.turn_holder,
            ),
        ))
        if outcome.match_finished:
            self.relay.publish(match.id, MatchFinished(
                match_id=match.id,
                payload=MatchFinishedPayload(
                    winner=match.winner,
                    secrets={
                        match.participant_a: match.secret_a,
                        match.seat_b: match.secret_b,
                    },
                    total_moves=len(match.moves),
                ),
            ))

    # --- Reads (no lock; may be slightly stale) ---

    def get_match(self, match_id: str) -> Match:
        return self.machine.get_match(match_id)

    def get_move_journal(self, match_id: str, participant_id: Optional[str] = None) -> List[Move]:
        return self.machine.get_move_journal(match_id, participant_id)

    def list_matches(self, participant_id: str) -> List[Match]:
        return self.machine.list_matches(participant_id)
