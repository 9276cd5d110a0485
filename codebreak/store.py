"""
Match records and the in-memory repository.

Match and Move are the plain records the state machine works on. Any
storage backend only has to load/save these (see MatchRepository); the
in-memory one here is used for tests and single-process dev runs.
"""

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import RLock
from typing import Dict, List, Optional, Protocol

from .engine import Feedback
from .errors import NotFoundError
from .types import Code, Difficulty, Mode, Phase, SYNTHETIC_PARTICIPANT_ID


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Move:
    match_id: str
    participant_id: str
    guess: Code
    feedback: Feedback
    sequence_number: int  # per participant, from 1
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class Match:
    id: str
    participant_a: str
    participant_b: Optional[str] = None
    secret_a: Optional[Code] = None
    secret_b: Optional[Code] = None
    phase: Phase = "awaiting_secrets"
    turn_holder: Optional[str] = None
    winner: Optional[str] = None
    moves: List[Move] = field(default_factory=list)
    mode: Mode = "ai"
    difficulty: Difficulty = "standard"
    code_length: int = 4
    turn_number: int = 0  # accepted guesses so far
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def is_synthetic(self) -> bool:
        return self.mode == "ai"

    @property
    def seat_b(self) -> Optional[str]:
        """Whoever occupies the second seat (the synthetic id in ai matches)."""
        if self.is_synthetic:
            return SYNTHETIC_PARTICIPANT_ID
        return self.participant_b

    def is_participant(self, participant_id: Optional[str]) -> bool:
        if participant_id is None:
            return False
        return participant_id in (self.participant_a, self.seat_b)

    def opponent_of(self, participant_id: str) -> Optional[str]:
        if participant_id == self.participant_a:
            return self.seat_b
        return self.participant_a

    def secret_of(self, participant_id: Optional[str]) -> Optional[Code]:
        if participant_id is None:
            return None
        if participant_id == self.participant_a:
            return self.secret_a
        if participant_id == self.seat_b:
            return self.secret_b
        return None

    def moves_of(self, participant_id: str) -> List[Move]:
        return [m for m in self.moves if m.participant_id == participant_id]


class MatchRepository(Protocol):
    def load_match(self, match_id: str) -> Match: ...

    def save_match(self, match: Match) -> None: ...

    def append_move(self, match_id: str, move: Move) -> None: ...

    def list_matches(self, participant_id: str) -> List[Match]: ...


class InMemoryMatchRepository:
    """
    Dict-backed repository. Hands out deep copies so a caller mutating its
    working copy never touches the stored record until save_match().
    """

    def __init__(self) -> None:
        self._matches: Dict[str, Match] = {}
        self._lock = RLock()

    def load_match(self, match_id: str) -> Match:
        with self._lock:
            match = self._matches.get(match_id)
            if match is None:
                raise NotFoundError(match_id)
            return copy.deepcopy(match)

    def save_match(self, match: Match) -> None:
        with self._lock:
            self._matches[match.id] = copy.deepcopy(match)

    def append_move(self, match_id: str, move: Move) -> None:
        with self._lock:
            match = self._matches.get(match_id)
            if match is None:
                raise NotFoundError(match_id)
            # save_match() may already carry this move in its journal
            if move not in match.moves:
                match.moves.append(move)

    def list_matches(self, participant_id: str) -> List[Match]:
        with self._lock:
            found = [
                m for m in self._matches.values()
                if participant_id in (m.participant_a, m.participant_b)
            ]
            found.sort(key=lambda m: m.created_at)
            return copy.deepcopy(found)
