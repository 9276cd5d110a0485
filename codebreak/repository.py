"""
DB-backed repository with the same API as the in-memory one.

Public methods:
- load_match(match_id) -> Match (raises NotFoundError)
- save_match(match) -> None      whole-record replace, commits
- append_move(match_id, move)    staged; committed by the next save_match()
- list_matches(participant_id) -> list[Match]

Staging moves until save_match() keeps each mutation one transaction: if the
commit fails we roll back and neither the move nor the match change lands.
"""

from __future__ import annotations

from typing import List

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from .engine import Feedback
from .errors import NotFoundError
from .models import MatchRow, MoveRow
from .store import Match, Move

# --- Small builders: ORM rows <-> plain records ---

def _to_move(row: MoveRow) -> Move:
    return Move(
        match_id=row.match_id,
        participant_id=row.participant_id,
        guess=row.guess,
        feedback=Feedback(shared_count=row.shared_count, exact_count=row.exact_count),
        sequence_number=row.sequence_number,
        timestamp=row.timestamp,
    )


def _to_match(row: MatchRow) -> Match:
    return Match(
        id=row.id,
        participant_a=row.participant_a,
        participant_b=row.participant_b,
        secret_a=row.secret_a,
        secret_b=row.secret_b,
        phase=row.phase,
        turn_holder=row.turn_holder,
        winner=row.winner,
        moves=[_to_move(m) for m in row.moves],
        mode=row.mode,
        difficulty=row.difficulty,
        code_length=row.code_length,
        turn_number=row.turn_number,
        created_at=row.created_at,
        started_at=row.started_at,
        ended_at=row.ended_at,
    )


class DBMatchRepository:
    def __init__(self, db: Session):
        self.db = db

    def load_match(self, match_id: str) -> Match:
        row = self.db.get(MatchRow, match_id)
        if not row:
            raise NotFoundError(match_id)
        return _to_match(row)

    def save_match(self, match: Match) -> None:
        # staged moves are flushed by commit(); a failure anywhere here rolls them back too
        try:
            row = self.db.get(MatchRow, match.id)
            if row is None:
                row = MatchRow(id=match.id, created_at=match.created_at)
                self.db.add(row)

            row.participant_a = match.participant_a
            row.participant_b = match.participant_b
            row.secret_a = match.secret_a
            row.secret_b = match.secret_b
            row.phase = match.phase
            row.mode = match.mode
            row.difficulty = match.difficulty
            row.code_length = match.code_length
            row.turn_holder = match.turn_holder
            row.turn_number = match.turn_number
            row.winner = match.winner
            row.started_at = match.started_at
            row.ended_at = match.ended_at

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def append_move(self, match_id: str, move: Move) -> None:
        self.db.add(MoveRow(
            match_id=match_id,
            participant_id=move.participant_id,
            sequence_number=move.sequence_number,
            guess=move.guess,
            shared_count=move.feedback.shared_count,
            exact_count=move.feedback.exact_count,
            timestamp=move.timestamp,
        ))

    def list_matches(self, participant_id: str) -> List[Match]:
        rows = (
            self.db.execute(
                select(MatchRow)
                .where(or_(MatchRow.participant_a == participant_id, MatchRow.participant_b == participant_id))
                .order_by(MatchRow.created_at.asc())
            )
            .scalars()
            .all()
        )
        return [_to_match(r) for r in rows]
