"""
Pydantic models for the HTTP adapter.
- Request bodies are validated here only for shape (strings, enums);
  game rules (length, digits, uniqueness) stay in engine.validate_code so
  every caller gets the same error codes.
- Match projections hide the opponent's secret until the match is over.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .engine import feedback_message
from .store import Match, Move
from .types import Phase


# 1. Create a match
class CreateMatchRequest(BaseModel):
    opponent_id: Optional[str] = Field(
        None, description="Second participant; omit for a synthetic opponent (or an open seat in human modes)"
    )
    mode: Optional[Literal["ai", "friend", "random"]] = Field(
        None, description="Defaults to 'ai' without opponent_id, 'friend' with one"
    )
    difficulty: Literal["random", "beginner", "standard", "expert", "master"] = Field(
        "standard", description="How much feedback history the synthetic opponent uses"
    )


# 2. Secret / guess bodies
class SecretRequest(BaseModel):
    code: str = Field(..., description="N distinct digits, e.g. '3719'")

    model_config = {"json_schema_extra": {"examples": [{"code": "3719"}]}}


class GuessRequest(BaseModel):
    guess: str = Field(..., description="N distinct digits, e.g. '1456'")
    expected_turn: Optional[int] = Field(
        None, description="turn_number the client last saw; stale values are rejected"
    )

    model_config = {"json_schema_extra": {"examples": [{"guess": "1456"}, {"guess": "1456", "expected_turn": 2}]}}


# 3. A single move with feedback
class MoveOut(BaseModel):
    participant_id: str
    sequence_number: int
    guess: str
    shared_count: int = Field(..., description="Guess digits present anywhere in the secret")
    exact_count: int = Field(..., description="Guess digits in the right position")
    message: str
    timestamp: datetime

    @classmethod
    def from_move(cls, move: Move) -> "MoveOut":
        return cls(
            participant_id=move.participant_id,
            sequence_number=move.sequence_number,
            guess=move.guess,
            shared_count=move.feedback.shared_count,
            exact_count=move.feedback.exact_count,
            message=feedback_message(move.feedback),
            timestamp=move.timestamp,
        )


# 4. Match state as seen by one participant
class MatchOut(BaseModel):
    match_id: str
    participant_a: str
    participant_b: Optional[str]
    mode: str
    difficulty: str
    code_length: int
    phase: Phase
    turn_holder: Optional[str]
    turn_number: int
    winner: Optional[str]
    your_secret: Optional[str] = Field(None, description="Your own secret, if set")
    opponent_secret: Optional[str] = Field(None, description="Only revealed once the match is finished")
    moves: List[MoveOut]
    created_at: datetime
    started_at: Optional[datetime]
    ended_at: Optional[datetime]

    @classmethod
    def for_viewer(cls, match: Match, viewer: str) -> "MatchOut":
        opponent = match.opponent_of(viewer)
        return cls(
            match_id=match.id,
            participant_a=match.participant_a,
            participant_b=match.seat_b,
            mode=match.mode,
            difficulty=match.difficulty,
            code_length=match.code_length,
            phase=match.phase,
            turn_holder=match.turn_holder,
            turn_number=match.turn_number,
            winner=match.winner,
            your_secret=match.secret_of(viewer),
            opponent_secret=match.secret_of(opponent) if match.phase == "finished" else None,
            moves=[MoveOut.from_move(m) for m in match.moves],
            created_at=match.created_at,
            started_at=match.started_at,
            ended_at=match.ended_at,
        )


# 5. Result of a guess
class GuessResponse(BaseModel):
    move: MoveOut
    match_finished: bool
    turn_holder: Optional[str]
    winner: Optional[str]
    opponent_secret: Optional[str] = Field(None, description="Revealed only if the match is over")


# 6. Lightweight listing
class MatchSummaryOut(BaseModel):
    match_id: str
    opponent_id: Optional[str]
    mode: str
    phase: Phase
    winner: Optional[str]
    created_at: datetime


class ErrorOut(BaseModel):
    code: str = Field(..., description="Stable machine-readable error code")
    detail: str = Field(..., description="Human-readable message")
