"""
SQLAlchemy ORM models.

Tables:
- matches: one row per match (both secrets, phase, turn bookkeeping)
- moves: one row per accepted guess (the move journal), unique per
  (match_id, participant_id, sequence_number)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    String, Integer, DateTime, Enum, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship, Mapped, mapped_column
from .db import Base
from .types import Difficulty, Mode, Phase


class MatchRow(Base):
    __tablename__ = "matches"

    # UUIDs generated in code; stored as strings
    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    participant_a: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    participant_b: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)

    # Secrets are short digit strings ("3719")
    secret_a: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    secret_b: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    phase: Mapped[Phase] = mapped_column(
        Enum("awaiting_secrets", "in_progress", "finished", name="match_phase"),
        nullable=False,
        default="awaiting_secrets",
    )
    mode: Mapped[Mode] = mapped_column(
        Enum("ai", "friend", "random", name="match_mode"),
        nullable=False,
        default="ai",
    )
    difficulty: Mapped[Difficulty] = mapped_column(
        Enum("random", "beginner", "standard", "expert", "master", name="difficulty"),
        nullable=False,
        default="standard",
    )
    code_length: Mapped[int] = mapped_column(Integer, nullable=False, default=4)

    turn_holder: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    turn_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    winner: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    moves: Mapped[list["MoveRow"]] = relationship(
        back_populates="match",
        cascade="all, delete-orphan",
        order_by="MoveRow.id.asc()",
    )


class MoveRow(Base):
    __tablename__ = "moves"
    __table_args__ = (
        UniqueConstraint("match_id", "participant_id", "sequence_number", name="uq_move_sequence"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    match_id: Mapped[str] = mapped_column(String(36), ForeignKey("matches.id", ondelete="CASCADE"), index=True)
    match: Mapped[MatchRow] = relationship(back_populates="moves")

    participant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    sequence_number: Mapped[int] = mapped_column(Integer, nullable=False)
    guess: Mapped[str] = mapped_column(String(10), nullable=False)

    # Engine output
    shared_count: Mapped[int] = mapped_column(Integer, nullable=False)
    exact_count: Mapped[int] = mapped_column(Integer, nullable=False)

    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
