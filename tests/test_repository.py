"""
Testing the SQLAlchemy repository (SQLite in-memory) under the real state machine.
"""

import random

import pytest
from sqlalchemy.exc import IntegrityError

from codebreak.engine import Feedback
from codebreak.errors import NotFoundError
from codebreak.repository import DBMatchRepository
from codebreak.state_machine import MatchStateMachine
from codebreak.store import Move


@pytest.fixture
def db_machine(db_session):
    return MatchStateMachine(DBMatchRepository(db_session), opponent_rng=random.Random(8))


def test_repository_flow(db_machine):
    match = db_machine.create_match("alice", "bob")
    db_machine.set_secret(match.id, "alice", "1234")
    db_machine.set_secret(match.id, "bob", "9876")

    # not a win
    outcome = db_machine.submit_guess(match.id, "alice", "1456")
    assert outcome.match_finished is False

    # win
    outcome = db_machine.submit_guess(match.id, "bob", "1234")
    assert outcome.match_finished is True

    stored = db_machine.get_match(match.id)
    assert stored.phase == "finished"
    assert stored.winner == "bob"
    assert stored.turn_number == 2
    assert [(m.participant_id, m.guess, m.sequence_number) for m in stored.moves] == [
        ("alice", "1456", 1),
        ("bob", "1234", 1),
    ]
    assert stored.moves[1].feedback == Feedback(4, 4)
    assert stored.ended_at is not None


def test_synthetic_match_persists_generated_secret(db_machine):
    match = db_machine.create_match("alice")
    started = db_machine.set_secret(match.id, "alice", "1234")

    stored = db_machine.get_match(match.id)
    assert stored.mode == "ai"
    assert stored.participant_b is None
    assert stored.secret_b == started.secret_b
    assert stored.phase == "in_progress"


def test_unknown_match(db_session):
    with pytest.raises(NotFoundError):
        DBMatchRepository(db_session).load_match("missing")


def test_failed_commit_rolls_back_move_and_match(db_machine, db_session, monkeypatch):
    match = db_machine.create_match("alice", "bob")
    db_machine.set_secret(match.id, "alice", "1234")
    db_machine.set_secret(match.id, "bob", "9876")

    def boom():
        raise IntegrityError("commit", {}, Exception("disk on fire"))

    monkeypatch.setattr(db_session, "commit", boom)
    with pytest.raises(IntegrityError):
        db_machine.submit_guess(match.id, "alice", "1456")
    monkeypatch.undo()

    stored = db_machine.get_match(match.id)
    assert stored.moves == []
    assert stored.turn_holder == "alice"
    assert stored.turn_number == 0


def test_duplicate_sequence_number_is_refused(db_machine, db_session):
    match = db_machine.create_match("alice", "bob")
    repo = DBMatchRepository(db_session)
    saved = repo.load_match(match.id)

    repo.append_move(match.id, Move(match.id, "alice", "1456", Feedback(1, 0), 1))
    repo.append_move(match.id, Move(match.id, "alice", "7890", Feedback(0, 0), 1))
    with pytest.raises(IntegrityError):
        repo.save_match(saved)

    assert repo.load_match(match.id).moves == []


def test_list_matches(db_machine):
    first = db_machine.create_match("alice", "bob")
    second = db_machine.create_match("carol", "alice")
    db_machine.create_match("carol", "dave")

    assert [m.id for m in db_machine.list_matches("alice")] == [first.id, second.id]
    assert [m.id for m in db_machine.list_matches("bob")] == [first.id]
