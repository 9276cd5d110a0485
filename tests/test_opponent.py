"""
Testing the synthetic opponent and the code sampling it relies on.
"""

import random

import pytest
import requests

import codebreak.random_client as random_client
from codebreak.engine import Feedback, is_winning_guess, score, validate_code
from codebreak.opponent import SyntheticOpponent
from codebreak.random_client import draw_code, fetch_code
from codebreak.store import Move
from codebreak.types import SYNTHETIC_PARTICIPANT_ID


def _move(guess: str, feedback: Feedback, seq: int) -> Move:
    return Move("m1", SYNTHETIC_PARTICIPANT_ID, guess, feedback, seq)


def test_draw_code_is_valid_and_seedable():
    for seed in range(20):
        validate_code(draw_code(4, random.Random(seed)), 4)
    assert draw_code(4, random.Random(5)) == draw_code(4, random.Random(5))
    assert len(draw_code(10, random.Random(1))) == 10


def test_draw_code_rejects_impossible_lengths():
    with pytest.raises(ValueError):
        draw_code(0)
    with pytest.raises(ValueError):
        draw_code(11)


def test_draw_code_reaches_every_digit_in_every_slot():
    rng = random.Random(3)
    seen = [set() for _ in range(4)]
    for _ in range(500):
        for i, ch in enumerate(draw_code(4, rng)):
            seen[i].add(ch)
    assert all(len(s) == 10 for s in seen)


def test_choose_secret_is_valid():
    opponent = SyntheticOpponent("standard", rng=random.Random(7))
    validate_code(opponent.choose_secret(4), 4)


def test_random_tier_ignores_history():
    history = [_move("0123", Feedback(0, 0), 1)]
    # with history ignored, digits 0-3 are still fair game
    picks = {SyntheticOpponent("random", rng=random.Random(s)).choose_guess(4, history) for s in range(50)}
    assert any(set(p) & set("0123") for p in picks)
    for p in picks:
        validate_code(p, 4)


def test_history_narrows_guesses():
    history = [_move("0123", Feedback(0, 0), 1)]
    opponent = SyntheticOpponent("beginner", rng=random.Random(11))
    for _ in range(20):
        guess = opponent.choose_guess(4, history)
        assert not set(guess) & set("0123")


def test_master_cracks_a_secret():
    secret = "3719"
    opponent = SyntheticOpponent("master", rng=random.Random(2024))
    history = []
    for seq in range(1, 21):
        guess = opponent.choose_guess(4, history)
        if is_winning_guess(guess, secret):
            break
        history.append(_move(guess, score(guess, secret), seq))
    else:
        pytest.fail("master opponent did not find the secret in 20 guesses")


def test_inconsistent_history_still_yields_a_valid_guess():
    history = [
        _move("0123", Feedback(0, 0), 1),
        _move("0123", Feedback(4, 4), 2),  # contradicts the first
    ]
    guess = SyntheticOpponent("master", rng=random.Random(1)).choose_guess(4, history)
    validate_code(guess, 4)


def test_unknown_difficulty():
    with pytest.raises(ValueError):
        SyntheticOpponent("godlike")


# --- random.org ---

class _FakeResponse:
    def __init__(self, text: str, status: int = 200):
        self.text = text
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise requests.HTTPError(f"status {self.status}")


def test_fetch_code_uses_random_org_sequence(monkeypatch):
    monkeypatch.setattr(random_client.requests, "get",
                        lambda *a, **kw: _FakeResponse("7\n0\n3\n9\n1\n2\n4\n5\n6\n8\n"))
    assert fetch_code(4) == "7039"


def test_fetch_code_falls_back_when_offline(monkeypatch):
    def offline(*args, **kwargs):
        raise requests.ConnectionError("no network")

    monkeypatch.setattr(random_client.requests, "get", offline)
    validate_code(fetch_code(4), 4)


def test_fetch_code_falls_back_on_bad_payload(monkeypatch):
    monkeypatch.setattr(random_client.requests, "get", lambda *a, **kw: _FakeResponse("1\n1\n1\n1\n"))
    validate_code(fetch_code(4), 4)


def test_opponent_uses_random_org_when_enabled(monkeypatch):
    monkeypatch.setattr(random_client.requests, "get",
                        lambda *a, **kw: _FakeResponse("5\n4\n3\n2\n1\n0\n6\n7\n8\n9\n"))
    assert SyntheticOpponent("standard", use_random_org=True).choose_secret(4) == "5432"
