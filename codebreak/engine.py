"""
Pure game logic (no HTTP, no storage, no randomness).
We compute two feedback numbers for each guess:
- shared_count: how many guess digits appear anywhere in the secret
- exact_count: how many indices are exactly correct (right digit, right place)

Codes are strings of distinct digits, e.g. "3719".
"""

from typing import NamedTuple

from .errors import DuplicateDigitError, FormatError, ShapeError
from .types import Code, DIGITS

CODE_LENGTH = 4


class Feedback(NamedTuple):
    shared_count: int
    exact_count: int


def validate_code(candidate: str, length: int = CODE_LENGTH) -> None:
    """
    Raise an InvalidCodeError subclass if `candidate` is not a legal code.
    Checks run in a fixed order: shape, then format, then duplicates.

      "123"  -> ShapeError
      "12a4" -> FormatError
      "1123" -> DuplicateDigitError
      "3719" -> ok (returns None)
    """
    if not isinstance(candidate, str) or len(candidate) != length:
        raise ShapeError(f"Code must be exactly {length} digits.")

    for ch in candidate:
        # str.isdigit() would also accept things like "²"
        if ch not in DIGITS:
            raise FormatError("Code must contain only digits 0-9.")

    if len(set(candidate)) != length:
        raise DuplicateDigitError("All digits must be unique.")


def score(guess: Code, secret: Code) -> Feedback:
    """
    Example:
      secret = "3719"
      guess  = "3186"
      exact_count  = 1  (the 3 is in place)
      shared_count = 2  (3 and 1 both appear in the secret)

    Inputs are expected to be validated. shared_count uses set semantics, so
    a repeated guess digit can never be counted twice against one secret digit
    even if unvalidated input slips through.
    """
    if len(guess) != len(secret):
        raise ValueError("Secret and guess must be the same length.")

    # 1. Exact position matches
    exact_count = 0
    for g, s in zip(guess, secret):
        if g == s:
            exact_count += 1

    # 2. Digits present anywhere in both
    shared_count = len(set(guess) & set(secret))

    return Feedback(shared_count=shared_count, exact_count=exact_count)


def is_winning_guess(guess: Code, secret: Code) -> bool:
    """Win = every digit matches in order."""
    return guess == secret


def feedback_message(feedback: Feedback) -> str:
    # Never reveals which digits matched
    if feedback.shared_count == 0 and feedback.exact_count == 0:
        return "all incorrect"
    return (
        f"{feedback.shared_count} correct digit(s) and "
        f"{feedback.exact_count} correct position(s)"
    )
