"""
Synthetic opponent.

Plays through the same state machine as a human: it only ever sees its own
secret, its own guesses and the feedback those guesses got.

Guessing keeps every code that is consistent with the feedback of the last
K own moves and picks one at random. K grows with difficulty; the "random"
tier ignores history completely.
"""

import logging
import random
from itertools import permutations
from typing import Dict, List, Optional, Sequence

from .engine import score, validate_code
from .random_client import draw_code, fetch_code
from .store import Move
from .types import Code, Difficulty, DIGITS

logger = logging.getLogger(__name__)

# How many of its own most recent moves the opponent reasons about.
# None = the whole history.
HISTORY_WINDOW: Dict[str, Optional[int]] = {
    "random": 0,
    "beginner": 1,
    "standard": 3,
    "expert": 6,
    "master": None,
}


def all_codes(length: int) -> List[Code]:
    return ["".join(p) for p in permutations(DIGITS, length)]


class SyntheticOpponent:
    def __init__(
        self,
        difficulty: Difficulty = "standard",
        rng: Optional[random.Random] = None,
        use_random_org: bool = False,
    ) -> None:
        if difficulty not in HISTORY_WINDOW:
            raise ValueError(f"Unknown difficulty: {difficulty!r}")
        self.difficulty = difficulty
        self._rng = rng
        self._use_random_org = use_random_org

    def choose_secret(self, length: int) -> Code:
        if self._use_random_org and self._rng is None:
            code = fetch_code(length)
        else:
            code = draw_code(length, self._rng)
        validate_code(code, length)
        return code

    def choose_guess(self, length: int, own_moves: Sequence[Move]) -> Code:
        window = HISTORY_WINDOW[self.difficulty]
        if window is None:
            considered = list(own_moves)
        elif window == 0:
            considered = []
        else:
            considered = list(own_moves)[-window:]

        if not considered:
            return draw_code(length, self._rng)

        candidates = [
            code for code in all_codes(length)
            if all(score(code, m.guess) == m.feedback for m in considered)
        ]
        if not candidates:
            # only possible if the recorded feedback is inconsistent
            logger.warning("no code fits %d recorded moves; guessing at random", len(considered))
            return draw_code(length, self._rng)

        pick = self._rng.choice(candidates) if self._rng else random.choice(candidates)
        validate_code(pick, length)
        return pick
