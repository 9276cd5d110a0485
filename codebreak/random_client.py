"""
- Local sampling-without-replacement for codes (explicit Fisher-Yates)
- Optional HTTP call to random.org with clear fallback

random.org's /sequences endpoint returns a random permutation of 0..9,
which is exactly what a unique-digit code needs. If anything goes wrong
(no internet, timeout, bad response), we fall back to the local draw so
the game still works.
"""

import logging
import random
from secrets import SystemRandom
from typing import Optional

import requests

from .engine import validate_code
from .types import Code, DIGITS

logger = logging.getLogger(__name__)

SEQUENCE_URL = "https://www.random.org/sequences/"

_system_rng = SystemRandom()


def draw_code(length: int = 4, rng: Optional[random.Random] = None) -> Code:
    """
    Partial Fisher-Yates over the ten digits: after `length` swaps the
    front of the list is a uniform sample without replacement.
    """
    if length < 1 or length > len(DIGITS):
        raise ValueError(f"Code length must be between 1 and {len(DIGITS)}.")
    rng = rng or _system_rng

    pool = list(DIGITS)
    i = 0
    while i < length:
        # pick from the not-yet-fixed tail [i, 9]
        j = i + rng.randrange(len(pool) - i)
        pool[i], pool[j] = pool[j], pool[i]
        i += 1
    return "".join(pool[:length])


def fetch_code(length: int = 4, timeout_seconds: float = 3.0) -> Code:
    params = {
        "min": 0,          # smallest digit
        "max": 9,          # largest digit
        "col": 1,          # one number per line
        "format": "plain", # plain text response
        "rnd": "new",      # always generate a new sequence
    }

    try:
        response = requests.get(SEQUENCE_URL, params=params, timeout=timeout_seconds)
        response.raise_for_status()

        # The body looks like:
        #   7\n0\n3\n...
        digits = [line.strip() for line in response.text.splitlines() if line.strip()]
        code = "".join(digits[:length])

        # Same checks as any player's secret
        validate_code(code, length)
        return code

    except Exception as exc:
        logger.warning("random.org unavailable (%s); using local draw", exc)
        return draw_code(length)
