"""
Labels for clarity.
"""

from typing import Literal

Code = str  # "3719": N distinct digits
Phase = Literal["awaiting_secrets", "in_progress", "finished"]
Mode = Literal["ai", "friend", "random"]
Difficulty = Literal["random", "beginner", "standard", "expert", "master"]

# Reserved participant id for the synthetic opponent (turn holder / winner)
SYNTHETIC_PARTICIPANT_ID = "synthetic"

DIGITS = "0123456789"
