"""
Decayed stake per attempt number.

    stake(n) = max(1, ceil(B * r^(n-1)))

Each retry shrinks the amount at risk (and, since a pass returns the stake, the
payout) but never below 1 token. Evaluated with Fractions so an exact integer
product is never pushed up a token by float error.
"""
import math
from fractions import Fraction

DECAY_BASE = 0.6  # stake multiplier per re-attempt
MIN_STAKE = 1


def decayed_stake(base_stake: int, attempt_number: int, decay_base: float = DECAY_BASE) -> int:
    if attempt_number < 1:
        raise ValueError(f"attempt_number must be >= 1, got {attempt_number}")
    if base_stake < MIN_STAKE:
        raise ValueError(f"base_stake must be >= {MIN_STAKE}, got {base_stake}")
    if not 0 < decay_base < 1:
        raise ValueError(f"decay_base must be in (0, 1), got {decay_base}")
    factor = Fraction(str(decay_base)) ** (attempt_number - 1)
    return max(MIN_STAKE, math.ceil(base_stake * factor))


def decay_percent(attempt_number: int, decay_base: float = DECAY_BASE) -> int:
    """Share of the base stake charged on this attempt, for ledger notes."""
    return round(decay_base ** (attempt_number - 1) * 100)
