"""
Numeric helpers shared by the calculation services.
"""

import math


def round_half_up(value: float) -> int:
    """Round halves toward positive infinity (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))
