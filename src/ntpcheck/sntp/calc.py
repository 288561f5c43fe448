"""Clock offset and round-trip delay from the four exchange timestamps.

t1: client send (local), t2: server receive, t3: server transmit,
t4: client receive (local). All in the same unit (milliseconds here).
"""

from typing import Tuple


def compute_offset(t1: float, t2: float, t3: float, t4: float) -> float:
    """offset = ((t2 - t1) + (t3 - t4)) / 2, assuming symmetric paths."""
    return ((t2 - t1) + (t3 - t4)) / 2


def compute_delay(t1: float, t2: float, t3: float, t4: float) -> float:
    """delay = (t4 - t1) - (t3 - t2).

    Not clamped: a negative delay indicates clock skew or a bad exchange
    and is returned as-is.
    """
    return (t4 - t1) - (t3 - t2)


def offset_and_delay(t1: float, t2: float, t3: float, t4: float) -> Tuple[float, float]:
    return compute_offset(t1, t2, t3, t4), compute_delay(t1, t2, t3, t4)
