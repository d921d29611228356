"""
Wall-clock source in epoch milliseconds. Components take a clock callable so
tests can drive time by hand.
"""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)
