"""Integer rounding shared by every score calculation."""

from __future__ import annotations

import math

__all__ = ["round_half_up"]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with ties going up (``12.5`` -> ``13``)."""

    return math.floor(value + 0.5)
