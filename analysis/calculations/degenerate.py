"""
Degenerate-input signalling shared by the calculation modules.
Strict helpers raise AnalyticsDegenerate; the public calculate functions
catch it and return the metric's neutral value.
"""

from enum import Enum
from typing import Sequence

import numpy as np


class DegenerateKind(str, Enum):
    EMPTY_SERIES = 'empty_series'
    ZERO_VARIANCE = 'zero_variance'


class AnalyticsDegenerate(Exception):
    """Raised when input is too short or too flat for a metric."""

    def __init__(self, kind: DegenerateKind, message: str = ''):
        super().__init__(message or kind.value)
        self.kind = DegenerateKind(kind)


# Variances below this are treated as zero
VARIANCE_EPSILON = 1e-24


def as_array(returns: Sequence[float], minimum: int = 1) -> np.ndarray:
    """
    Convert returns to a float array, requiring at least `minimum` points.

    Raises:
        AnalyticsDegenerate: EMPTY_SERIES if fewer than `minimum` points
    """
    arr = np.asarray(list(returns), dtype=float)
    if arr.size < minimum:
        raise AnalyticsDegenerate(
            DegenerateKind.EMPTY_SERIES, f"need {minimum} returns, have {arr.size}"
        )
    return arr
