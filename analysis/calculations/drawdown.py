"""
Drawdown calculation utilities.
Pure functions for maximum drawdown of a return series.
"""

from typing import Sequence

import numpy as np

from analysis.calculations.degenerate import AnalyticsDegenerate, as_array


def drawdown_path(returns: Sequence[float]) -> np.ndarray:
    """
    Drawdown at each step of the summed cumulative return.

    cum_t = r_1 + ... + r_t, peak_t = max(0, cum_1..cum_t),
    drawdown_t = peak_t - cum_t (always >= 0).

    Raises:
        AnalyticsDegenerate: If fewer than 2 returns
    """
    arr = as_array(returns, minimum=2)
    cumulative = np.cumsum(arr)
    # Running peak starts at 0, not at the first cumulative value
    peaks = np.maximum.accumulate(np.maximum(cumulative, 0.0))
    return peaks - cumulative


def max_drawdown(returns: Sequence[float]) -> float:
    """
    Largest gap between the running peak and the cumulative return.

    Example:
        [0.01, 0.03, -0.02, 0.01]
        cum = [0.01, 0.04, 0.02, 0.03], peak = [0.01, 0.04, 0.04, 0.04]
        max drawdown = 0.02

    Returns:
        Maximum drawdown as a positive decimal, 0.0 for degenerate input
    """
    try:
        return float(np.max(drawdown_path(returns)))
    except AnalyticsDegenerate:
        return 0.0
