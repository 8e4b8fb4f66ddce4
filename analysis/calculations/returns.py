"""
Returns calculation utilities.
Pure functions for daily returns and their annualized mean.
"""

from typing import List, Optional, Sequence

import numpy as np

from analysis.calculations.degenerate import AnalyticsDegenerate, as_array

TRADING_DAYS = 252


def daily_returns(values: Sequence[Optional[float]]) -> List[float]:
    """
    Simple returns between consecutive present values.

    Formula: r_t = (v_t - v_{t-1}) / v_{t-1}

    A pair is used only when both points are present; a zero previous
    value is skipped rather than producing an infinite return.

    Args:
        values: Series values in chronological order (None = absent)

    Returns:
        List of returns (possibly empty)

    Example:
        [100, 110, None, 121] -> [0.10]
        (110 -> None and None -> 121 are both skipped)
    """
    returns = []
    for prev, curr in zip(values, values[1:]):
        if prev is None or curr is None or prev == 0:
            continue
        returns.append((curr - prev) / prev)
    return returns


def mean_return(returns: Sequence[float]) -> float:
    """
    Arithmetic mean of returns.

    Raises:
        AnalyticsDegenerate: If returns is empty
    """
    return float(np.mean(as_array(returns)))


def annualized_return(returns: Sequence[float], periods: int = TRADING_DAYS) -> float:
    """
    Annualized mean return: mean(returns) x 252.

    Returns:
        Annualized return as decimal, 0.0 for empty input
    """
    try:
        return mean_return(returns) * periods
    except AnalyticsDegenerate:
        return 0.0


def total_return(values: Sequence[Optional[float]]) -> float:
    """
    Return from first to last present value: last / first - 1.

    Returns:
        Total return as decimal, 0.0 if fewer than two present values
        or the first value is zero
    """
    present = [v for v in values if v is not None]
    if len(present) < 2 or present[0] == 0:
        return 0.0
    return present[-1] / present[0] - 1
