"""
Return distribution utilities.
Pure functions for return histograms and per-asset risk/return points.
"""

import math
from typing import Any, Dict, List, Optional, Sequence

from analysis.calculations.returns import annualized_return, daily_returns
from analysis.calculations.volatility import annualized_volatility

# Bin width used when every return is identical
MIN_BIN_WIDTH = 0.001


def return_histogram(returns: Sequence[float], bins: int = 10) -> List[Dict[str, float]]:
    """
    Equal-width histogram of returns between their min and max.

    Values are assigned to floor((r - min) / width), clamped into range,
    so the maximum lands in the last bin.

    Args:
        returns: Daily returns
        bins: Number of bins

    Returns:
        List of {'lower', 'upper', 'count'} dicts, empty for empty input
    """
    if not returns:
        return []

    low = min(returns)
    high = max(returns)
    width = (high - low) / bins or MIN_BIN_WIDTH

    counts = [0] * bins
    for r in returns:
        idx = int(math.floor((r - low) / width))
        counts[min(max(idx, 0), bins - 1)] += 1

    return [
        {'lower': low + i * width, 'upper': low + (i + 1) * width, 'count': counts[i]}
        for i in range(bins)
    ]


def risk_return_point(values: Sequence[Optional[float]]) -> Dict[str, Any]:
    """
    Annualized return and volatility of one price series.

    Returns:
        {'annualized_return', 'annualized_volatility', 'observations'}
    """
    returns = daily_returns(values)
    return {
        'annualized_return': annualized_return(returns),
        'annualized_volatility': annualized_volatility(returns),
        'observations': len(returns),
    }
