"""
Volatility calculation utilities.
Pure functions for population standard deviation, annualized volatility
and the Sharpe ratio. No risk-free rate is subtracted.
"""

import math
from typing import Sequence

import numpy as np

from analysis.calculations.degenerate import (
    VARIANCE_EPSILON,
    AnalyticsDegenerate,
    DegenerateKind,
    as_array,
)
from analysis.calculations.returns import TRADING_DAYS, annualized_return

# Volatility below this counts as zero for the Sharpe ratio
SHARPE_VOL_EPSILON = 1e-12


def population_std(returns: Sequence[float]) -> float:
    """
    Population standard deviation (divide by n, ddof=0).

    Raises:
        AnalyticsDegenerate: EMPTY_SERIES for fewer than 2 returns,
            ZERO_VARIANCE if every return is identical
    """
    arr = as_array(returns, minimum=2)
    variance = float(np.var(arr))
    if variance <= VARIANCE_EPSILON:
        raise AnalyticsDegenerate(DegenerateKind.ZERO_VARIANCE, "returns are constant")
    return math.sqrt(variance)


def annualized_volatility(returns: Sequence[float], periods: int = TRADING_DAYS) -> float:
    """
    Annualized volatility: population std x sqrt(252).

    Returns:
        Volatility as decimal (0.25 = 25%), 0.0 for degenerate input
    """
    try:
        return population_std(returns) * math.sqrt(periods)
    except AnalyticsDegenerate:
        return 0.0


def sharpe_ratio(returns: Sequence[float], periods: int = TRADING_DAYS) -> float:
    """
    Sharpe ratio without a risk-free rate.

    Formula: (mean x 252) / (std x sqrt(252))

    Returns:
        Sharpe ratio, 0.0 when volatility is zero or input is degenerate
    """
    vol = annualized_volatility(returns, periods)
    if vol < SHARPE_VOL_EPSILON:
        return 0.0
    return annualized_return(returns, periods) / vol
