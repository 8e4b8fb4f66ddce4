"""
Risk calculation utilities.
Pure functions for historical value-at-risk and beta.
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


class RiskError(ValueError):
    """Raised when risk parameters are invalid."""
    pass


def historical_var(returns: Sequence[float], confidence_tail: float = 0.05) -> float:
    """
    Historical value-at-risk.

    Formula: VaR_p = -sorted(returns)[floor(n x p)]

    Args:
        returns: Daily returns
        confidence_tail: Tail probability p in (0, 1), e.g. 0.05 for 95%

    Returns:
        VaR as decimal (positive = loss), 0.0 for fewer than 2 returns

    Raises:
        RiskError: If confidence_tail is outside (0, 1)
    """
    if not 0 < confidence_tail < 1:
        raise RiskError(f"confidence_tail must be in (0, 1), got {confidence_tail}")

    try:
        arr = np.sort(as_array(returns, minimum=2))
    except AnalyticsDegenerate:
        return 0.0

    index = int(math.floor(arr.size * confidence_tail))
    # Guard against floating point edge when n x p rounds up to n
    index = min(index, arr.size - 1)
    return float(-arr[index])


def covariance_and_variance(asset: Sequence[float], benchmark: Sequence[float]):
    """
    Population covariance of asset with benchmark and benchmark variance,
    over the first n = min(len) points of each.

    Raises:
        AnalyticsDegenerate: EMPTY_SERIES if n == 0, ZERO_VARIANCE if the
            benchmark is flat
    """
    n = min(len(asset), len(benchmark))
    a = as_array(list(asset)[:n])
    b = as_array(list(benchmark)[:n])

    a_dev = a - a.mean()
    b_dev = b - b.mean()
    variance = float(np.mean(b_dev ** 2))
    if variance <= VARIANCE_EPSILON:
        raise AnalyticsDegenerate(DegenerateKind.ZERO_VARIANCE, "benchmark returns are constant")

    return float(np.mean(a_dev * b_dev)), variance


def beta(asset: Sequence[float], benchmark: Sequence[float]) -> float:
    """
    Beta of asset returns against benchmark returns: cov / var(benchmark).

    Returns:
        Beta, 1.0 when there are no overlapping returns or the benchmark
        has zero variance
    """
    try:
        covariance, variance = covariance_and_variance(asset, benchmark)
    except AnalyticsDegenerate:
        return 1.0
    return covariance / variance
