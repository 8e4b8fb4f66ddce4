"""
Correlation calculation utilities.
Pure functions for pairwise Pearson correlation of return series.
"""

from typing import Dict, List, Mapping, Sequence, Tuple

import numpy as np

from analysis.calculations.degenerate import (
    VARIANCE_EPSILON,
    AnalyticsDegenerate,
    DegenerateKind,
    as_array,
)


def pearson(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Pearson correlation over the first n = min(len) points of each series.

    Raises:
        AnalyticsDegenerate: EMPTY_SERIES if n == 0, ZERO_VARIANCE if
            either side is flat
    """
    n = min(len(a), len(b))
    x = as_array(list(a)[:n])
    y = as_array(list(b)[:n])

    x_dev = x - x.mean()
    y_dev = y - y.mean()
    var_x = float(np.mean(x_dev ** 2))
    var_y = float(np.mean(y_dev ** 2))
    if var_x <= VARIANCE_EPSILON or var_y <= VARIANCE_EPSILON:
        raise AnalyticsDegenerate(DegenerateKind.ZERO_VARIANCE, "constant series")

    # Rounding can push |r| a hair past 1
    r = np.mean(x_dev * y_dev) / np.sqrt(var_x * var_y)
    return float(np.clip(r, -1.0, 1.0))


def correlation_matrix(
    returns_by_name: Mapping[str, Sequence[float]]
) -> Tuple[List[str], List[List[float]]]:
    """
    Square correlation matrix across named return series.

    Diagonal entries are exactly 1. Each off-diagonal pair is computed
    once and mirrored, so the matrix is symmetric by construction.
    Pairs with no overlap or zero variance get 0.

    Args:
        returns_by_name: Mapping of name to daily returns

    Returns:
        Tuple of (labels, matrix) with matrix[i][j] = corr(labels[i], labels[j])
    """
    labels = list(returns_by_name.keys())
    n = len(labels)
    matrix = [[0.0] * n for _ in range(n)]

    for i in range(n):
        matrix[i][i] = 1.0
        for j in range(i + 1, n):
            try:
                value = pearson(returns_by_name[labels[i]], returns_by_name[labels[j]])
            except AnalyticsDegenerate:
                value = 0.0
            matrix[i][j] = value
            matrix[j][i] = value

    return labels, matrix


def correlation_lookup(labels: List[str], matrix: List[List[float]]) -> Dict[str, Dict[str, float]]:
    """Nested dict form of a correlation matrix: lookup[a][b]."""
    return {
        a: {b: matrix[i][j] for j, b in enumerate(labels)}
        for i, a in enumerate(labels)
    }
