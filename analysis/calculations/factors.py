"""
Factor exposure utilities.
Pure functions - portfolio exposure as the weighted sum of asset loadings.
"""

from typing import Dict, Mapping, Sequence

import numpy as np

FACTORS = ('Size', 'Value', 'Momentum', 'Quality')


class FactorError(ValueError):
    """Raised when loadings do not match the factor set."""
    pass


def factor_exposure(
    weights: Mapping[str, float],
    loadings: Mapping[str, Sequence[float]],
    factors: Sequence[str] = FACTORS
) -> Dict[str, float]:
    """
    Portfolio exposure to each factor.

    Formula: exposure_f = sum_i(w_i x loading_i,f)

    Args:
        weights: Symbol to portfolio weight
        loadings: Symbol to loadings, one per factor in `factors` order
        factors: Factor names

    Returns:
        Factor name to exposure. Symbols without loadings contribute 0.

    Raises:
        FactorError: If a loading vector has the wrong length
    """
    exposure = np.zeros(len(factors))

    for symbol, weight in weights.items():
        if symbol not in loadings:
            continue
        vector = np.asarray(loadings[symbol], dtype=float)
        if vector.shape != (len(factors),):
            raise FactorError(
                f"{symbol}: expected {len(factors)} loadings, got {vector.size}"
            )
        exposure += weight * vector

    return {factor: float(value) for factor, value in zip(factors, exposure)}
