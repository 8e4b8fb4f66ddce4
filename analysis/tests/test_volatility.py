"""
Tests for volatility and Sharpe ratio.
Synthetic data where the population standard deviation is known.
"""

import math

import numpy as np
import pytest

from analysis.calculations.degenerate import AnalyticsDegenerate, DegenerateKind
from analysis.calculations.volatility import (
    annualized_volatility,
    population_std,
    sharpe_ratio,
)


class TestPopulationStd:
    """Tests for population_std (divide by n)."""

    def test_known_value(self):
        """Test alternating +/-1% has std exactly 1%."""
        returns = [0.01, -0.01, 0.01, -0.01]

        assert population_std(returns) == pytest.approx(0.01)

    def test_matches_numpy_ddof0(self):
        returns = [0.012, -0.004, 0.007, 0.001, -0.02]

        assert population_std(returns) == pytest.approx(float(np.std(returns, ddof=0)))

    def test_zero_variance(self):
        """Test constant returns signal zero variance."""
        with pytest.raises(AnalyticsDegenerate) as exc_info:
            population_std([0.01, 0.01, 0.01])

        assert exc_info.value.kind == DegenerateKind.ZERO_VARIANCE

    def test_single_return(self):
        with pytest.raises(AnalyticsDegenerate) as exc_info:
            population_std([0.01])

        assert exc_info.value.kind == DegenerateKind.EMPTY_SERIES


class TestAnnualizedVolatility:
    """Tests for annualized_volatility."""

    def test_scaled_by_sqrt_252(self):
        returns = [0.01, -0.01, 0.01, -0.01]

        assert annualized_volatility(returns) == pytest.approx(0.01 * math.sqrt(252))

    @pytest.mark.parametrize('returns', [[], [0.05], [0.0, 0.0, 0.0]])
    def test_degenerate_is_zero(self, returns):
        assert annualized_volatility(returns) == 0.0


class TestSharpeRatio:
    """Tests for sharpe_ratio."""

    def test_zero_returns(self):
        """Test flat returns give Sharpe 0, not a division error."""
        assert sharpe_ratio([0.0, 0.0, 0.0]) == 0.0

    def test_known_value(self):
        """Test Sharpe = (mean x 252) / (std x sqrt(252))."""
        returns = [0.02, 0.0, 0.02, 0.0]
        # mean 0.01, population std 0.01
        expected = (0.01 * 252) / (0.01 * math.sqrt(252))

        assert sharpe_ratio(returns) == pytest.approx(expected)

    def test_negative_mean(self):
        assert sharpe_ratio([-0.02, 0.0, -0.02, 0.0]) < 0

    def test_empty(self):
        assert sharpe_ratio([]) == 0.0
