"""
Tests for Pearson correlation and the correlation matrix.
"""

import numpy as np
import pytest

from analysis.calculations.correlation import correlation_lookup, correlation_matrix, pearson
from analysis.calculations.degenerate import AnalyticsDegenerate


class TestPearson:
    """Tests for pearson function."""

    def test_matches_numpy(self):
        a = [0.01, -0.02, 0.015, 0.003, -0.007]
        b = [0.02, -0.01, 0.01, -0.004, 0.0]

        assert pearson(a, b) == pytest.approx(float(np.corrcoef(a, b)[0, 1]))

    def test_perfect_negative(self):
        a = [0.01, 0.02, 0.03]
        b = [-0.01, -0.02, -0.03]

        assert pearson(a, b) == pytest.approx(-1.0)

    def test_constant_side_is_degenerate(self):
        with pytest.raises(AnalyticsDegenerate):
            pearson([0.01, 0.01, 0.01], [0.01, 0.02, 0.03])


class TestCorrelationMatrix:
    """Tests for correlation_matrix function."""

    def test_symmetric_unit_diagonal(self):
        """Test corr[i][j] == corr[j][i] exactly and corr[i][i] == 1."""
        returns = {
            'SPY': [0.01, -0.02, 0.015, 0.003, -0.007],
            'BTC': [0.05, -0.01, 0.02, -0.03, 0.04],
            'TSLA': [0.02, -0.03, 0.01, 0.0, -0.01],
        }

        labels, matrix = correlation_matrix(returns)

        assert labels == ['SPY', 'BTC', 'TSLA']
        for i in range(3):
            assert matrix[i][i] == 1.0
            for j in range(3):
                assert matrix[i][j] == matrix[j][i]
                assert -1.0 <= matrix[i][j] <= 1.0

    def test_truncates_pairs_to_shorter(self):
        returns = {
            'a': [0.01, 0.02, 0.03],
            'b': [0.02, 0.04, 0.06, -0.5],
        }

        _, matrix = correlation_matrix(returns)

        assert matrix[0][1] == pytest.approx(1.0)

    def test_degenerate_pairs_are_zero(self):
        """Test zero-variance and empty pairs give 0 off-diagonal."""
        returns = {
            'flat': [0.0, 0.0, 0.0],
            'moving': [0.01, -0.02, 0.03],
            'empty': [],
        }

        _, matrix = correlation_matrix(returns)

        assert matrix[0][1] == 0.0
        assert matrix[1][2] == 0.0
        assert matrix[2][2] == 1.0

    def test_lookup(self):
        labels, matrix = correlation_matrix({'a': [0.01, 0.02], 'b': [0.02, 0.01]})

        lookup = correlation_lookup(labels, matrix)

        assert lookup['a']['b'] == pytest.approx(-1.0)
        assert lookup['b']['b'] == 1.0
