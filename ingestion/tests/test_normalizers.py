"""
Tests for series normalizers - alignment and rebasing.
"""

import pytest

from ingestion.series import TimeSeries
from ingestion.transforms.normalizers import (
    AXIS_UNION,
    NormalizationError,
    align,
    latest_value,
    rebase,
    rebase_all,
)


def make_series(key, labels, values):
    return TimeSeries(key=key, labels=tuple(labels), values=tuple(values))


class TestAlign:
    """Tests for align function."""

    def test_align_to_first_series(self):
        """Test every output uses the first series' labels; gaps become None."""
        spy = make_series('equity:SPY', ['d1', 'd2', 'd3'], [1.0, 2.0, 3.0])
        btc = make_series('crypto:bitcoin', ['d2', 'd3', 'd4'], [20.0, 30.0, 40.0])

        result = align({'SPY': spy, 'BTC': btc})

        assert result['SPY'].labels == ('d1', 'd2', 'd3')
        assert result['BTC'].labels == ('d1', 'd2', 'd3')
        assert result['BTC'].values == (None, 20.0, 30.0)
        assert result['BTC'].key == 'crypto:bitcoin'

    def test_align_union_sorts_dates(self):
        """Test union axis is chronological for ISO dates."""
        a = make_series('a', ['2024-01-03', '2024-01-01'], [3.0, 1.0])
        b = make_series('b', ['2024-01-02'], [2.0])

        result = align({'a': a, 'b': b}, axis=AXIS_UNION)

        assert result['a'].labels == ('2024-01-01', '2024-01-02', '2024-01-03')
        assert result['a'].values == (1.0, None, 3.0)
        assert result['b'].values == (None, 2.0, None)

    def test_align_union_keeps_first_seen_order(self):
        """Test non-date labels keep first-seen order."""
        a = make_series('a', ['Day 2', 'Day 1'], [2.0, 1.0])
        b = make_series('b', ['Day 3'], [3.0])

        result = align({'a': a, 'b': b}, axis=AXIS_UNION)

        assert result['a'].labels == ('Day 2', 'Day 1', 'Day 3')

    def test_align_outputs_share_axis(self):
        """Test output lengths are equal for every series."""
        a = make_series('a', ['x', 'y'], [1.0, 2.0])
        b = make_series('b', ['y'], [5.0])
        c = make_series('c', [], [])

        result = align({'a': a, 'b': b, 'c': c})

        assert {len(s) for s in result.values()} == {2}

    def test_align_unknown_axis(self):
        """Test invalid axis name."""
        with pytest.raises(NormalizationError, match="Unknown axis"):
            align({}, axis='middle')

    def test_align_empty(self):
        assert align({}) == {}


class TestRebase:
    """Tests for rebase function."""

    def test_rebase_to_100(self):
        """Test first value becomes 100 and ratios are kept."""
        series = make_series('a', ['d1', 'd2', 'd3'], [50.0, 75.0, 25.0])

        result = rebase(series)

        assert result.values == (100.0, 150.0, 50.0)

    def test_rebase_skips_leading_absent(self):
        """Test the base is the first present value; absent stays absent."""
        series = make_series('a', ['d1', 'd2', 'd3'], [None, 4.0, 8.0])

        result = rebase(series)

        assert result.values == (None, 100.0, 200.0)

    def test_rebase_zero_base_falls_back_to_one(self):
        """Test zero first value divides by 1 instead of 0."""
        series = make_series('a', ['d1', 'd2'], [0.0, 2.0])

        result = rebase(series)

        assert result.values == (0.0, 200.0)

    def test_rebase_all_absent(self):
        """Test series with no present values is unchanged."""
        series = make_series('a', ['d1'], [None])

        assert rebase(series).values == (None,)

    def test_rebase_all(self):
        """Test mapping form."""
        result = rebase_all({'a': make_series('a', ['d1', 'd2'], [2.0, 3.0])})

        assert result['a'].values == (100.0, 150.0)


class TestLatestValue:

    def test_latest_value(self):
        assert latest_value(make_series('a', ['d1', 'd2', 'd3'], [1.0, 2.0, None])) == 2.0
        assert latest_value(make_series('a', ['d1'], [None])) is None
