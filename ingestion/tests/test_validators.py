"""
Tests for response-shape validators - every decoder must fail closed.
"""

import pytest

from ingestion.transforms.validators import (
    ValidationError,
    check_label_uniqueness,
    first_present,
    parse_finite,
    parse_optional_finite,
    parse_positive,
    require_key,
    require_list,
    require_mapping,
)


class TestShapeValidators:
    """Tests for mapping/list/key requirements."""

    def test_require_mapping(self):
        """Test objects pass and other JSON types fail."""
        assert require_mapping({'a': 1}, 'ctx') == {'a': 1}

        with pytest.raises(ValidationError, match="ctx must be an object"):
            require_mapping([1, 2], 'ctx')

    def test_require_list_empty(self):
        """Test empty lists fail unless allowed."""
        assert require_list([], 'rows', allow_empty=True) == []

        with pytest.raises(ValidationError, match="rows is empty"):
            require_list([], 'rows')

        with pytest.raises(ValidationError, match="must be a list"):
            require_list(None, 'rows')

    def test_require_key(self):
        """Test missing and null keys both fail."""
        assert require_key({'a': 0}, 'a', 'ctx') == 0

        with pytest.raises(ValidationError, match="missing 'b'"):
            require_key({'b': None}, 'b', 'ctx')

    def test_first_present(self):
        """Test alternative field names are tried in order."""
        assert first_present({'c': 1.5, 'close': 2.0}, ('c', 'close')) == 1.5
        assert first_present({'close': 2.0}, ('c', 'close')) == 2.0
        assert first_present({}, ('c', 'close')) is None


class TestNumericValidators:
    """Tests for numeric parsing."""

    def test_parse_finite_numbers_and_strings(self):
        """Test numbers, numeric strings and percent strings."""
        assert parse_finite(1, 'x') == 1.0
        assert parse_finite('166.8400', 'x') == 166.84
        assert parse_finite(' -0.45% ', 'x') == -0.45

    @pytest.mark.parametrize('value', ['NaN', 'inf', '-Infinity', float('nan'), float('inf')])
    def test_parse_finite_rejects_non_finite(self, value):
        """Test NaN and infinity are rejected, never passed through."""
        with pytest.raises(ValidationError, match="finite"):
            parse_finite(value, 'close')

    def test_parse_finite_rejects_int_too_large_for_float(self):
        with pytest.raises(ValidationError, match="too large"):
            parse_finite(10 ** 400, 'close')

    @pytest.mark.parametrize('value', [None, True, 'abc', [1], {}])
    def test_parse_finite_rejects_non_numeric(self, value):
        """Test missing, boolean and non-numeric values are rejected."""
        with pytest.raises(ValidationError):
            parse_finite(value, 'close')

    def test_parse_optional_finite_markers(self):
        """Test provider missing markers map to None."""
        assert parse_optional_finite(None, 'v') is None
        assert parse_optional_finite('.', 'v', ('.',)) is None
        assert parse_optional_finite('3.7', 'v', ('.',)) == 3.7

        # Markers are provider specific
        with pytest.raises(ValidationError):
            parse_optional_finite('.', 'v')

    def test_parse_positive(self):
        """Test prices must be strictly positive."""
        assert parse_positive('0.01', 'close') == 0.01

        with pytest.raises(ValidationError, match="positive"):
            parse_positive(0, 'close')

        with pytest.raises(ValidationError, match="positive"):
            parse_positive(-5, 'close')


class TestLabelUniqueness:
    """Tests for check_label_uniqueness."""

    def test_unique_labels_pass(self):
        check_label_uniqueness(['2024-01-15', '2024-01-16'], 'ctx')

    def test_duplicate_label_fails(self):
        """Test duplicate dates are rejected."""
        with pytest.raises(ValidationError, match="duplicate label 2024-01-15"):
            check_label_uniqueness(['2024-01-15', '2024-01-15'], 'ctx')
