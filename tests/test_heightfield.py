"""Tests for the heightfield snapshot and normalization."""

import numpy as np
import pytest

from landform.heightfield import Heightfield, empty_buffer, normalize_heights


class TestNormalizeHeights:
    """Tests for min/max normalization."""

    def test_extremes_are_exact(self, random_heights: np.ndarray) -> None:
        """Minimum maps to exactly 0 and maximum to exactly 1."""
        result = normalize_heights(random_heights * 37.0 - 5.0)
        assert result.min() == 0.0
        assert result.max() == 1.0

    def test_constant_field_maps_to_zero(self) -> None:
        """A field with no range becomes all zeros."""
        result = normalize_heights(np.full((5, 7), 3.25))
        np.testing.assert_array_equal(result, np.zeros((5, 7)))

    def test_preserves_order(self) -> None:
        """Normalization is monotonic."""
        heights = np.array([[2.0, 4.0, 3.0, 10.0]])
        result = normalize_heights(heights)
        np.testing.assert_allclose(result, [[0.0, 0.25, 0.125, 1.0]])

    def test_input_not_modified(self, random_heights: np.ndarray) -> None:
        """Normalization returns a new array."""
        original = random_heights.copy()
        normalize_heights(random_heights)
        np.testing.assert_array_equal(random_heights, original)


class TestHeightfield:
    """Tests for the frozen heightfield snapshot."""

    def test_row_major_indexing(self) -> None:
        """Flat index is x + y * width."""
        values = np.arange(12, dtype=np.float64).reshape(3, 4) / 11.0
        field = Heightfield.freeze(values)
        assert field.width == 4
        assert field.length == 3
        for y in range(3):
            for x in range(4):
                assert field.flat[field.index(x, y)] == field.at(x, y)
        assert field.index(1, 2) == 9

    def test_snapshot_is_read_only(self) -> None:
        """Writing into the snapshot fails."""
        field = Heightfield.freeze(np.zeros((3, 3)))
        with pytest.raises(ValueError):
            field.values[0, 0] = 1.0

    def test_snapshot_is_a_copy(self) -> None:
        """Later writes to the source buffer do not leak into the snapshot."""
        buffer = empty_buffer(4, 4)
        field = Heightfield.freeze(buffer)
        buffer[1, 1] = 9.0
        assert field.at(1, 1) == 0.0
