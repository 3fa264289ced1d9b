"""Heightfield snapshot and normalization."""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

# Ranges at or below this are treated as a constant field
RANGE_EPSILON = 1e-12


def empty_buffer(width: int, length: int) -> NDArray[np.float64]:
    """Allocate a zeroed height buffer of shape (length, width)."""
    return np.zeros((length, width), dtype=np.float64)


def normalize_heights(heights: NDArray[np.floating]) -> NDArray[np.float64]:
    """Rescale heights so the minimum is 0 and the maximum is 1.

    A constant field has no range to stretch and maps to all zeros.

    Args:
        heights: Height array of any shape.

    Returns:
        New float64 array with values in [0, 1].
    """
    heights = np.asarray(heights, dtype=np.float64)
    low = float(heights.min())
    high = float(heights.max())
    span = high - low

    if not np.isfinite(span) or span <= RANGE_EPSILON:
        return np.zeros_like(heights)

    normalized = (heights - low) / span
    # Division can leave the extremes a ulp away from 0 and 1
    np.clip(normalized, 0.0, 1.0, out=normalized)
    normalized[heights == low] = 0.0
    normalized[heights == high] = 1.0
    return normalized


@dataclass(frozen=True)
class Heightfield:
    """Immutable view of a finished heightfield.

    ``values`` has shape (length, width) and is indexed ``[y, x]``, so the
    flattened buffer is row-major with index ``x + y * width``.
    """

    values: NDArray[np.float64]

    @classmethod
    def freeze(cls, heights: NDArray[np.floating]) -> "Heightfield":
        """Copy heights into a read-only snapshot."""
        values = np.array(heights, dtype=np.float64, copy=True)
        values.flags.writeable = False
        return cls(values=values)

    @property
    def width(self) -> int:
        return int(self.values.shape[1])

    @property
    def length(self) -> int:
        return int(self.values.shape[0])

    @property
    def flat(self) -> NDArray[np.float64]:
        """Row-major flattened buffer."""
        return self.values.ravel()

    def index(self, x: int, y: int) -> int:
        """Flat index of cell (x, y)."""
        return x + y * self.width

    def at(self, x: int, y: int) -> float:
        """Height of cell (x, y)."""
        return float(self.values[y, x])
