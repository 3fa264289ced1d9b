"""Midpoint displacement (diamond-square) height synthesis."""

import logging

import numpy as np
from numpy.typing import NDArray

from .config import DisplacementSettings
from .exceptions import InvalidDimensionsError

logger = logging.getLogger(__name__)


def is_power_of_two_plus_one(n: int) -> bool:
    """Return True if n == 2^k + 1 for some k >= 0."""
    m = n - 1
    return m >= 1 and (m & (m - 1)) == 0


def check_dimensions(width: int, length: int) -> None:
    """Raise if the grid cannot be refined by midpoint displacement.

    Raises:
        InvalidDimensionsError: If either dimension is not 2^n + 1.
    """
    bad = [
        f"{name}={value} is not 2^n+1"
        for name, value in (("width", width), ("length", length))
        if not is_power_of_two_plus_one(value)
    ]
    if bad:
        raise InvalidDimensionsError(
            [f"midpoint displacement requires 2^n+1 dimensions: {msg}" for msg in bad]
        )


def midpoint_displacement(
    width: int,
    length: int,
    rng: np.random.Generator,
    displacement_factor: float = 1.0,
    decay_rate: float = 0.5,
) -> NDArray[np.float64]:
    """Generate a height field by recursive midpoint refinement.

    The coarsest lattice (the four corners on a square grid) is seeded with
    ``rng.random()``. Each refinement runs a square step then a diamond step,
    both in row-major scan order, adding ``rng.uniform(-d, d)`` to the
    neighbour average and clamping to [0, 1]. ``d`` starts at
    ``displacement_factor`` and is multiplied by ``decay_rate`` after each
    refinement.

    Args:
        width: Grid width, must be 2^n + 1.
        length: Grid length, must be 2^n + 1.
        rng: Random generator; draws are consumed in scan order.
        displacement_factor: Initial offset magnitude.
        decay_rate: Per-refinement magnitude multiplier.

    Returns:
        Array of shape (length, width) with values in [0, 1].

    Raises:
        InvalidDimensionsError: If the dimensions are not 2^n + 1.
    """
    check_dimensions(width, length)

    grid = np.zeros((length, width), dtype=np.float64)
    step = min(width, length) - 1

    # Seed the coarse lattice; a square grid gets exactly its four corners
    for y in range(0, length, step):
        for x in range(0, width, step):
            grid[y, x] = rng.random()

    d = float(displacement_factor)
    while step > 1:
        half = step // 2

        # Square step: cell centres from their four corners
        for y in range(0, length - 1, step):
            for x in range(0, width - 1, step):
                avg = (
                    grid[y, x]
                    + grid[y, x + step]
                    + grid[y + step, x]
                    + grid[y + step, x + step]
                ) / 4.0
                grid[y + half, x + half] = _clamp01(avg + rng.uniform(-d, d))

        # Diamond step: edge midpoints from their valid axis neighbours
        for y in range(0, length, half):
            for x in range((y + half) % step, width, step):
                total = 0.0
                count = 0
                if x - half >= 0:
                    total += grid[y, x - half]
                    count += 1
                if x + half < width:
                    total += grid[y, x + half]
                    count += 1
                if y - half >= 0:
                    total += grid[y - half, x]
                    count += 1
                if y + half < length:
                    total += grid[y + half, x]
                    count += 1
                if count == 0:
                    continue
                grid[y, x] = _clamp01(total / count + rng.uniform(-d, d))

        d *= decay_rate
        step = half

    return grid


def _clamp01(value: float) -> float:
    return min(1.0, max(0.0, value))


def apply_displacement(
    heights: NDArray[np.float64],
    rng: np.random.Generator,
    params: DisplacementSettings,
) -> None:
    """Add a midpoint displacement field into the height buffer in place."""
    length, width = heights.shape
    heights += midpoint_displacement(
        width, length, rng, params.displacement_factor, params.decay_rate
    )
    logger.debug(
        f"Applied midpoint displacement (factor {params.displacement_factor}, "
        f"decay {params.decay_rate})"
    )
