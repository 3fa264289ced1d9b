"""Gradient noise and layered noise synthesis.

Provides a seeded Perlin gradient noise source (2D and 3D) and the octave
accumulation used by the noise stages of the pipeline.
"""

import logging

import numpy as np
from numpy.typing import NDArray

from .config import BlendMode, NoiseSettings

logger = logging.getLogger(__name__)

# Unit-ish gradients for 2D noise, picked by hash & 7
_GRAD2_X = np.array([1, -1, 1, -1, 1, -1, 0, 0], dtype=np.float64)
_GRAD2_Y = np.array([1, 1, -1, -1, 0, 0, 1, -1], dtype=np.float64)


def _fade(t: NDArray[np.float64]) -> NDArray[np.float64]:
    """Quintic fade curve 6t^5 - 15t^4 + 10t^3."""
    return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)


def _lerp(a: NDArray[np.float64], b: NDArray[np.float64], t: NDArray[np.float64]) -> NDArray[np.float64]:
    return a + t * (b - a)


def smoothstep(edge0: float, edge1: float, x: NDArray[np.float64] | float) -> NDArray[np.float64]:
    """Hermite interpolation between two edges.

    Works with ``edge0 > edge1`` as well, giving a falling curve.

    Args:
        edge0: Value mapped to 0.
        edge1: Value mapped to 1.
        x: Input value(s).

    Returns:
        Smoothly interpolated value(s) in [0, 1].
    """
    t = np.clip((np.asarray(x, dtype=np.float64) - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def to_unit_range(values: NDArray[np.float64]) -> NDArray[np.float64]:
    """Map noise in [-1, 1] to [0, 1], clipping overshoot."""
    return np.clip(0.5 * (values + 1.0), 0.0, 1.0)


class GradientNoise:
    """Seeded Perlin gradient noise.

    The permutation table is drawn once from the seed, so two instances built
    from the same seed sample identical values.
    """

    def __init__(self, seed: int | np.random.SeedSequence) -> None:
        rng = np.random.default_rng(seed)
        perm = rng.permutation(256).astype(np.int64)
        self._perm = np.concatenate([perm, perm])

    def sample2d(self, x: NDArray | float, y: NDArray | float) -> NDArray[np.float64]:
        """Sample 2D noise, roughly in [-1, 1]. Zero at integer lattice points."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        x0 = np.floor(x)
        y0 = np.floor(y)
        xf = x - x0
        yf = y - y0
        xi = x0.astype(np.int64) & 255
        yi = y0.astype(np.int64) & 255

        p = self._perm
        aa = p[p[xi] + yi] & 7
        ab = p[p[xi] + yi + 1] & 7
        ba = p[p[xi + 1] + yi] & 7
        bb = p[p[xi + 1] + yi + 1] & 7

        def grad(h: NDArray[np.int64], dx: NDArray, dy: NDArray) -> NDArray[np.float64]:
            return _GRAD2_X[h] * dx + _GRAD2_Y[h] * dy

        u = _fade(xf)
        v = _fade(yf)
        x1 = _lerp(grad(aa, xf, yf), grad(ba, xf - 1.0, yf), u)
        x2 = _lerp(grad(ab, xf, yf - 1.0), grad(bb, xf - 1.0, yf - 1.0), u)
        return _lerp(x1, x2, v)

    def sample3d(
        self, x: NDArray | float, y: NDArray | float, z: NDArray | float
    ) -> NDArray[np.float64]:
        """Sample 3D improved Perlin noise, roughly in [-1, 1]."""
        x = np.asarray(x, dtype=np.float64)
        y = np.asarray(y, dtype=np.float64)
        z = np.asarray(z, dtype=np.float64)
        x0, y0, z0 = np.floor(x), np.floor(y), np.floor(z)
        xf, yf, zf = x - x0, y - y0, z - z0
        xi = x0.astype(np.int64) & 255
        yi = y0.astype(np.int64) & 255
        zi = z0.astype(np.int64) & 255

        p = self._perm
        a = p[xi] + yi
        aa = p[a] + zi
        ab = p[a + 1] + zi
        b = p[xi + 1] + yi
        ba = p[b] + zi
        bb = p[b + 1] + zi

        u, v, w = _fade(xf), _fade(yf), _fade(zf)

        def grad(h: NDArray[np.int64], dx: NDArray, dy: NDArray, dz: NDArray) -> NDArray[np.float64]:
            h = h & 15
            first = np.where(h < 8, dx, dy)
            second = np.where(h < 4, dy, np.where((h == 12) | (h == 14), dx, dz))
            return np.where(h & 1, -first, first) + np.where(h & 2, -second, second)

        near = _lerp(
            _lerp(grad(p[aa], xf, yf, zf), grad(p[ba], xf - 1, yf, zf), u),
            _lerp(grad(p[ab], xf, yf - 1, zf), grad(p[bb], xf - 1, yf - 1, zf), u),
            v,
        )
        far = _lerp(
            _lerp(grad(p[aa + 1], xf, yf, zf - 1), grad(p[ba + 1], xf - 1, yf, zf - 1), u),
            _lerp(
                grad(p[ab + 1], xf, yf - 1, zf - 1),
                grad(p[bb + 1], xf - 1, yf - 1, zf - 1),
                u,
            ),
            v,
        )
        return _lerp(near, far, w)


def layered_noise(
    width: int,
    length: int,
    noise: GradientNoise,
    params: NoiseSettings,
) -> NDArray[np.float64]:
    """Accumulate octaves of gradient noise over the grid.

    Coordinates are normalized (``x / width``, ``y / length``), scaled by
    ``base_scale * frequency`` and shifted by the offset. Each sample is
    mapped to [0, 1] before blending.

    Args:
        width: Grid width.
        length: Grid length.
        noise: Gradient noise source.
        params: Octave and blend parameters.

    Returns:
        Array of shape (length, width). All zeros when ``layers`` is 0.
    """
    xs = np.arange(width, dtype=np.float64) / width
    ys = np.arange(length, dtype=np.float64) / length
    nx, ny = np.meshgrid(xs, ys)

    result = np.zeros((length, width), dtype=np.float64)
    amplitude = 1.0
    frequency = 1.0
    offset_x, offset_y = params.offset

    for _ in range(params.layers):
        scale = params.base_scale * frequency
        value = to_unit_range(noise.sample2d(nx * scale + offset_x, ny * scale + offset_y))

        if params.blend_mode == BlendMode.MULTIPLICATIVE:
            result = np.where(result == 0.0, 1.0, result) * (1.0 + value * amplitude)
        else:
            result += value * amplitude

        amplitude *= params.amplitude_decay
        frequency *= params.frequency_growth

    return result


def apply_noise(
    heights: NDArray[np.float64],
    noise: GradientNoise,
    params: NoiseSettings,
) -> None:
    """Add a layered noise field into the height buffer in place."""
    if params.layers <= 0:
        return
    length, width = heights.shape
    heights += layered_noise(width, length, noise, params)
    logger.debug(
        f"Applied {params.layers} {params.blend_mode.value} noise layers "
        f"at base scale {params.base_scale}"
    )
