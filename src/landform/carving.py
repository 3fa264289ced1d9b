"""Carving stages: lake flattening, river and trail channels, thermal erosion.

Every function here is a pure transform: it reads the given heights and
returns a new array, leaving the input untouched.
"""

import logging
import math

import numpy as np
from numpy.typing import NDArray
from scipy import ndimage

from .config import LakeSettings, RiverSettings, TrailSettings
from .noise import smoothstep

logger = logging.getLogger(__name__)

# D8 directions: N, NE, E, SE, S, SW, W, NW (clockwise from north)
D8_DY = np.array([-1, -1, 0, 1, 1, 1, 0, -1], dtype=np.int32)
D8_DX = np.array([0, 1, 1, 1, 0, -1, -1, -1], dtype=np.int32)


def to_grid(point: tuple[float, float], width: int, length: int) -> tuple[float, float]:
    """Map a normalized (x, y) point onto grid coordinates."""
    return point[0] * (width - 1), point[1] * (length - 1)


def carve_lake(
    heights: NDArray[np.float64],
    center: tuple[float, float],
    radius: float,
    water_level: float,
) -> NDArray[np.float64]:
    """Flatten a disc down to the water level.

    Cells within ``radius`` of the center become ``min(height, water_level)``;
    nothing is raised and cells outside the disc are untouched.

    Args:
        heights: Height array of shape (length, width).
        center: Lake center, normalized to [0, 1].
        radius: Radius in cells.
        water_level: Lake surface height.

    Returns:
        New height array.
    """
    length, width = heights.shape
    cx, cy = to_grid(center, width, length)
    ys, xs = np.mgrid[0:length, 0:width]
    inside = (xs - cx) ** 2 + (ys - cy) ** 2 <= radius * radius

    result = heights.copy()
    result[inside] = np.minimum(heights[inside], water_level)
    return result


def trace_steepest_descent(
    heights: NDArray[np.float64],
    start: tuple[int, int],
    max_steps: int,
) -> list[tuple[int, int]]:
    """Walk downhill to the lowest strictly lower neighbour each step.

    Stops at a pit or after ``max_steps`` moves. Ties go to the first
    direction in D8 order.

    Args:
        heights: Height array.
        start: Starting cell (x, y).
        max_steps: Maximum number of moves.

    Returns:
        Visited cells as (x, y), starting with ``start``.
    """
    length, width = heights.shape
    x, y = start
    path = [(x, y)]

    for _ in range(max_steps):
        best = heights[y, x]
        best_cell = None
        for d in range(8):
            nx = x + int(D8_DX[d])
            ny = y + int(D8_DY[d])
            if 0 <= nx < width and 0 <= ny < length and heights[ny, nx] < best:
                best = heights[ny, nx]
                best_cell = (nx, ny)
        if best_cell is None:
            break
        x, y = best_cell
        path.append(best_cell)

    return path


def interpolate_path(
    start: tuple[float, float],
    end: tuple[float, float],
    steps: int,
) -> NDArray[np.float64]:
    """Evenly spaced points from start to end, shape (steps, 2)."""
    t = np.linspace(0.0, 1.0, max(steps, 2))[:, None]
    return np.asarray(start, dtype=np.float64) + t * (
        np.asarray(end, dtype=np.float64) - np.asarray(start, dtype=np.float64)
    )


def jittered_path(
    start: tuple[float, float],
    end: tuple[float, float],
    resolution: int,
    width: float,
    jitter_frequency: float,
) -> NDArray[np.float64]:
    """Straight path with a sideways sine wobble.

    Each point is pushed along the path normal by
    ``sin(s * jitter_frequency) * width / 4`` where ``s`` is the distance
    travelled along the straight line.
    """
    base = interpolate_path(start, end, resolution)
    direction = np.asarray(end, dtype=np.float64) - np.asarray(start, dtype=np.float64)
    span = float(np.hypot(direction[0], direction[1]))
    if span == 0.0:
        return base

    normal = np.array([-direction[1], direction[0]]) / span
    travelled = np.linspace(0.0, span, len(base))
    offset = np.sin(travelled * jitter_frequency) * width / 4.0
    return base + offset[:, None] * normal


def rasterize_path(
    path: NDArray[np.float64] | list[tuple[float, float]],
    width: int,
    length: int,
) -> NDArray[np.bool_]:
    """Mark the cells a polyline passes through.

    Points outside the grid are dropped.
    """
    mask = np.zeros((length, width), dtype=bool)
    points = np.asarray(path, dtype=np.float64).reshape(-1, 2)
    if len(points) == 0:
        return mask

    if len(points) == 1:
        samples = points
    else:
        pieces = []
        for a, b in zip(points[:-1], points[1:]):
            n = int(math.ceil(np.max(np.abs(b - a)))) + 1
            t = np.linspace(0.0, 1.0, n)[:, None]
            pieces.append(a + t * (b - a))
        samples = np.concatenate(pieces)

    cells = np.rint(samples).astype(np.int64)
    keep = (
        (cells[:, 0] >= 0)
        & (cells[:, 0] < width)
        & (cells[:, 1] >= 0)
        & (cells[:, 1] < length)
    )
    cells = cells[keep]
    mask[cells[:, 1], cells[:, 0]] = True
    return mask


def carve_path(
    heights: NDArray[np.float64],
    path: NDArray[np.float64] | list[tuple[float, float]],
    width: float,
    depth: float,
) -> NDArray[np.float64]:
    """Cut a channel along a path.

    Cells closer than ``width`` to the centerline lose
    ``smoothstep(width, 0, distance) * depth``, floored at 0.

    Args:
        heights: Height array.
        path: Centerline points (x, y) in grid coordinates.
        width: Channel half-width in cells.
        depth: Cut depth at the centerline.

    Returns:
        New height array.
    """
    length, grid_width = heights.shape
    centerline = rasterize_path(path, grid_width, length)
    if not centerline.any():
        return heights.copy()

    distance = ndimage.distance_transform_edt(~centerline)
    cut = np.where(distance < width, smoothstep(width, 0.0, distance) * depth, 0.0)

    return np.where(cut > 0.0, np.maximum(heights - cut, 0.0), heights)


def carve_river(heights: NDArray[np.float64], settings: RiverSettings) -> NDArray[np.float64]:
    """Carve a river from its source, downhill or straight to its mouth."""
    length, width = heights.shape
    sx, sy = to_grid(settings.start, width, length)

    if settings.end is None:
        path = trace_steepest_descent(
            heights, (int(round(sx)), int(round(sy))), settings.max_steps
        )
    else:
        ex, ey = to_grid(settings.end, width, length)
        steps = int(math.ceil(max(abs(ex - sx), abs(ey - sy)))) + 1
        path = interpolate_path((sx, sy), (ex, ey), steps)

    logger.debug(f"River path has {len(path)} points")
    return carve_path(heights, path, settings.width, settings.depth)


def carve_trail(heights: NDArray[np.float64], settings: TrailSettings) -> NDArray[np.float64]:
    """Carve a shallow jittered trail between two points."""
    length, width = heights.shape
    path = jittered_path(
        to_grid(settings.start, width, length),
        to_grid(settings.end, width, length),
        settings.resolution,
        settings.width,
        settings.jitter_frequency,
    )
    return carve_path(heights, path, settings.width, settings.intensity)


def apply_lake(heights: NDArray[np.float64], settings: LakeSettings) -> NDArray[np.float64]:
    """Lake stage entry point."""
    return carve_lake(heights, settings.center, settings.radius, settings.water_level)


def thermal_erosion(
    heights: NDArray[np.float64],
    talus_angle: float,
    iterations: int,
) -> NDArray[np.float64]:
    """Talus diffusion between interior cells.

    Every pass reads one buffer and writes the other. For each interior
    cell and each of its 8 interior neighbours lower by more than
    ``talus_angle``, half the excess moves from the cell to that neighbour.
    Border cells neither give nor receive, so the total height is conserved.

    Args:
        heights: Height array.
        talus_angle: Height difference above which material slides.
        iterations: Number of passes.

    Returns:
        New height array.
    """
    current = np.array(heights, dtype=np.float64, copy=True)
    length, width = current.shape
    if length < 3 or width < 3 or iterations <= 0:
        return current

    interior = np.zeros((length, width), dtype=bool)
    interior[1:-1, 1:-1] = True
    following = np.empty_like(current)

    for _ in range(iterations):
        np.copyto(following, current)
        source = current[1:-1, 1:-1]

        for dy, dx in zip(D8_DY, D8_DX):
            rows = slice(1 + dy, length - 1 + dy)
            cols = slice(1 + dx, width - 1 + dx)
            diff = source - current[rows, cols]
            moving = (diff > talus_angle) & interior[rows, cols]
            amount = np.where(moving, (diff - talus_angle) * 0.5, 0.0)
            following[1:-1, 1:-1] -= amount
            following[rows, cols] += amount

        current, following = following, current

    return current
