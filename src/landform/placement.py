"""Feature placement with cellular-automata refinement.

For each registered feature a candidate mask is sampled from height, slope
and biome rules plus a seeded per-cell draw, then clustered by a Moore
neighbourhood automaton. The result is one binary map per feature; turning
active cells into instances is left to the caller.
"""

import logging
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy import ndimage

from .biomes import BiomeMap
from .config import FeaturePlacementSettings, FeatureSpec
from .heightfield import Heightfield

logger = logging.getLogger(__name__)

# Moore neighbourhood without the centre cell
MOORE_KERNEL = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=np.int32)


@dataclass(frozen=True)
class PlacementMap:
    """Binary placement grid for one feature."""

    feature: FeatureSpec
    mask: NDArray[np.bool_]

    def __post_init__(self) -> None:
        self.mask.flags.writeable = False

    @property
    def count(self) -> int:
        return int(np.count_nonzero(self.mask))

    def cells(self) -> list[tuple[int, int]]:
        """Active cells as (x, y) in row-major order."""
        ys, xs = np.nonzero(self.mask)
        return [(int(x), int(y)) for x, y in zip(xs, ys)]

    def packed(self) -> NDArray[np.uint8]:
        """Mask packed to one bit per cell, row-major."""
        return np.packbits(self.mask.ravel())


def compute_slope(heights: NDArray[np.float64], height_scale: float) -> NDArray[np.float64]:
    """Slope in degrees from central finite differences.

    Args:
        heights: Normalized height array.
        height_scale: World height of a normalized height of 1, in cell units.

    Returns:
        Slope array in degrees, [0, 90).
    """
    dy, dx = np.gradient(heights)
    magnitude = np.hypot(dx, dy) * height_scale
    return np.degrees(np.arctan(magnitude))


def sample_candidates(
    heights: NDArray[np.float64],
    slope: NDArray[np.float64],
    biome_indices: NDArray[np.int32] | None,
    spec: FeatureSpec,
    density: float,
    rng: np.random.Generator,
) -> NDArray[np.bool_]:
    """Initial probabilistic placement for one feature.

    One uniform draw per cell is consumed in row-major order whether or
    not the cell passes the other rules, so the stream stays aligned across
    settings changes that only affect the rules.

    Args:
        heights: Normalized heights.
        slope: Slope in degrees.
        biome_indices: Per-cell biome, or None to treat every cell as biome 0.
        spec: Feature rules.
        density: Global density multiplier.
        rng: Random generator.

    Returns:
        Boolean candidate mask.
    """
    draws = rng.random(heights.shape)

    low, high = spec.height_range
    min_slope, max_slope = spec.slope_range
    mask = (heights >= low) & (heights <= high) & (slope >= min_slope) & (slope <= max_slope)

    if spec.biome_index is not None:
        if biome_indices is None:
            mask &= spec.biome_index == 0
        else:
            mask &= biome_indices == spec.biome_index

    return mask & (draws < spec.spawn_probability * density)


def refine_placement(
    mask: NDArray[np.bool_],
    iterations: int,
    neighbor_threshold: int,
) -> NDArray[np.bool_]:
    """Cluster placements with a Moore neighbourhood automaton.

    Each pass counts live neighbours (cells outside the grid count as dead)
    from the previous pass and writes a fresh mask: a cell is active when
    its count is at least ``neighbor_threshold``.
    """
    current = np.array(mask, dtype=bool, copy=True)
    for _ in range(iterations):
        counts = ndimage.convolve(
            current.astype(np.int32), MOORE_KERNEL, mode="constant", cval=0
        )
        current = counts >= neighbor_threshold
    return current


def place_features(
    heightfield: Heightfield,
    biome_map: BiomeMap | None,
    settings: FeaturePlacementSettings,
    height_scale: float,
    rng: np.random.Generator,
) -> list[PlacementMap]:
    """Compute placement maps for every registered feature, in order.

    Args:
        heightfield: Finished heightfield.
        biome_map: Biome classification, or None when biomes are disabled.
        settings: Placement settings.
        height_scale: World height of a normalized height of 1.
        rng: Random generator dedicated to placement.

    Returns:
        One PlacementMap per feature spec.
    """
    heights = heightfield.values
    slope = compute_slope(heights, height_scale)
    biome_indices = biome_map.biome_indices if biome_map is not None else None

    placements: list[PlacementMap] = []
    for spec in settings.features:
        candidates = sample_candidates(
            heights, slope, biome_indices, spec, settings.global_density, rng
        )
        refined = refine_placement(
            candidates, settings.ca_iterations, settings.neighbor_threshold
        )
        placement = PlacementMap(feature=spec, mask=refined)
        logger.debug(
            f"Feature {spec.name}: {int(candidates.sum())} candidates, "
            f"{placement.count} after refinement"
        )
        placements.append(placement)

    logger.info(
        f"Placed {sum(p.count for p in placements):,} cells across "
        f"{len(placements)} features"
    )
    return placements
