"""Voronoi biome partition with blended height-banded layers.

Each Voronoi site owns one biome definition (site ``i`` uses biome ``i``).
A cell looks at its nearest and second-nearest sites, weights them by
relative squared distance, and lets every layer whose height band contains
the cell vote with that weight. The winning layer decides the cell's
dominant layer and its biome.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .config import BiomeDefinition, DistributionMode, VoronoiSettings
from .exceptions import BiomeConfigurationError
from .heightfield import Heightfield

logger = logging.getLogger(__name__)

UNCLASSIFIED = -1
LAYERS_PER_BIOME = 3


@dataclass(frozen=True)
class VoronoiSite:
    """A Voronoi site in grid coordinates, tied to biome ``index``."""

    index: int
    x: float
    y: float


@dataclass(frozen=True)
class BiomeMap:
    """Per-cell biome classification.

    Attributes:
        biome_indices: int32 (length, width), -1 where no layer matched.
        dominant_layers: int32 (length, width), -1 where no layer matched.
        layer_weights: float64 (length, width, 3) accumulated layer votes.
        blend_weights: float64 (length, width) weight of the nearest site.
        sites: Sites the map was built from.
    """

    biome_indices: NDArray[np.int32]
    dominant_layers: NDArray[np.int32]
    layer_weights: NDArray[np.float64]
    blend_weights: NDArray[np.float64]
    sites: tuple[VoronoiSite, ...]

    def __post_init__(self) -> None:
        for arr in (
            self.biome_indices,
            self.dominant_layers,
            self.layer_weights,
            self.blend_weights,
        ):
            arr.flags.writeable = False

    def counts(self) -> dict[int, int]:
        """Number of cells per biome index (including -1)."""
        values, counts = np.unique(self.biome_indices, return_counts=True)
        return {int(v): int(c) for v, c in zip(values, counts)}


def generate_sites(
    width: int,
    length: int,
    settings: VoronoiSettings,
    rng: np.random.Generator,
) -> list[VoronoiSite]:
    """Lay out Voronoi sites.

    The site count is ``cell_count`` clamped to the number of biome
    definitions.

    Args:
        width: Grid width.
        length: Grid length.
        settings: Voronoi settings.
        rng: Random generator used by random mode.

    Returns:
        Sites in index order.

    Raises:
        BiomeConfigurationError: For an empty biome table, a non-positive
            cell count, or an empty custom point list in custom mode.
    """
    if not settings.biomes:
        raise BiomeConfigurationError("Voronoi biomes requested with an empty biome table")
    if settings.cell_count <= 0:
        raise BiomeConfigurationError(
            f"Voronoi cell count must be positive, got {settings.cell_count}"
        )

    count = min(settings.cell_count, len(settings.biomes))
    mode = settings.distribution_mode

    if mode == DistributionMode.GRID:
        cols = math.ceil(math.sqrt(count))
        rows = math.ceil(count / cols)
        cell_w = width / cols
        cell_l = length / rows
        return [
            VoronoiSite(i, (i % cols + 0.5) * cell_w, (i // cols + 0.5) * cell_l)
            for i in range(count)
        ]

    if mode == DistributionMode.RANDOM:
        points = rng.random((count, 2)) * np.array([width, length], dtype=np.float64)
        return [VoronoiSite(i, float(px), float(py)) for i, (px, py) in enumerate(points)]

    if not settings.custom_points:
        raise BiomeConfigurationError("custom distribution mode needs at least one point")
    points = settings.custom_points[:count]
    return [VoronoiSite(i, float(px), float(py)) for i, (px, py) in enumerate(points)]


def _layer_bounds(
    sites: list[VoronoiSite], biomes: list[BiomeDefinition]
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    mins = np.array(
        [[layer.min_height for layer in biomes[s.index].layers] for s in sites],
        dtype=np.float64,
    )
    maxs = np.array(
        [[layer.max_height for layer in biomes[s.index].layers] for s in sites],
        dtype=np.float64,
    )
    return mins, maxs


def classify_biomes(
    heightfield: Heightfield,
    sites: list[VoronoiSite],
    biomes: list[BiomeDefinition],
) -> BiomeMap:
    """Classify every cell by blending its two nearest Voronoi sites.

    Blend weights are ``w1 = 1 - d1² / (d1² + d2²)`` and ``w2 = 1 - w1``
    (0.5 each when both distances are zero; ``w1 = 1`` with a single site).
    Ties between equally distant sites go to the lower site index. Each of
    the two sites adds its weight to layer slot ``k`` when the cell height
    lies inside its layer ``k`` band (inclusive). The highest slot wins
    (lowest slot on ties) and the site contributing more to it (nearest on
    ties) gives the biome. Cells where no band matched stay -1.

    With no sites at all every cell is biome 0 with weight 1.

    Args:
        heightfield: Finished heightfield.
        sites: Voronoi sites; site i uses biome i.
        biomes: Biome definitions.

    Returns:
        Read-only BiomeMap.
    """
    heights = heightfield.values
    length, width = heights.shape

    if not sites:
        return _single_biome_map(heights, biomes)

    ys, xs = np.mgrid[0:length, 0:width].astype(np.float64)
    site_x = np.array([s.x for s in sites], dtype=np.float64)
    site_y = np.array([s.y for s in sites], dtype=np.float64)
    dist_sq = (xs[None] - site_x[:, None, None]) ** 2 + (ys[None] - site_y[:, None, None]) ** 2

    order = np.argsort(dist_sq, axis=0, kind="stable")
    nearest = order[0]
    d1 = np.take_along_axis(dist_sq, nearest[None], axis=0)[0]

    if len(sites) == 1:
        second = nearest
        w1 = np.ones((length, width), dtype=np.float64)
    else:
        second = order[1]
        d2 = np.take_along_axis(dist_sq, second[None], axis=0)[0]
        total = d1 + d2
        with np.errstate(divide="ignore", invalid="ignore"):
            w1 = np.where(total > 0.0, 1.0 - d1 / total, 0.5)
    w2 = 1.0 - w1

    mins, maxs = _layer_bounds(sites, biomes)
    h = heights[..., None]
    in_first = (h >= mins[nearest]) & (h <= maxs[nearest])
    in_second = (h >= mins[second]) & (h <= maxs[second])
    first_votes = in_first * w1[..., None]
    second_votes = in_second * w2[..., None]
    layer_weights = first_votes + second_votes

    dominant = np.argmax(layer_weights, axis=-1)
    matched = np.max(layer_weights, axis=-1) > 0.0

    first_share = np.take_along_axis(first_votes, dominant[..., None], axis=-1)[..., 0]
    second_share = np.take_along_axis(second_votes, dominant[..., None], axis=-1)[..., 0]
    owner = np.where(second_share > first_share, second, nearest)
    site_biome = np.array([s.index for s in sites], dtype=np.int32)

    biome_indices = np.where(matched, site_biome[owner], UNCLASSIFIED).astype(np.int32)
    dominant_layers = np.where(matched, dominant, UNCLASSIFIED).astype(np.int32)

    return BiomeMap(
        biome_indices=biome_indices,
        dominant_layers=dominant_layers,
        layer_weights=layer_weights,
        blend_weights=w1,
        sites=tuple(sites),
    )


def _single_biome_map(
    heights: NDArray[np.float64], biomes: list[BiomeDefinition]
) -> BiomeMap:
    """Biome 0 everywhere, full weight."""
    length, width = heights.shape
    layer_weights = np.zeros((length, width, LAYERS_PER_BIOME), dtype=np.float64)
    if biomes:
        for k, layer in enumerate(biomes[0].layers):
            inside = (heights >= layer.min_height) & (heights <= layer.max_height)
            layer_weights[..., k] = inside.astype(np.float64)
    matched = layer_weights.max(axis=-1) > 0.0
    dominant = np.where(matched, np.argmax(layer_weights, axis=-1), UNCLASSIFIED)

    return BiomeMap(
        biome_indices=np.zeros((length, width), dtype=np.int32),
        dominant_layers=dominant.astype(np.int32),
        layer_weights=layer_weights,
        blend_weights=np.ones((length, width), dtype=np.float64),
        sites=(),
    )


def build_biome_map(
    heightfield: Heightfield,
    settings: VoronoiSettings,
    rng: np.random.Generator,
) -> BiomeMap:
    """Generate sites and classify the heightfield."""
    sites = generate_sites(heightfield.width, heightfield.length, settings, rng)
    biome_map = classify_biomes(heightfield, sites, settings.biomes)

    unclassified = float(np.mean(biome_map.biome_indices == UNCLASSIFIED))
    logger.info(
        f"Classified biomes from {len(sites)} sites "
        f"({settings.distribution_mode.value}), unclassified: {unclassified:.1%}"
    )
    return biome_map
