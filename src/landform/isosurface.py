"""Volumetric density field and marching cubes extraction."""

import logging
import math

import numpy as np
from numpy.typing import NDArray

from .config import DensityMode, MeshSettings, ScalarBlendMode, ScalarFieldLayer
from .heightfield import Heightfield
from .mesh import Mesh, MeshBuilder
from .noise import GradientNoise, to_unit_range
from .tables import CORNER_OFFSETS, EDGE_TABLE, EDGES, TRIANGLE_TABLE

logger = logging.getLogger(__name__)

INTERPOLATION_EPSILON = 1e-5

_EDGE_TABLE = np.array(EDGE_TABLE, dtype=np.int32)


def grid_dimensions(
    width: int, length: int, height_scale: float, voxel_size: float
) -> tuple[int, int, int]:
    """Voxel counts (x, y, z) covering the terrain, at least 2 per axis.

    The vertical axis gets one extra layer so the top of the height range
    is sampled.
    """
    grid_w = max(2, math.ceil(width / voxel_size))
    grid_h = max(2, math.ceil(height_scale / voxel_size) + 1)
    grid_l = max(2, math.ceil(length / voxel_size))
    return grid_w, grid_h, grid_l


def build_scalar_field(
    heightfield: Heightfield,
    settings: MeshSettings,
    height_scale: float,
    noise: GradientNoise | None = None,
) -> NDArray[np.float64]:
    """Sample a density volume from the heightfield.

    Each voxel column maps to its nearest heightfield cell
    (``int(x / grid_w * (width - 1))``). Falloff density is
    ``clamp01(1 - |y * voxel - h * height_scale| / (voxel * falloff))``;
    binary density is 1 at or below the surface and 0 above. Auxiliary
    noise layers are blended in afterwards and the result is clamped.

    Args:
        heightfield: Finished heightfield.
        settings: Mesh settings.
        height_scale: World height of a normalized height of 1.
        noise: Noise source for auxiliary layers.

    Returns:
        Array of shape (grid_w, grid_h, grid_l), indexed [x, y, z].
    """
    width, length = heightfield.width, heightfield.length
    voxel = settings.voxel_size
    grid_w, grid_h, grid_l = grid_dimensions(width, length, height_scale, voxel)

    map_x = np.clip((np.arange(grid_w) / grid_w * (width - 1)).astype(np.int64), 0, width - 1)
    map_z = np.clip((np.arange(grid_l) / grid_l * (length - 1)).astype(np.int64), 0, length - 1)
    # (grid_w, grid_l) surface height in world units
    surface = heightfield.values[np.ix_(map_z, map_x)].T * height_scale
    voxel_height = np.arange(grid_h, dtype=np.float64) * voxel

    offset = voxel_height[None, :, None] - surface[:, None, :]
    if settings.density_mode == DensityMode.BINARY:
        density = (offset <= 0.0).astype(np.float64)
    else:
        density = np.clip(1.0 - np.abs(offset) / (voxel * settings.falloff_factor), 0.0, 1.0)

    if settings.scalar_layers:
        if noise is None:
            noise = GradientNoise(0)
        for layer in settings.scalar_layers:
            density = _blend_layer(density, layer, settings.scalar_blend_mode, noise)
        np.clip(density, 0.0, 1.0, out=density)

    return density


def _blend_layer(
    density: NDArray[np.float64],
    layer: ScalarFieldLayer,
    mode: ScalarBlendMode,
    noise: GradientNoise,
) -> NDArray[np.float64]:
    grid_w, grid_h, grid_l = density.shape
    xs, ys, zs = np.meshgrid(
        np.arange(grid_w, dtype=np.float64),
        np.arange(grid_h, dtype=np.float64),
        np.arange(grid_l, dtype=np.float64),
        indexing="ij",
    )
    scale = layer.scale * layer.frequency
    value = (
        to_unit_range(noise.sample3d(xs * scale + layer.offset_x, ys * scale, zs * scale + layer.offset_z))
        * layer.amplitude
    )

    w = layer.weight
    if mode == ScalarBlendMode.MULTIPLICATIVE:
        return density * ((1.0 - w) + w * value)
    if mode == ScalarBlendMode.MINIMUM:
        return density + w * (np.minimum(density, value) - density)
    if mode == ScalarBlendMode.MAXIMUM:
        return density + w * (np.maximum(density, value) - density)
    return density + w * value


def interpolate_vertex(
    threshold: float,
    p1: tuple[float, float, float],
    p2: tuple[float, float, float],
    v1: float,
    v2: float,
    epsilon: float = INTERPOLATION_EPSILON,
) -> tuple[float, float, float]:
    """Point on the edge p1-p2 where the density crosses the threshold.

    Snaps to an endpoint when the threshold is within epsilon of its
    density, and falls back to p1 when the two densities are nearly equal.
    """
    if abs(threshold - v1) < epsilon:
        return p1
    if abs(threshold - v2) < epsilon:
        return p2
    if abs(v1 - v2) < epsilon:
        return p1
    t = (threshold - v1) / (v2 - v1)
    return (
        p1[0] + t * (p2[0] - p1[0]),
        p1[1] + t * (p2[1] - p1[1]),
        p1[2] + t * (p2[2] - p1[2]),
    )


def cube_configurations(
    field: NDArray[np.float64],
    threshold: float,
    inside_below_threshold: bool = True,
) -> NDArray[np.int32]:
    """Configuration index of every cube, shape (grid_w-1, grid_h-1, grid_l-1)."""
    if inside_below_threshold:
        inside = field < threshold
    else:
        inside = field > threshold

    grid_w, grid_h, grid_l = field.shape
    config = np.zeros((grid_w - 1, grid_h - 1, grid_l - 1), dtype=np.int32)
    for corner, (ox, oy, oz) in enumerate(CORNER_OFFSETS):
        corner_inside = inside[ox : grid_w - 1 + ox, oy : grid_h - 1 + oy, oz : grid_l - 1 + oz]
        config |= corner_inside.astype(np.int32) << corner
    return config


def extract_isosurface(
    field: NDArray[np.float64],
    threshold: float = 0.5,
    voxel_size: float = 1.0,
    inside_below_threshold: bool = True,
    decimals: int = 6,
    epsilon: float = 1e-6,
) -> Mesh:
    """Marching cubes over a density volume.

    Cubes are visited in x, y, z order. Edge crossings are interpolated
    from the lower corner to the upper corner of each edge, so neighbouring
    cubes compute identical positions for a shared edge and the welding
    cache merges them into one vertex.

    Args:
        field: Density volume indexed [x, y, z].
        threshold: Isosurface level.
        voxel_size: World size of one voxel.
        inside_below_threshold: Whether densities below the threshold are inside.
        decimals: Rounding precision of the welding cache.
        epsilon: Minimum triangle area kept.

    Returns:
        Welded mesh. Empty when no cube straddles the threshold.
    """
    if min(field.shape) < 2:
        return Mesh.empty()

    config = cube_configurations(field, threshold, inside_below_threshold)
    active = np.argwhere(_EDGE_TABLE[config] != 0)

    builder = MeshBuilder(decimals)
    for x, y, z in active:
        triangles = TRIANGLE_TABLE[config[x, y, z]]
        edge_vertices: dict[int, int] = {}

        for tri in triangles:
            ids = []
            for edge in tri:
                if edge not in edge_vertices:
                    a, b = EDGES[edge]
                    ax, ay, az = x + CORNER_OFFSETS[a][0], y + CORNER_OFFSETS[a][1], z + CORNER_OFFSETS[a][2]
                    bx, by, bz = x + CORNER_OFFSETS[b][0], y + CORNER_OFFSETS[b][1], z + CORNER_OFFSETS[b][2]
                    position = interpolate_vertex(
                        threshold,
                        (ax * voxel_size, ay * voxel_size, az * voxel_size),
                        (bx * voxel_size, by * voxel_size, bz * voxel_size),
                        float(field[ax, ay, az]),
                        float(field[bx, by, bz]),
                    )
                    edge_vertices[edge] = builder.add_vertex(position)
                ids.append(edge_vertices[edge])
            builder.add_triangle(*ids)

    raw_triangles = builder.triangle_count
    mesh = builder.build(epsilon)
    logger.debug(
        f"Marching cubes: {len(active):,} active cubes, {raw_triangles:,} triangles, "
        f"{raw_triangles - mesh.triangle_count:,} degenerate removed"
    )
    return mesh


def generate_mesh(
    heightfield: Heightfield,
    settings: MeshSettings,
    height_scale: float,
    noise: GradientNoise | None = None,
) -> Mesh:
    """Build the density volume for a heightfield and extract its surface."""
    field = build_scalar_field(heightfield, settings, height_scale, noise)
    mesh = extract_isosurface(
        field,
        threshold=settings.threshold,
        voxel_size=settings.voxel_size,
        inside_below_threshold=settings.inside_below_threshold,
        decimals=settings.vertex_decimals,
        epsilon=settings.degenerate_epsilon,
    )
    logger.info(
        f"Extracted mesh from {field.shape[0]}x{field.shape[1]}x{field.shape[2]} voxels: "
        f"{mesh.vertex_count:,} vertices, {mesh.triangle_count:,} triangles"
    )
    return mesh
