"""Terrain generation orchestration.

A run validates the settings, builds its ordered stage list once, then
drives every stage over a single height buffer that it owns. Each stage
finishes completely before the next starts. The finished buffer is
normalized and frozen, and the derived artifacts (biomes, placement, mesh)
are computed from that read-only snapshot.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel

from .biomes import UNCLASSIFIED, BiomeMap, build_biome_map
from .carving import apply_lake, carve_river, carve_trail, thermal_erosion
from .config import (
    DisplacementSettings,
    ErosionSettings,
    LakeSettings,
    NoiseSettings,
    RiverSettings,
    TerrainSettings,
    TrailSettings,
)
from .displacement import apply_displacement
from .heightfield import Heightfield, empty_buffer, normalize_heights
from .isosurface import generate_mesh
from .mesh import Mesh
from .noise import GradientNoise, apply_noise
from .placement import PlacementMap, place_features
from .validation import ValidationResult, require_valid

logger = logging.getLogger(__name__)


class StageKind(str, Enum):
    """Heightfield stages, in the only order they ever run."""

    PERLIN = "perlin"
    FBM = "fbm"
    DISPLACEMENT = "displacement"
    RIVER = "river"
    TRAIL = "trail"
    LAKE = "lake"
    EROSION = "erosion"


@dataclass(frozen=True)
class Stage:
    """One enabled stage and its parameters."""

    kind: StageKind
    params: BaseModel


class RandomStreams:
    """Independent generators derived from one run seed.

    Each consumer gets its own child of ``SeedSequence(seed)``, so adding or
    skipping one stage never shifts the draws seen by another, and the
    concurrent derived-artifact tasks never share a generator.
    """

    def __init__(self, seed: int) -> None:
        (
            self.perlin_seed,
            self.fbm_seed,
            self.displacement_seed,
            self.biome_seed,
            self.feature_seed,
            self.scalar_seed,
        ) = np.random.SeedSequence(seed).spawn(6)

        self.displacement = np.random.default_rng(self.displacement_seed)
        self.biomes = np.random.default_rng(self.biome_seed)
        self.features = np.random.default_rng(self.feature_seed)


def build_stages(settings: TerrainSettings) -> list[Stage]:
    """Ordered list of the enabled heightfield stages."""
    candidates = [
        (StageKind.PERLIN, settings.perlin),
        (StageKind.FBM, settings.fbm),
        (StageKind.DISPLACEMENT, settings.displacement),
        (StageKind.RIVER, settings.river),
        (StageKind.TRAIL, settings.trail),
        (StageKind.LAKE, settings.lake),
        (StageKind.EROSION, settings.erosion),
    ]
    return [Stage(kind, params) for kind, params in candidates if params.enabled]


def _run_perlin(heights: NDArray[np.float64], params: NoiseSettings, streams: RandomStreams) -> None:
    apply_noise(heights, GradientNoise(streams.perlin_seed), params)


def _run_fbm(heights: NDArray[np.float64], params: NoiseSettings, streams: RandomStreams) -> None:
    apply_noise(heights, GradientNoise(streams.fbm_seed), params)


def _run_displacement(
    heights: NDArray[np.float64], params: DisplacementSettings, streams: RandomStreams
) -> None:
    apply_displacement(heights, streams.displacement, params)


def _run_river(heights: NDArray[np.float64], params: RiverSettings, streams: RandomStreams) -> None:
    np.copyto(heights, carve_river(heights, params))


def _run_trail(heights: NDArray[np.float64], params: TrailSettings, streams: RandomStreams) -> None:
    np.copyto(heights, carve_trail(heights, params))


def _run_lake(heights: NDArray[np.float64], params: LakeSettings, streams: RandomStreams) -> None:
    np.copyto(heights, apply_lake(heights, params))


def _run_erosion(
    heights: NDArray[np.float64], params: ErosionSettings, streams: RandomStreams
) -> None:
    np.copyto(heights, thermal_erosion(heights, params.talus_angle, params.iterations))


_STAGE_HANDLERS: dict[StageKind, Callable[..., None]] = {
    StageKind.PERLIN: _run_perlin,
    StageKind.FBM: _run_fbm,
    StageKind.DISPLACEMENT: _run_displacement,
    StageKind.RIVER: _run_river,
    StageKind.TRAIL: _run_trail,
    StageKind.LAKE: _run_lake,
    StageKind.EROSION: _run_erosion,
}


def _run_stages(settings: TerrainSettings, streams: RandomStreams) -> Heightfield:
    stages = build_stages(settings)
    heights = empty_buffer(settings.width, settings.length)

    for i, stage in enumerate(stages, start=1):
        logger.info(f"Stage {i}/{len(stages)}: {stage.kind.value}")
        _STAGE_HANDLERS[stage.kind](heights, stage.params, streams)

    return Heightfield.freeze(normalize_heights(heights))


def generate_heightfield(settings: TerrainSettings) -> Heightfield:
    """Run the heightfield stages and return the normalized snapshot.

    Args:
        settings: Generation settings.

    Returns:
        Frozen Heightfield with min 0 and max 1 (all 0 if constant).

    Raises:
        ConfigurationError: If the settings are rejected. Nothing is
            allocated or generated in that case.
    """
    require_valid(settings)
    logger.info(
        f"Generating heightfield {settings.width}x{settings.length} with seed {settings.seed}"
    )
    return _run_stages(settings, RandomStreams(settings.seed))


class GenerationResult:
    """Result of a full generation run."""

    def __init__(
        self,
        heightfield: Heightfield,
        biome_map: BiomeMap | None,
        placements: list[PlacementMap],
        mesh: Mesh | None,
        settings: TerrainSettings,
        validation: ValidationResult,
        timings: dict[str, float] | None = None,
    ):
        self.heightfield = heightfield
        self.biome_map = biome_map
        self.placements = placements
        self.mesh = mesh
        self.settings = settings
        self.validation = validation
        self.timings = timings or {}


def generate_terrain(settings: TerrainSettings, max_workers: int = 2) -> GenerationResult:
    """Generate a heightfield and every enabled derived artifact.

    Biomes are classified first because placement reads them; placement and
    mesh extraction then run concurrently over the frozen heightfield.

    Args:
        settings: Generation settings.
        max_workers: Thread pool size for the derived artifacts.

    Returns:
        GenerationResult with the heightfield and derived artifacts.

    Raises:
        ConfigurationError: If the settings are rejected.
    """
    validation = require_valid(settings)
    streams = RandomStreams(settings.seed)
    timings: dict[str, float] = {}

    logger.info(
        f"Generating terrain {settings.width}x{settings.length} with seed {settings.seed}"
    )

    start = time.perf_counter()
    heightfield = _run_stages(settings, streams)
    timings["heightfield"] = time.perf_counter() - start

    biome_map = None
    if settings.voronoi.enabled:
        start = time.perf_counter()
        biome_map = build_biome_map(heightfield, settings.voronoi, streams.biomes)
        timings["biomes"] = time.perf_counter() - start

    placements: list[PlacementMap] = []
    mesh = None
    start = time.perf_counter()
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        placement_task = None
        mesh_task = None
        if settings.placement.enabled:
            placement_task = pool.submit(
                place_features,
                heightfield,
                biome_map,
                settings.placement,
                settings.height_scale,
                streams.features,
            )
        if settings.mesh.enabled:
            mesh_task = pool.submit(
                generate_mesh,
                heightfield,
                settings.mesh,
                settings.height_scale,
                GradientNoise(streams.scalar_seed),
            )
        if placement_task is not None:
            placements = placement_task.result()
        if mesh_task is not None:
            mesh = mesh_task.result()
    timings["derived"] = time.perf_counter() - start

    _log_terrain_stats(heightfield, biome_map)

    if settings.debug_output_dir:
        _dump_debug_images(
            Path(settings.debug_output_dir), _debug_images(heightfield, biome_map, placements)
        )

    return GenerationResult(
        heightfield=heightfield,
        biome_map=biome_map,
        placements=placements,
        mesh=mesh,
        settings=settings,
        validation=validation,
        timings=timings,
    )


def _log_terrain_stats(heightfield: Heightfield, biome_map: BiomeMap | None) -> None:
    """Log terrain generation statistics."""
    values = heightfield.values
    logger.info(
        f"Height stats ({values.size:,} cells): mean {values.mean():.3f}, "
        f"std {values.std():.3f}"
    )
    if biome_map is None:
        return

    for biome, count in sorted(biome_map.counts().items()):
        name = "unclassified" if biome == UNCLASSIFIED else f"biome {biome}"
        logger.info(f"  {name}: {count:,} ({count / values.size:.1%})")


def _debug_images(
    heightfield: Heightfield,
    biome_map: BiomeMap | None,
    placements: list[PlacementMap],
) -> dict[str, tuple[NDArray, str]]:
    """Arrays worth inspecting after a run, each with its colormap."""
    images: dict[str, tuple[NDArray, str]] = {"heightfield": (heightfield.values, "terrain")}
    if biome_map is not None:
        # Shift so unclassified (-1) gets the first colour
        images["biomes"] = (biome_map.biome_indices + 1, "tab10")
        images["dominant_layers"] = (biome_map.dominant_layers + 1, "tab10")
    for placement in placements:
        images[f"placement_{placement.feature.name}"] = (placement.mask, "binary")
    return images


def _dump_debug_images(output_dir: Path, images: dict[str, tuple[NDArray, str]]) -> None:
    """Write each array as a PNG, one pixel per cell.

    Args:
        output_dir: Directory to write into; created if missing.
        images: Image name to (array, matplotlib colormap name).
    """
    try:
        import matplotlib

        matplotlib.use("Agg")
        import matplotlib.pyplot as plt
    except ImportError:
        logger.warning("matplotlib not available, skipping debug images")
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    for name, (values, cmap) in images.items():
        plt.imsave(output_dir / f"{name}.png", np.asarray(values, dtype=np.float64), cmap=cmap)

    logger.info(f"Wrote {len(images)} debug images to {output_dir}")
