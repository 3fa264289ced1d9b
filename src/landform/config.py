"""Terrain generation settings models.

Every stage gets its own model with an ``enabled`` flag and its numeric
parameters. Pydantic checks structure and types; the semantic rules (grid
sizes, ordered ranges, non-empty biome tables) are enforced by
:mod:`landform.validation` before a run starts.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BlendMode(str, Enum):
    """How noise octaves combine."""

    ADDITIVE = "additive"
    MULTIPLICATIVE = "multiplicative"


class DistributionMode(str, Enum):
    """How Voronoi sites are laid out."""

    GRID = "grid"
    RANDOM = "random"
    CUSTOM = "custom"


class DensityMode(str, Enum):
    """How the volumetric density is derived from surface height."""

    FALLOFF = "falloff"
    BINARY = "binary"


class ScalarBlendMode(str, Enum):
    """How auxiliary scalar layers combine with the base density."""

    ADDITIVE = "additive"
    MULTIPLICATIVE = "multiplicative"
    MINIMUM = "minimum"
    MAXIMUM = "maximum"


class NoiseSettings(BaseModel):
    """Layered gradient noise parameters."""

    enabled: bool = Field(default=True, description="Run this noise stage")
    layers: int = Field(default=1, description="Number of octaves")
    base_scale: float = Field(default=10.0, description="Frequency of the first octave")
    amplitude_decay: float = Field(default=0.5, description="Amplitude multiplier per octave")
    frequency_growth: float = Field(default=2.0, description="Frequency multiplier per octave")
    offset: tuple[float, float] = Field(
        default=(0.0, 0.0), description="Offset added to noise coordinates (x, y)"
    )
    blend_mode: BlendMode = Field(
        default=BlendMode.ADDITIVE, description="Octave combination rule"
    )


class DisplacementSettings(BaseModel):
    """Midpoint displacement parameters."""

    enabled: bool = Field(default=False, description="Run midpoint displacement")
    displacement_factor: float = Field(
        default=1.0, description="Initial random offset magnitude"
    )
    decay_rate: float = Field(
        default=0.5, description="Offset magnitude multiplier per refinement step"
    )


class BiomeLayer(BaseModel):
    """One height band of a biome."""

    name: str = Field(default="layer", description="Layer label, e.g. sand or rock")
    min_height: float = Field(default=0.0, description="Lowest normalized height")
    max_height: float = Field(default=1.0, description="Highest normalized height")


class BiomeDefinition(BaseModel):
    """A biome with exactly three height-banded layers."""

    name: str = Field(description="Biome name")
    layers: tuple[BiomeLayer, BiomeLayer, BiomeLayer] = Field(
        description="Low, middle and high layers"
    )


def default_biomes() -> list[BiomeDefinition]:
    """Three-biome table used when no table is supplied."""
    return [
        BiomeDefinition(
            name="coast",
            layers=(
                BiomeLayer(name="sand", min_height=0.0, max_height=0.35),
                BiomeLayer(name="grass", min_height=0.3, max_height=0.65),
                BiomeLayer(name="rock", min_height=0.6, max_height=1.0),
            ),
        ),
        BiomeDefinition(
            name="forest",
            layers=(
                BiomeLayer(name="mud", min_height=0.0, max_height=0.25),
                BiomeLayer(name="moss", min_height=0.2, max_height=0.75),
                BiomeLayer(name="stone", min_height=0.7, max_height=1.0),
            ),
        ),
        BiomeDefinition(
            name="alpine",
            layers=(
                BiomeLayer(name="gravel", min_height=0.0, max_height=0.4),
                BiomeLayer(name="scree", min_height=0.35, max_height=0.8),
                BiomeLayer(name="snow", min_height=0.75, max_height=1.0),
            ),
        ),
    ]


class VoronoiSettings(BaseModel):
    """Voronoi biome partition parameters."""

    enabled: bool = Field(default=True, description="Build a biome map")
    cell_count: int = Field(
        default=10, description="Requested site count (clamped to the biome count)"
    )
    distribution_mode: DistributionMode = Field(
        default=DistributionMode.RANDOM, description="Site layout"
    )
    custom_points: list[tuple[float, float]] = Field(
        default_factory=list, description="Site positions in grid cells for custom mode"
    )
    biomes: list[BiomeDefinition] = Field(
        default_factory=default_biomes, description="Biome threshold table"
    )


class LakeSettings(BaseModel):
    """Circular lake flattening."""

    enabled: bool = Field(default=False, description="Carve a lake")
    center: tuple[float, float] = Field(
        default=(0.5, 0.5), description="Lake center, normalized to [0, 1]"
    )
    radius: float = Field(default=10.0, description="Lake radius in cells")
    water_level: float = Field(default=0.3, description="Surface height of the lake")


class RiverSettings(BaseModel):
    """River carving along a steepest-descent or straight path."""

    enabled: bool = Field(default=False, description="Carve a river")
    start: tuple[float, float] = Field(
        default=(0.5, 0.5), description="Source, normalized to [0, 1]"
    )
    end: tuple[float, float] | None = Field(
        default=None,
        description="Mouth, normalized; None follows steepest descent from the source",
    )
    width: float = Field(default=5.0, description="Half-width of the channel in cells")
    depth: float = Field(default=0.1, description="Depth at the centerline")
    max_steps: int = Field(default=100, description="Step limit for steepest descent")


class TrailSettings(BaseModel):
    """Trail carving along a jittered straight line."""

    enabled: bool = Field(default=False, description="Carve a trail")
    start: tuple[float, float] = Field(
        default=(0.2, 0.8), description="Trail start, normalized"
    )
    end: tuple[float, float] = Field(default=(0.8, 0.2), description="Trail end, normalized")
    width: float = Field(default=2.0, description="Half-width of the trail in cells")
    intensity: float = Field(default=0.1, description="Depth at the centerline")
    jitter_frequency: float = Field(
        default=0.2, description="Frequency of the sideways sine wobble"
    )
    resolution: int = Field(default=100, description="Number of path samples")


class ErosionSettings(BaseModel):
    """Thermal erosion parameters."""

    enabled: bool = Field(default=False, description="Run thermal erosion")
    talus_angle: float = Field(
        default=0.05, description="Height difference above which material slides"
    )
    iterations: int = Field(default=3, description="Number of diffusion passes")


class FeatureSpec(BaseModel):
    """Placement rules for one feature type."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Feature name")
    height_range: tuple[float, float] = Field(
        default=(0.0, 1.0), description="Allowed normalized heights (inclusive)"
    )
    slope_range: tuple[float, float] = Field(
        default=(0.0, 45.0), description="Allowed slope in degrees (inclusive)"
    )
    spawn_probability: float = Field(default=0.5, description="Per-cell spawn chance")
    biome_index: int | None = Field(
        default=None, description="Required biome, or None for any biome"
    )
    density_range: tuple[float, float] = Field(
        default=(0.5, 1.0), description="Density hint for the instancing collaborator"
    )
    scale_range: tuple[float, float] = Field(
        default=(1.0, 1.5), description="Instance scale range"
    )
    rotation_range: tuple[float, float] = Field(
        default=(0.0, 360.0), description="Instance yaw range in degrees"
    )


def default_features() -> list[FeatureSpec]:
    """A small sample feature set."""
    return [
        FeatureSpec(name="tree", height_range=(0.25, 0.7), slope_range=(0.0, 30.0)),
        FeatureSpec(
            name="boulder",
            height_range=(0.5, 1.0),
            slope_range=(10.0, 90.0),
            spawn_probability=0.2,
        ),
        FeatureSpec(
            name="reed",
            height_range=(0.0, 0.3),
            slope_range=(0.0, 15.0),
            spawn_probability=0.6,
            biome_index=0,
        ),
    ]


class FeaturePlacementSettings(BaseModel):
    """Feature placement and cellular-automata refinement."""

    enabled: bool = Field(default=True, description="Compute placement maps")
    features: list[FeatureSpec] = Field(
        default_factory=list, description="Registered feature specs, in order"
    )
    ca_iterations: int = Field(default=2, description="Cellular automata passes")
    neighbor_threshold: int = Field(
        default=3, description="Live Moore neighbours needed to stay active"
    )
    global_density: float = Field(
        default=1.0, description="Multiplier applied to every spawn probability"
    )


class ScalarFieldLayer(BaseModel):
    """Auxiliary 3D noise layer blended into the mesh density."""

    scale: float = Field(default=0.05, description="Coordinate scale")
    amplitude: float = Field(default=1.0, description="Noise amplitude")
    frequency: float = Field(default=1.0, description="Frequency multiplier")
    offset_x: float = Field(default=0.0, description="Offset along x")
    offset_z: float = Field(default=0.0, description="Offset along z")
    weight: float = Field(default=0.5, description="Blend weight")


class MeshSettings(BaseModel):
    """Marching-cubes mesh extraction."""

    enabled: bool = Field(default=False, description="Extract an isosurface mesh")
    threshold: float = Field(default=0.5, description="Isosurface level")
    inside_below_threshold: bool = Field(
        default=True, description="Treat densities below the threshold as inside"
    )
    voxel_size: float = Field(default=1.0, description="Edge length of one voxel")
    falloff_factor: float = Field(
        default=5.0, description="Falloff distance in voxels around the surface"
    )
    density_mode: DensityMode = Field(
        default=DensityMode.FALLOFF, description="Density function"
    )
    vertex_decimals: int = Field(
        default=6, description="Rounding precision of the vertex welding cache"
    )
    degenerate_epsilon: float = Field(
        default=1e-6, description="Triangles with smaller area are dropped"
    )
    scalar_blend_mode: ScalarBlendMode = Field(
        default=ScalarBlendMode.ADDITIVE, description="Auxiliary layer blend rule"
    )
    scalar_layers: list[ScalarFieldLayer] = Field(
        default_factory=list, description="Auxiliary 3D noise layers"
    )


class TerrainSettings(BaseModel):
    """Complete terrain generation settings."""

    seed: int = Field(default=42, description="Random seed for reproducibility")
    width: int = Field(default=257, description="Grid width in cells")
    length: int = Field(default=257, description="Grid length in cells")
    height_scale: float = Field(
        default=50.0, description="World height of a normalized height of 1"
    )

    perlin: NoiseSettings = Field(default_factory=NoiseSettings)
    fbm: NoiseSettings = Field(
        default_factory=lambda: NoiseSettings(enabled=False, layers=4, base_scale=4.0)
    )
    displacement: DisplacementSettings = Field(default_factory=DisplacementSettings)
    voronoi: VoronoiSettings = Field(default_factory=VoronoiSettings)
    river: RiverSettings = Field(default_factory=RiverSettings)
    trail: TrailSettings = Field(default_factory=TrailSettings)
    lake: LakeSettings = Field(default_factory=LakeSettings)
    erosion: ErosionSettings = Field(default_factory=ErosionSettings)
    placement: FeaturePlacementSettings = Field(default_factory=FeaturePlacementSettings)
    mesh: MeshSettings = Field(default_factory=MeshSettings)

    debug_output_dir: str | None = Field(
        default=None, description="Directory for debug images (None = disabled)"
    )
