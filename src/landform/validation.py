"""Up-front validation of generation settings."""

import logging
import math

from .config import DistributionMode, FeatureSpec, TerrainSettings
from .displacement import is_power_of_two_plus_one
from .exceptions import BiomeConfigurationError, ConfigurationError, InvalidDimensionsError

logger = logging.getLogger(__name__)


class ValidationResult:
    """Result of settings validation."""

    def __init__(self) -> None:
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.passed = True
        self._kinds: set[type[ConfigurationError]] = set()

    def add_error(
        self, message: str, kind: type[ConfigurationError] = ConfigurationError
    ) -> None:
        """Add validation error."""
        self.errors.append(message)
        self._kinds.add(kind)
        self.passed = False

    def add_warning(self, message: str) -> None:
        """Add validation warning."""
        self.warnings.append(message)

    def to_exception(self) -> ConfigurationError:
        """Build the most specific exception covering every error."""
        kind = next(iter(self._kinds)) if len(self._kinds) == 1 else ConfigurationError
        return kind(self.errors)


def validate_settings(settings: TerrainSettings) -> ValidationResult:
    """Check settings for problems that would make a run fail or mislead.

    Args:
        settings: Generation settings.

    Returns:
        ValidationResult with any errors/warnings.
    """
    result = ValidationResult()

    _check_dimensions(settings, result)
    _check_noise(settings, result)
    _check_displacement(settings, result)
    _check_voronoi(settings, result)
    _check_carving(settings, result)
    _check_placement(settings, result)
    _check_mesh(settings, result)

    if not result.passed:
        logger.warning(f"Settings validation failed with {len(result.errors)} errors")
        for error in result.errors:
            logger.error(f"  - {error}")

    for warning in result.warnings:
        logger.warning(f"  - {warning}")

    return result


def require_valid(settings: TerrainSettings) -> ValidationResult:
    """Validate settings and raise on any error.

    Raises:
        ConfigurationError: With every collected error. A subclass is used
            when all errors are of the same kind.
    """
    result = validate_settings(settings)
    if not result.passed:
        raise result.to_exception()
    return result


def _check_dimensions(settings: TerrainSettings, result: ValidationResult) -> None:
    """Grid must be at least 2x2; displacement needs 2^n+1 sides."""
    for name, value in (("width", settings.width), ("length", settings.length)):
        if value < 2:
            result.add_error(f"{name} must be at least 2, got {value}", InvalidDimensionsError)
        elif settings.displacement.enabled and not is_power_of_two_plus_one(value):
            result.add_error(
                f"midpoint displacement requires 2^n+1 dimensions: {name}={value}",
                InvalidDimensionsError,
            )
    if not settings.height_scale > 0:
        result.add_error(f"height_scale must be positive, got {settings.height_scale}")


def _check_noise(settings: TerrainSettings, result: ValidationResult) -> None:
    for name, noise in (("perlin", settings.perlin), ("fbm", settings.fbm)):
        if not noise.enabled:
            continue
        if noise.layers < 0:
            result.add_error(f"{name}.layers must be >= 0, got {noise.layers}")
        _check_finite(
            name,
            (noise.base_scale, noise.amplitude_decay, noise.frequency_growth, *noise.offset),
            result,
        )


def _check_voronoi(settings: TerrainSettings, result: ValidationResult) -> None:
    voronoi = settings.voronoi
    if not voronoi.enabled:
        return

    if not voronoi.biomes:
        result.add_error(
            "Voronoi biomes requested with an empty biome table", BiomeConfigurationError
        )
    if voronoi.cell_count <= 0:
        result.add_error(
            f"Voronoi cell count must be positive, got {voronoi.cell_count}",
            BiomeConfigurationError,
        )
    elif voronoi.biomes and voronoi.cell_count > len(voronoi.biomes):
        result.add_warning(
            f"Voronoi cell count {voronoi.cell_count} clamped to "
            f"{len(voronoi.biomes)} biome definitions"
        )

    if voronoi.distribution_mode == DistributionMode.CUSTOM:
        if not voronoi.custom_points:
            result.add_error(
                "custom distribution mode needs at least one point", BiomeConfigurationError
            )
        for i, (px, py) in enumerate(voronoi.custom_points):
            if not (math.isfinite(px) and math.isfinite(py)):
                result.add_error(f"custom point {i} is not finite", BiomeConfigurationError)
            elif not (0 <= px <= settings.width - 1 and 0 <= py <= settings.length - 1):
                result.add_error(
                    f"custom point {i} ({px}, {py}) lies outside the grid",
                    BiomeConfigurationError,
                )

    for biome in voronoi.biomes:
        for layer in biome.layers:
            if layer.min_height > layer.max_height:
                result.add_error(
                    f"biome {biome.name} layer {layer.name} has min_height above max_height",
                    BiomeConfigurationError,
                )


def _check_finite(name: str, values: tuple[float, ...], result: ValidationResult) -> None:
    if not all(math.isfinite(v) for v in values):
        result.add_error(f"{name} parameters must be finite")


def _check_unit_point(
    name: str, point: tuple[float, float] | None, result: ValidationResult
) -> None:
    """Normalized points must be finite and inside [0, 1] on both axes."""
    if point is None:
        return
    if not all(math.isfinite(v) for v in point):
        result.add_error(f"{name} {point} is not finite")
    elif not all(0.0 <= v <= 1.0 for v in point):
        result.add_error(f"{name} {point} lies outside [0, 1]")


def _check_displacement(settings: TerrainSettings, result: ValidationResult) -> None:
    displacement = settings.displacement
    if displacement.enabled:
        _check_finite(
            "displacement",
            (displacement.displacement_factor, displacement.decay_rate),
            result,
        )


def _check_carving(settings: TerrainSettings, result: ValidationResult) -> None:
    lake, river, trail, erosion = settings.lake, settings.river, settings.trail, settings.erosion

    if lake.enabled:
        _check_unit_point("lake center", lake.center, result)
        _check_finite("lake", (lake.radius, lake.water_level), result)
        if lake.radius < 0:
            result.add_error(f"lake radius must be >= 0, got {lake.radius}")

    if river.enabled:
        _check_unit_point("river start", river.start, result)
        _check_unit_point("river end", river.end, result)
        _check_finite("river", (river.width, river.depth), result)
        if river.width <= 0:
            result.add_error(f"river width must be positive, got {river.width}")
        if river.max_steps < 1:
            result.add_error(f"river max_steps must be >= 1, got {river.max_steps}")

    if trail.enabled:
        _check_unit_point("trail start", trail.start, result)
        _check_unit_point("trail end", trail.end, result)
        _check_finite("trail", (trail.width, trail.intensity, trail.jitter_frequency), result)
        if trail.width <= 0:
            result.add_error(f"trail width must be positive, got {trail.width}")
        if trail.resolution < 2:
            result.add_error(f"trail resolution must be >= 2, got {trail.resolution}")

    if erosion.enabled:
        _check_finite("erosion", (erosion.talus_angle,), result)
        if erosion.iterations < 0:
            result.add_error(f"erosion iterations must be >= 0, got {erosion.iterations}")
        if erosion.talus_angle < 0:
            result.add_error(f"erosion talus angle must be >= 0, got {erosion.talus_angle}")


def _check_feature(spec: FeatureSpec, result: ValidationResult) -> None:
    for name in ("height_range", "slope_range", "density_range", "scale_range", "rotation_range"):
        low, high = getattr(spec, name)
        if low > high:
            result.add_error(f"feature {spec.name}: {name} minimum exceeds maximum")
    if not 0.0 <= spec.spawn_probability <= 1.0:
        result.add_error(
            f"feature {spec.name}: spawn probability {spec.spawn_probability} not in [0, 1]"
        )
    if spec.biome_index is not None and spec.biome_index < 0:
        result.add_error(f"feature {spec.name}: biome index must be >= 0")


def _check_placement(settings: TerrainSettings, result: ValidationResult) -> None:
    placement = settings.placement
    if not placement.enabled:
        return
    for spec in placement.features:
        _check_feature(spec, result)
    if placement.global_density < 0:
        result.add_error(f"global density must be >= 0, got {placement.global_density}")
    if placement.ca_iterations < 0:
        result.add_error(f"CA iterations must be >= 0, got {placement.ca_iterations}")
    if placement.neighbor_threshold < 0:
        result.add_error(
            f"CA neighbour threshold must be >= 0, got {placement.neighbor_threshold}"
        )


def _check_mesh(settings: TerrainSettings, result: ValidationResult) -> None:
    mesh = settings.mesh
    if not mesh.enabled:
        return
    if not mesh.voxel_size > 0:
        result.add_error(f"voxel size must be positive, got {mesh.voxel_size}")
    if not mesh.falloff_factor > 0:
        result.add_error(f"falloff factor must be positive, got {mesh.falloff_factor}")
    _check_finite("mesh", (mesh.threshold, mesh.degenerate_epsilon), result)
    if mesh.vertex_decimals < 0:
        result.add_error(f"vertex decimals must be >= 0, got {mesh.vertex_decimals}")
