"""Procedural terrain generation package.

This package synthesizes normalized heightfields from layered noise and
midpoint displacement, carves lakes, rivers and trails, applies thermal
erosion, and derives Voronoi biome maps, feature placement grids and
marching-cubes meshes from the finished field.
"""

from .biomes import BiomeMap, VoronoiSite, build_biome_map, classify_biomes, generate_sites
from .config import FeatureSpec, TerrainSettings
from .exceptions import (
    BiomeConfigurationError,
    ConfigurationError,
    InvalidDimensionsError,
    TerrainError,
)
from .heightfield import Heightfield, normalize_heights
from .isosurface import extract_isosurface, generate_mesh
from .mesh import Mesh
from .pipeline import GenerationResult, generate_heightfield, generate_terrain
from .placement import PlacementMap, place_features
from .validation import ValidationResult, validate_settings

__all__ = [
    "BiomeConfigurationError",
    "BiomeMap",
    "ConfigurationError",
    "FeatureSpec",
    "GenerationResult",
    "Heightfield",
    "InvalidDimensionsError",
    "Mesh",
    "PlacementMap",
    "TerrainError",
    "TerrainSettings",
    "ValidationResult",
    "VoronoiSite",
    "build_biome_map",
    "classify_biomes",
    "extract_isosurface",
    "generate_heightfield",
    "generate_mesh",
    "generate_sites",
    "generate_terrain",
    "normalize_heights",
    "place_features",
    "validate_settings",
]
