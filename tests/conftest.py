"""Shared test fixtures for terrain tests."""

import numpy as np
import pytest

from landform.config import (
    BiomeDefinition,
    BiomeLayer,
    FeaturePlacementSettings,
    NoiseSettings,
    TerrainSettings,
    default_features,
)
from landform.heightfield import Heightfield


def _uniform_biomes(count: int, low: float = 0.0, high: float = 1.0) -> list[BiomeDefinition]:
    return [
        BiomeDefinition(
            name=f"biome_{i}",
            layers=(
                BiomeLayer(name="low", min_height=low, max_height=high),
                BiomeLayer(name="mid", min_height=low, max_height=high),
                BiomeLayer(name="high", min_height=low, max_height=high),
            ),
        )
        for i in range(count)
    ]


@pytest.fixture
def uniform_biomes():
    """Factory for biome tables whose three layers all span one height band."""
    return _uniform_biomes


@pytest.fixture
def ramp() -> Heightfield:
    """9x9 heightfield rising linearly from 0 at x=0 to 1 at x=8."""
    return Heightfield.freeze(np.tile(np.linspace(0.0, 1.0, 9), (9, 1)))


@pytest.fixture
def random_heights() -> np.ndarray:
    """16x16 uniform random heights with a fixed seed."""
    return np.random.default_rng(3).random((16, 16))


@pytest.fixture
def small_settings() -> TerrainSettings:
    """33x33 settings with a few noise layers and the sample features."""
    return TerrainSettings(
        seed=7,
        width=33,
        length=33,
        height_scale=8.0,
        perlin=NoiseSettings(layers=3, base_scale=3.0),
        placement=FeaturePlacementSettings(features=default_features()),
    )
