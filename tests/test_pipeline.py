"""Tests for the stage pipeline and full terrain generation."""

import numpy as np
import pytest

from landform.config import (
    DisplacementSettings,
    ErosionSettings,
    LakeSettings,
    MeshSettings,
    NoiseSettings,
    RiverSettings,
    TerrainSettings,
    VoronoiSettings,
)
from landform.exceptions import ConfigurationError, InvalidDimensionsError
from landform.pipeline import StageKind, build_stages, generate_heightfield, generate_terrain


class TestBuildStages:
    """Tests for stage ordering."""

    def test_default_stages(self) -> None:
        """Only Perlin noise runs by default."""
        assert [s.kind for s in build_stages(TerrainSettings())] == [StageKind.PERLIN]

    def test_fixed_order(self) -> None:
        """Enabled stages keep the canonical order regardless of settings order."""
        settings = TerrainSettings(
            erosion=ErosionSettings(enabled=True),
            lake=LakeSettings(enabled=True),
            river=RiverSettings(enabled=True),
            displacement=DisplacementSettings(enabled=True),
            fbm=NoiseSettings(enabled=True),
        )
        assert [s.kind for s in build_stages(settings)] == [
            StageKind.PERLIN,
            StageKind.FBM,
            StageKind.DISPLACEMENT,
            StageKind.RIVER,
            StageKind.LAKE,
            StageKind.EROSION,
        ]

    def test_params_attached(self) -> None:
        """Each stage carries its own settings."""
        lake = LakeSettings(enabled=True, radius=3.0)
        stages = build_stages(TerrainSettings(perlin=NoiseSettings(enabled=False), lake=lake))
        assert len(stages) == 1
        assert stages[0].params is lake


class TestGenerateHeightfield:
    """Tests for the heightfield run."""

    def test_normalized_and_frozen(self, small_settings: TerrainSettings) -> None:
        """The result spans exactly [0, 1] and cannot be modified."""
        field = generate_heightfield(small_settings)
        assert field.values.shape == (33, 33)
        assert field.values.min() == 0.0
        assert field.values.max() == 1.0
        with pytest.raises(ValueError):
            field.values[0, 0] = 0.5

    def test_no_stages_is_flat(self) -> None:
        """With every stage disabled the field is all zeros."""
        settings = TerrainSettings(width=9, length=9, perlin=NoiseSettings(enabled=False))
        np.testing.assert_array_equal(generate_heightfield(settings).values, 0.0)

    def test_deterministic(self, small_settings: TerrainSettings) -> None:
        """Same seed gives a bit-identical heightfield."""
        np.testing.assert_array_equal(
            generate_heightfield(small_settings).values,
            generate_heightfield(small_settings).values,
        )

    def test_seed_changes_output(self, small_settings: TerrainSettings) -> None:
        """Different seeds give different fields."""
        other = small_settings.model_copy(update={"seed": 8})
        assert not np.array_equal(
            generate_heightfield(small_settings).values, generate_heightfield(other).values
        )

    def test_all_heightfield_stages(self) -> None:
        """Every stage together still normalizes cleanly."""
        settings = TerrainSettings(
            width=33,
            length=33,
            perlin=NoiseSettings(layers=2, base_scale=3.0),
            fbm=NoiseSettings(enabled=True, layers=3, base_scale=2.0),
            displacement=DisplacementSettings(enabled=True),
            river=RiverSettings(enabled=True, width=2.0),
            lake=LakeSettings(enabled=True, radius=4.0),
            erosion=ErosionSettings(enabled=True, iterations=2),
        )
        values = generate_heightfield(settings).values
        assert np.isfinite(values).all()
        assert values.min() == 0.0
        assert values.max() == 1.0

    def test_rejects_bad_dimensions(self) -> None:
        """Displacement on a non 2^n+1 grid fails before generating."""
        settings = TerrainSettings(
            width=100, length=129, displacement=DisplacementSettings(enabled=True)
        )
        with pytest.raises(InvalidDimensionsError):
            generate_heightfield(settings)

    @pytest.mark.parametrize("start", [(1.5, 0.5), (-0.5, 0.5)])
    def test_rejects_river_off_the_grid(self, start: tuple[float, float]) -> None:
        """A river source outside the grid is a settings error, not a crash."""
        settings = TerrainSettings(
            width=17, length=17, river=RiverSettings(enabled=True, start=start)
        )
        with pytest.raises(ConfigurationError):
            generate_heightfield(settings)


class TestGenerateTerrain:
    """Tests for the full run with derived artifacts."""

    def test_derived_artifacts(self, small_settings: TerrainSettings) -> None:
        """Biomes, placements and the mesh are all produced."""
        settings = small_settings.model_copy(update={"mesh": MeshSettings(enabled=True)})
        result = generate_terrain(settings)

        assert result.heightfield.values.shape == (33, 33)
        assert result.biome_map is not None
        assert result.biome_map.biome_indices.shape == (33, 33)
        assert [p.feature.name for p in result.placements] == ["tree", "boulder", "reed"]
        assert result.mesh is not None
        assert not result.mesh.is_empty
        assert set(result.timings) == {"heightfield", "biomes", "derived"}

    def test_heightfield_matches_standalone_run(self, small_settings: TerrainSettings) -> None:
        """Derived stages do not disturb the heightfield draws."""
        np.testing.assert_array_equal(
            generate_terrain(small_settings).heightfield.values,
            generate_heightfield(small_settings).values,
        )

    def test_deterministic_artifacts(self, small_settings: TerrainSettings) -> None:
        """Biome maps and placements repeat for the same seed."""
        a = generate_terrain(small_settings)
        b = generate_terrain(small_settings)
        np.testing.assert_array_equal(a.biome_map.biome_indices, b.biome_map.biome_indices)
        for pa, pb in zip(a.placements, b.placements):
            np.testing.assert_array_equal(pa.mask, pb.mask)

    def test_voronoi_disabled(self, small_settings: TerrainSettings) -> None:
        """Without Voronoi there is no biome map, but placement still runs."""
        settings = small_settings.model_copy(update={"voronoi": VoronoiSettings(enabled=False)})
        result = generate_terrain(settings)
        assert result.biome_map is None
        assert len(result.placements) == 3
        assert result.mesh is None

    def test_debug_images(self, small_settings: TerrainSettings, tmp_path) -> None:
        """Debug images are written when an output directory is set."""
        pytest.importorskip("matplotlib")
        settings = small_settings.model_copy(update={"debug_output_dir": str(tmp_path / "debug")})
        generate_terrain(settings)
        assert (tmp_path / "debug" / "heightfield.png").exists()
        assert (tmp_path / "debug" / "biomes.png").exists()
        assert (tmp_path / "debug" / "placement_tree.png").exists()
