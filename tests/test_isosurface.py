"""Tests for density volumes and marching cubes extraction."""

from collections import Counter

import numpy as np
import pytest

from landform.config import DensityMode, MeshSettings, ScalarBlendMode, ScalarFieldLayer
from landform.heightfield import Heightfield
from landform.isosurface import (
    build_scalar_field,
    cube_configurations,
    extract_isosurface,
    generate_mesh,
    grid_dimensions,
    interpolate_vertex,
)
from landform.noise import GradientNoise


def _assert_closed(triangles: np.ndarray) -> None:
    """Every directed edge appears once and is matched by its reverse."""
    directed = Counter(
        (int(t[i]), int(t[(i + 1) % 3])) for t in triangles for i in range(3)
    )
    assert all(count == 1 for count in directed.values())
    assert all((b, a) in directed for a, b in directed)


def _vertical_ramp(nx: int = 3, ny: int = 2, nz: int = 2) -> np.ndarray:
    """Density equal to the y index, so the 0.5 level is the plane y=0.5."""
    return np.broadcast_to(np.arange(ny, dtype=np.float64)[None, :, None], (nx, ny, nz)).copy()


class TestInterpolateVertex:
    """Tests for edge crossing interpolation."""

    def test_linear(self) -> None:
        """The crossing sits proportionally between the corners."""
        p = interpolate_vertex(0.25, (0.0, 0.0, 0.0), (2.0, 0.0, 0.0), 0.0, 1.0)
        assert p == pytest.approx((0.5, 0.0, 0.0))

    def test_snaps_to_endpoints(self) -> None:
        """A threshold equal to a corner density returns that corner."""
        p1, p2 = (0.0, 0.0, 0.0), (1.0, 1.0, 1.0)
        assert interpolate_vertex(0.5, p1, p2, 0.5, 0.9) == p1
        assert interpolate_vertex(0.5, p1, p2, 0.1, 0.5) == p2

    def test_equal_densities_pick_first(self) -> None:
        """Near-equal densities resolve to the first corner without dividing."""
        p1, p2 = (3.0, 0.0, 0.0), (4.0, 0.0, 0.0)
        assert interpolate_vertex(0.9, p1, p2, 0.2, 0.2 + 1e-7) == p1


class TestExtractIsosurface:
    """Tests for mesh extraction."""

    @pytest.mark.parametrize("value", [0.0, 0.2, 0.8, 1.0])
    def test_uniform_field_is_empty(self, value: float) -> None:
        """A field entirely on one side of the threshold has no surface."""
        mesh = extract_isosurface(np.full((4, 5, 6), value), threshold=0.5)
        assert mesh.vertex_count == 0
        assert mesh.triangle_count == 0

    def test_adjacent_cubes_share_vertices(self) -> None:
        """Two cubes cut by one plane weld their shared edge crossings."""
        mesh = extract_isosurface(_vertical_ramp(), threshold=0.5)
        assert mesh.triangle_count == 4
        # 3 x-positions by 2 z-positions, not 8 separate corners
        assert mesh.vertex_count == 6
        np.testing.assert_allclose(mesh.vertices[:, 1], 0.5)

    def test_normals_point_from_inside_to_outside(self) -> None:
        """With low densities inside, the surface faces up the ramp."""
        mesh = extract_isosurface(_vertical_ramp(), threshold=0.5)
        np.testing.assert_allclose(mesh.normals, np.tile([0.0, 1.0, 0.0], (6, 1)), atol=1e-12)

    def test_inside_above_threshold_flips(self) -> None:
        """Reversing the inside convention reverses the winding."""
        mesh = extract_isosurface(_vertical_ramp(), threshold=0.5, inside_below_threshold=False)
        np.testing.assert_allclose(mesh.normals, np.tile([0.0, -1.0, 0.0], (6, 1)), atol=1e-12)

    def test_voxel_size_scales_positions(self) -> None:
        """Vertex positions are in world units."""
        mesh = extract_isosurface(_vertical_ramp(), threshold=0.5, voxel_size=2.0)
        low, high = mesh.bounds
        np.testing.assert_allclose(low, [0.0, 1.0, 0.0])
        np.testing.assert_allclose(high, [4.0, 1.0, 2.0])

    def test_closed_surface(self) -> None:
        """A sphere inside the volume gives a closed, consistently wound mesh."""
        grid = np.indices((12, 12, 12)).astype(np.float64)
        centre = np.array([5.37, 5.21, 5.43])[:, None, None, None]
        distance = np.sqrt(((grid - centre) ** 2).sum(axis=0))
        mesh = extract_isosurface(distance, threshold=3.3, epsilon=0.0)

        assert mesh.triangle_count > 0
        _assert_closed(mesh.triangles)

        # Normals point away from the sphere centre
        radial = mesh.vertices - np.array([5.37, 5.21, 5.43])
        assert np.all(np.einsum("ij,ij->i", radial, mesh.normals) > 0)

    @pytest.mark.parametrize("seed", range(12))
    def test_random_volume_is_manifold(self, seed: int) -> None:
        """Noisy volumes full of ambiguous faces still weld into a closed mesh."""
        rng = np.random.default_rng(seed)
        # Samples on a 1/1000 lattice offset by half a step never hit 0.5
        values = rng.integers(0, 1000, size=(6, 6, 6)) / 1000.0 + 0.0005
        field = np.pad(values, 1, constant_values=1.0)
        mesh = extract_isosurface(field, threshold=0.5, epsilon=0.0)

        assert mesh.triangle_count > 0
        _assert_closed(mesh.triangles)

    def test_configurations(self) -> None:
        """Each cube's index has a bit per inside corner."""
        config = cube_configurations(_vertical_ramp(), 0.5)
        # Bottom corners (y bit clear) are inside: 0, 1, 4, 5
        np.testing.assert_array_equal(config, np.full((2, 1, 1), 0b00110011))


class TestScalarField:
    """Tests for density volumes built from heightfields."""

    def test_dimensions(self) -> None:
        """Grid covers the terrain plus the top height layer."""
        assert grid_dimensions(9, 17, 8.0, 1.0) == (9, 9, 17)
        assert grid_dimensions(9, 17, 8.0, 2.0) == (5, 5, 9)

    def test_falloff_peaks_on_surface(self) -> None:
        """Density is 1 at the surface and fades with vertical distance."""
        field = Heightfield.freeze(np.full((9, 9), 0.5))
        settings = MeshSettings(enabled=True, falloff_factor=2.0)
        density = build_scalar_field(field, settings, height_scale=8.0)
        assert density.shape == (9, 9, 9)
        np.testing.assert_allclose(density[:, 4, :], 1.0)
        np.testing.assert_allclose(density[:, 3, :], 0.5)
        np.testing.assert_allclose(density[:, 6, :], 0.0)

    def test_binary_mode(self) -> None:
        """Binary density is solid at and below the surface."""
        field = Heightfield.freeze(np.full((5, 5), 0.5))
        settings = MeshSettings(enabled=True, density_mode=DensityMode.BINARY)
        density = build_scalar_field(field, settings, height_scale=4.0)
        np.testing.assert_array_equal(density[0, :, 0], [1, 1, 1, 0, 0])

    def test_nearest_sample_mapping(self, ramp: Heightfield) -> None:
        """Columns follow the nearest heightfield cell."""
        settings = MeshSettings(enabled=True, density_mode=DensityMode.BINARY)
        density = build_scalar_field(ramp, settings, height_scale=8.0)
        # Column x maps to cell int(x / 9 * 8), whose height is that index / 8
        solid = density[:, :, 0].sum(axis=1)
        expected = [int(x / 9 * 8) + 1 for x in range(9)]
        np.testing.assert_array_equal(solid, expected)

    def test_scalar_layers_clamped(self) -> None:
        """Auxiliary layers keep densities in [0, 1]."""
        field = Heightfield.freeze(np.full((8, 8), 0.5))
        settings = MeshSettings(
            enabled=True,
            scalar_blend_mode=ScalarBlendMode.ADDITIVE,
            scalar_layers=[ScalarFieldLayer(scale=0.3, amplitude=2.0, weight=1.0)],
        )
        density = build_scalar_field(field, settings, 8.0, GradientNoise(1))
        assert density.min() >= 0.0
        assert density.max() <= 1.0

    def test_zero_weight_layer_is_noop(self) -> None:
        """A zero-weight minimum blend leaves densities unchanged."""
        field = Heightfield.freeze(np.full((8, 8), 0.5))
        base = build_scalar_field(field, MeshSettings(enabled=True), 8.0)
        settings = MeshSettings(
            enabled=True,
            scalar_blend_mode=ScalarBlendMode.MINIMUM,
            scalar_layers=[ScalarFieldLayer(weight=0.0)],
        )
        np.testing.assert_allclose(build_scalar_field(field, settings, 8.0, GradientNoise(2)), base)


class TestGenerateMesh:
    """Tests for the mesh stage."""

    def test_ramp_produces_surface(self, ramp: Heightfield) -> None:
        """A sloped heightfield yields a non-empty mesh inside the volume."""
        settings = MeshSettings(enabled=True, falloff_factor=2.0)
        mesh = generate_mesh(ramp, settings, height_scale=8.0)
        assert not mesh.is_empty
        low, high = mesh.bounds
        assert np.all(low >= 0.0)
        assert np.all(high <= np.array([8.0, 8.0, 8.0]))
        assert mesh.normals.shape == mesh.vertices.shape
