"""Triangle mesh container, vertex welding and cleanup."""

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
from numpy.typing import NDArray


@dataclass
class Mesh:
    """Indexed triangle mesh.

    Attributes:
        vertices: (N, 3) float64 positions.
        triangles: (M, 3) int64 vertex indices.
        normals: (N, 3) float64 unit vertex normals.
        bounds: (min corner, max corner); zeros for an empty mesh.
    """

    vertices: NDArray[np.float64]
    triangles: NDArray[np.int64]
    normals: NDArray[np.float64]
    bounds: tuple[NDArray[np.float64], NDArray[np.float64]] = field(
        default_factory=lambda: (np.zeros(3), np.zeros(3))
    )

    @classmethod
    def empty(cls) -> "Mesh":
        return cls(
            vertices=np.zeros((0, 3), dtype=np.float64),
            triangles=np.zeros((0, 3), dtype=np.int64),
            normals=np.zeros((0, 3), dtype=np.float64),
        )

    @property
    def vertex_count(self) -> int:
        return len(self.vertices)

    @property
    def triangle_count(self) -> int:
        return len(self.triangles)

    @property
    def is_empty(self) -> bool:
        return self.triangle_count == 0


class MeshBuilder:
    """Accumulates triangles, welding vertices that round to the same key.

    Two positions share one vertex index when all coordinates agree after
    rounding to ``decimals`` places. The first position seen for a key is
    the one stored.
    """

    def __init__(self, decimals: int = 6) -> None:
        self.decimals = decimals
        self._vertices: list[tuple[float, float, float]] = []
        self._triangles: list[tuple[int, int, int]] = []
        self._cache: dict[tuple[float, float, float], int] = {}

    @property
    def vertex_count(self) -> int:
        return len(self._vertices)

    @property
    def triangle_count(self) -> int:
        return len(self._triangles)

    def add_vertex(self, position: Sequence[float]) -> int:
        """Return the index for a position, adding it if unseen."""
        x, y, z = (float(c) for c in position)
        key = (round(x, self.decimals), round(y, self.decimals), round(z, self.decimals))
        index = self._cache.get(key)
        if index is None:
            index = len(self._vertices)
            self._vertices.append((x, y, z))
            self._cache[key] = index
        return index

    def add_triangle(self, a: int, b: int, c: int) -> None:
        self._triangles.append((a, b, c))

    def build(self, epsilon: float = 1e-6) -> Mesh:
        """Drop degenerate triangles and compute normals and bounds."""
        vertices = np.array(self._vertices, dtype=np.float64).reshape(-1, 3)
        triangles = np.array(self._triangles, dtype=np.int64).reshape(-1, 3)
        vertices, triangles = remove_degenerate_triangles(vertices, triangles, epsilon)
        return Mesh(
            vertices=vertices,
            triangles=triangles,
            normals=compute_normals(vertices, triangles),
            bounds=compute_bounds(vertices),
        )


def triangle_areas(
    vertices: NDArray[np.float64], triangles: NDArray[np.int64]
) -> NDArray[np.float64]:
    """Area of each triangle (half the cross product magnitude)."""
    a = vertices[triangles[:, 0]]
    b = vertices[triangles[:, 1]]
    c = vertices[triangles[:, 2]]
    return 0.5 * np.linalg.norm(np.cross(b - a, c - a), axis=1)


def remove_degenerate_triangles(
    vertices: NDArray[np.float64],
    triangles: NDArray[np.int64],
    epsilon: float = 1e-6,
) -> tuple[NDArray[np.float64], NDArray[np.int64]]:
    """Remove triangles with area below epsilon and compact the vertex list.

    Triangles that repeat a vertex index have zero area and are always
    removed. Vertices no longer referenced by any triangle are dropped and
    the remaining indices are remapped in order.

    Args:
        vertices: (N, 3) positions.
        triangles: (M, 3) indices.
        epsilon: Minimum triangle area to keep.

    Returns:
        Tuple of (vertices, triangles).
    """
    if len(triangles) == 0:
        return np.zeros((0, 3), dtype=np.float64), np.zeros((0, 3), dtype=np.int64)

    keep = triangle_areas(vertices, triangles) >= epsilon
    kept = triangles[keep]

    used = np.unique(kept)
    remap = np.full(len(vertices), -1, dtype=np.int64)
    remap[used] = np.arange(len(used), dtype=np.int64)
    return vertices[used], remap[kept].reshape(-1, 3)


def compute_normals(
    vertices: NDArray[np.float64], triangles: NDArray[np.int64]
) -> NDArray[np.float64]:
    """Area-weighted unit vertex normals from counter-clockwise triangles."""
    normals = np.zeros_like(vertices)
    if len(triangles) == 0:
        return normals

    a = vertices[triangles[:, 0]]
    b = vertices[triangles[:, 1]]
    c = vertices[triangles[:, 2]]
    face_normals = np.cross(b - a, c - a)
    for k in range(3):
        np.add.at(normals, triangles[:, k], face_normals)

    lengths = np.linalg.norm(normals, axis=1, keepdims=True)
    np.divide(normals, lengths, out=normals, where=lengths > 0)
    return normals


def compute_bounds(
    vertices: NDArray[np.float64],
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Axis-aligned bounding box as (min, max)."""
    if len(vertices) == 0:
        return np.zeros(3), np.zeros(3)
    return vertices.min(axis=0), vertices.max(axis=0)
