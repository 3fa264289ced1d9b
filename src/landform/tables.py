"""Marching cubes lookup tables, derived from cube topology at import time.

Corner ``c`` of a cube sits at offset ``(c & 1, (c >> 1) & 1, (c >> 2) & 1)``.
Edges join corner pairs that differ in one bit and always list the lower
corner first. A configuration index has bit ``c`` set when corner ``c`` is
inside the surface.

For each configuration the surface is traced face by face: every face with
crossings contributes one or two segments, oriented so the inside corners
are on the right when the face is seen from outside the cube. A face with
four crossings is ambiguous; it is always split so that its two inside
corners are separated, which only depends on the face's own corners and so
is decided the same way by both cubes sharing it. Segments chain into
closed loops and each loop is fan-triangulated from a vertex whose
diagonals stay off the cube faces, so the only triangle edges lying in a
face are the traced segments. Triangles are wound so
their right-hand normal points from the inside corners towards the outside
corners.
"""

Vec = tuple[float, float, float]

CORNER_OFFSETS: tuple[tuple[int, int, int], ...] = tuple(
    (c & 1, (c >> 1) & 1, (c >> 2) & 1) for c in range(8)
)

EDGES: tuple[tuple[int, int], ...] = tuple(
    (c, c | bit) for bit in (1, 2, 4) for c in range(8) if not c & bit
)


def _build_faces() -> tuple[tuple[Vec, tuple[int, ...], tuple[int, ...]], ...]:
    faces = []
    for axis, bit in enumerate((1, 2, 4)):
        for side in (0, 1):
            corners = tuple(c for c in range(8) if (c & bit) == (bit if side else 0))
            normal = [0.0, 0.0, 0.0]
            normal[axis] = 1.0 if side else -1.0
            edges = tuple(
                i for i, (a, b) in enumerate(EDGES) if a in corners and b in corners
            )
            faces.append((tuple(normal), corners, edges))
    return tuple(faces)


FACES = _build_faces()


def _sub(a: Vec, b: Vec) -> Vec:
    return (a[0] - b[0], a[1] - b[1], a[2] - b[2])


def _cross(a: Vec, b: Vec) -> Vec:
    return (
        a[1] * b[2] - a[2] * b[1],
        a[2] * b[0] - a[0] * b[2],
        a[0] * b[1] - a[1] * b[0],
    )


def _dot(a: Vec, b: Vec) -> float:
    return a[0] * b[0] + a[1] * b[1] + a[2] * b[2]


def _edge_midpoint(edge: int) -> Vec:
    a, b = EDGES[edge]
    pa, pb = CORNER_OFFSETS[a], CORNER_OFFSETS[b]
    return ((pa[0] + pb[0]) / 2, (pa[1] + pb[1]) / 2, (pa[2] + pb[2]) / 2)


def _orient(normal: Vec, p: int, q: int, inside_corner: int) -> tuple[int, int]:
    """Order a segment so the inside corner lies on its right, seen from outside."""
    mp, mq = _edge_midpoint(p), _edge_midpoint(q)
    side = _dot(_cross(normal, _sub(mq, mp)), _sub(CORNER_OFFSETS[inside_corner], mp))
    return (p, q) if side < 0 else (q, p)


def face_segments(config: int, face: int) -> list[tuple[int, int]]:
    """Directed surface segments (edge, edge) on one face of a cube."""
    normal, corners, edges = FACES[face]
    inside = [c for c in corners if config >> c & 1]
    crossing = [e for e in edges if (config >> EDGES[e][0] & 1) != (config >> EDGES[e][1] & 1)]

    if not crossing:
        return []
    if len(crossing) == 2:
        return [_orient(normal, crossing[0], crossing[1], inside[0])]

    # Ambiguous face: give each inside corner its own segment
    segments = []
    for corner in inside:
        p, q = [e for e in crossing if corner in EDGES[e]]
        segments.append(_orient(normal, p, q, corner))
    return segments


def _shares_face(a: int, b: int) -> bool:
    return any(a in edges and b in edges for _, _, edges in FACES)


def _fan_root(loop: list[int]) -> int:
    """Position in the loop whose fan diagonals all pass through the cube.

    A diagonal between two vertices on one face would lie in that face, and
    the neighbouring cube could emit the same edge. Only a loop carrying
    both segments of an ambiguous face has such pairs, and it always has a
    vertex off that face.
    """
    n = len(loop)
    for root in range(n):
        if not any(_shares_face(loop[root], loop[(root + i) % n]) for i in range(2, n - 1)):
            return root
    raise ValueError(f"no interior fan root for loop {loop}")


def _triangulate(config: int) -> tuple[tuple[int, int, int], ...]:
    following: dict[int, int] = {}
    for face in range(len(FACES)):
        for p, q in face_segments(config, face):
            following[p] = q

    triangles = []
    visited: set[int] = set()
    for start in sorted(following):
        if start in visited:
            continue
        loop = []
        edge = start
        while edge not in visited:
            visited.add(edge)
            loop.append(edge)
            edge = following[edge]
        root = _fan_root(loop)
        loop = loop[root:] + loop[:root]
        for i in range(1, len(loop) - 1):
            triangles.append((loop[0], loop[i], loop[i + 1]))
    return tuple(triangles)


def _edge_mask(config: int) -> int:
    mask = 0
    for i, (a, b) in enumerate(EDGES):
        if (config >> a & 1) != (config >> b & 1):
            mask |= 1 << i
    return mask


EDGE_TABLE: tuple[int, ...] = tuple(_edge_mask(config) for config in range(256))
TRIANGLE_TABLE: tuple[tuple[tuple[int, int, int], ...], ...] = tuple(
    _triangulate(config) for config in range(256)
)

