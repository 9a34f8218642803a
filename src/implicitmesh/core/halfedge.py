"""
Half-edge mesh topology.

Vertices, half-edges and faces live in flat integer-indexed arrays (an arena):
every "reference" between them is an index into another array, with ``-1``
marking an absent link. This keeps the cyclic adjacency graph
(origin <-> outgoing edge, edge <-> pair, edge -> next -> ... -> edge) free of
object reference cycles.

The mesh is built once from a triangle soup and is read-only afterwards;
a new tessellation produces a new mesh.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Sequence
import logging
import numpy as np

from implicitmesh.core.errors import TopologyError
from implicitmesh.core.mesh import Mesh

logger = logging.getLogger("implicitmesh.core.halfedge")

NO_INDEX = -1


@dataclass(frozen=True)
class RenderPayload:
    """
    Arrays handed to an external renderer.

    Attributes:
        positions: (V, 3) float32 vertex positions
        lines: (K, 2) uint32 vertex index pairs for wireframe display
        triangles: (F, 3) uint32 vertex index triples for shaded display
    """
    positions: np.ndarray
    lines: np.ndarray
    triangles: np.ndarray


def _frozen(values, dtype) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.flags.writeable = False
    return arr


class HalfEdgeMesh:
    """
    Triangle mesh with paired directed edges.

    Half-edge ``e`` starts at ``origin(e)``, runs to ``destination(e)`` and is
    followed by ``next(e)`` inside face ``face(e)``. ``pair(e)`` is the
    oppositely directed half-edge of the neighbouring face, or ``None`` on a
    boundary or non-manifold edge.

    Use :meth:`from_triangles` or :meth:`from_mesh` to build one.
    """

    def __init__(
        self,
        positions: np.ndarray,
        vertex_edge: Sequence[int],
        edge_origin: Sequence[int],
        edge_pair: Sequence[int],
        edge_next: Sequence[int],
        edge_face: Sequence[int],
        face_edge: Sequence[int],
        duplicate_half_edges: int = 0,
        skipped_faces: int = 0,
        name: str = "halfedge",
    ):
        self._positions = _frozen(np.reshape(positions, (-1, 3)), np.float64)
        self._vertex_edge = _frozen(vertex_edge, np.int64)
        self._edge_origin = _frozen(edge_origin, np.int64)
        self._edge_pair = _frozen(edge_pair, np.int64)
        self._edge_next = _frozen(edge_next, np.int64)
        self._edge_face = _frozen(edge_face, np.int64)
        self._face_edge = _frozen(face_edge, np.int64)
        self.duplicate_half_edges = int(duplicate_half_edges)
        self.skipped_faces = int(skipped_faces)
        self.name = name

    # ------------------------------------------------------------------
    # Construction

    @classmethod
    def empty(cls, name: str = "empty") -> HalfEdgeMesh:
        return cls(np.zeros((0, 3)), [], [], [], [], [], [], name=name)

    @classmethod
    def from_mesh(cls, mesh: Mesh) -> HalfEdgeMesh:
        return cls.from_triangles(mesh.vertices, mesh.faces, name=mesh.name)

    @classmethod
    def from_triangles(
        cls,
        vertices: np.ndarray,
        triangles: np.ndarray,
        name: str = "halfedge",
    ) -> HalfEdgeMesh:
        """
        Build the half-edge topology of a triangle soup.

        Each triangle (a, b, c) yields half-edges a->b, b->c, c->a linked by
        ``next`` and owned by one new face. A dict keyed by the ordered
        (origin, destination) pair finds the opposite half-edge in O(1).

        Defects do not abort the build: a directed edge used by more than one
        face is counted in ``duplicate_half_edges`` and left unpaired beyond
        its first match; triangles with a repeated vertex are skipped and
        counted in ``skipped_faces``.

        Args:
            vertices: (N, 3) vertex positions
            triangles: (M, 3) vertex indices

        Raises:
            ValueError: If the arrays are mis-shaped or indices are out of range
        """
        positions = np.asarray(vertices, dtype=np.float64)
        if positions.size == 0:
            positions = positions.reshape(0, 3)
        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError(f"Vertices must be Nx3, got shape {positions.shape}")

        tris = np.asarray(triangles, dtype=np.int64)
        if tris.size == 0:
            tris = tris.reshape(0, 3)
        if tris.ndim != 2 or tris.shape[1] != 3:
            raise ValueError(f"Triangles must be Mx3, got shape {tris.shape}")

        n_verts = len(positions)
        if tris.size and (tris.min() < 0 or tris.max() >= n_verts):
            raise ValueError(f"Triangle indices out of range for {n_verts} vertices")

        vertex_edge = [NO_INDEX] * n_verts
        edge_origin: list[int] = []
        edge_pair: list[int] = []
        edge_next: list[int] = []
        edge_face: list[int] = []
        face_edge: list[int] = []

        lookup: dict[tuple[int, int], int] = {}
        duplicates = 0
        skipped = 0

        for tri in tris.tolist():
            if len(set(tri)) < 3:
                skipped += 1
                continue

            face = len(face_edge)
            base = len(edge_origin)
            face_edge.append(base)

            for i in range(3):
                a, b = tri[i], tri[(i + 1) % 3]
                e = base + i
                edge_origin.append(a)
                edge_next.append(base + (i + 1) % 3)
                edge_face.append(face)
                edge_pair.append(NO_INDEX)

                if vertex_edge[a] == NO_INDEX:
                    vertex_edge[a] = e

                if (a, b) in lookup:
                    duplicates += 1
                else:
                    lookup[(a, b)] = e

                twin = lookup.get((b, a))
                if twin is not None and edge_pair[twin] == NO_INDEX:
                    edge_pair[twin] = e
                    edge_pair[e] = twin

        if duplicates:
            logger.warning(f"{duplicates} directed edges are shared by more than one face (non-manifold)")
        if skipped:
            logger.warning(f"Skipped {skipped} degenerate triangles")

        mesh = cls(
            positions,
            vertex_edge,
            edge_origin,
            edge_pair,
            edge_next,
            edge_face,
            face_edge,
            duplicate_half_edges=duplicates,
            skipped_faces=skipped,
            name=name,
        )
        logger.debug(
            f"Built half-edge mesh: {mesh.num_vertices} vertices, {mesh.num_half_edges} half-edges, "
            f"{mesh.num_faces} faces, {mesh.num_boundary_half_edges} unpaired"
        )
        return mesh

    @classmethod
    def tetrahedron(
        cls,
        p0: Sequence[float],
        p1: Sequence[float],
        p2: Sequence[float],
        p3: Sequence[float],
    ) -> HalfEdgeMesh:
        """Closed tetrahedron with outward-facing triangles."""
        pts = np.asarray([p0, p1, p2, p3], dtype=np.float64)
        faces = np.array([[0, 2, 1], [0, 1, 3], [0, 3, 2], [1, 2, 3]], dtype=np.int64)
        volume = np.linalg.det(np.stack([pts[1] - pts[0], pts[2] - pts[0], pts[3] - pts[0]]))
        if abs(volume) < 1e-12:
            raise ValueError("Tetrahedron points are coplanar")
        if volume < 0:
            faces = faces[:, ::-1]
        return cls.from_triangles(pts, faces, name="tetrahedron")

    # ------------------------------------------------------------------
    # Element access

    @property
    def positions(self) -> np.ndarray:
        return self._positions

    @property
    def num_vertices(self) -> int:
        return len(self._positions)

    @property
    def num_half_edges(self) -> int:
        return len(self._edge_origin)

    @property
    def num_faces(self) -> int:
        return len(self._face_edge)

    @property
    def num_boundary_half_edges(self) -> int:
        return int(np.sum(self._edge_pair == NO_INDEX))

    @property
    def num_edges(self) -> int:
        """Number of undirected edges (paired half-edges count once)."""
        paired = int(np.sum(self._edge_pair != NO_INDEX))
        return paired // 2 + self.num_boundary_half_edges

    @property
    def euler_characteristic(self) -> int:
        return self.num_vertices - self.num_edges + self.num_faces

    @property
    def is_closed(self) -> bool:
        """True when every half-edge has a pair."""
        return self.num_boundary_half_edges == 0

    @property
    def is_empty(self) -> bool:
        return self.num_faces == 0

    def position(self, v: int) -> np.ndarray:
        return self._positions[v]

    def vertex_half_edge(self, v: int) -> Optional[int]:
        """Traversal seed: the first outgoing half-edge discovered for ``v``."""
        e = int(self._vertex_edge[v])
        return None if e == NO_INDEX else e

    def origin(self, e: int) -> int:
        return int(self._edge_origin[e])

    def destination(self, e: int) -> int:
        return int(self._edge_origin[self._edge_next[e]])

    def pair(self, e: int) -> Optional[int]:
        p = int(self._edge_pair[e])
        return None if p == NO_INDEX else p

    def next(self, e: int) -> int:
        return int(self._edge_next[e])

    def prev(self, e: int) -> int:
        """Half-edge whose ``next`` is ``e``."""
        prev = e
        for _ in range(self.num_half_edges):
            n = int(self._edge_next[prev])
            if n == e:
                return prev
            prev = n
        raise TopologyError(f"Half-edge {e} is not part of a closed face cycle")

    def face(self, e: int) -> int:
        return int(self._edge_face[e])

    def face_half_edge(self, f: int) -> int:
        return int(self._face_edge[f])

    def face_half_edges(self, f: int) -> Iterator[int]:
        """Walk the ``next`` cycle of face ``f``."""
        start = self.face_half_edge(f)
        e = start
        for _ in range(self.num_half_edges):
            yield e
            e = int(self._edge_next[e])
            if e == start:
                return
        raise TopologyError(f"Face {f} boundary does not close")

    def face_vertices(self, f: int) -> list[int]:
        return [int(self._edge_origin[e]) for e in self.face_half_edges(f)]

    def outgoing_half_edges(self, v: int) -> list[int]:
        """
        Half-edges leaving ``v`` reachable by rotating around it.

        Rotation crosses faces through paired edges only, so for a vertex on
        a boundary the fan is walked in both directions from the seed. On a
        non-manifold vertex the result covers a single fan.
        """
        start = self.vertex_half_edge(v)
        if start is None:
            return []

        fan = [start]
        e = start
        closed = False
        for _ in range(self.num_half_edges):
            p = self.pair(e)
            if p is None:
                break
            e = self.next(p)
            if e == start:
                closed = True
                break
            fan.append(e)

        if not closed:
            e = start
            for _ in range(self.num_half_edges):
                p = self.pair(self.prev(e))
                if p is None or p == start:
                    break
                e = p
                fan.insert(0, e)

        return fan

    def neighbors(self, v: int) -> list[int]:
        """Vertices adjacent to ``v`` in its fan, in rotation order."""
        fan = self.outgoing_half_edges(v)
        result = [self.destination(e) for e in fan]
        if fan:
            incoming = self.prev(fan[0])
            if self.pair(incoming) is None:
                result.insert(0, self.origin(incoming))
        return result

    def vertex_degree_counts(self) -> np.ndarray:
        """Number of half-edges originating at each vertex."""
        return np.bincount(self._edge_origin, minlength=self.num_vertices)

    # ------------------------------------------------------------------
    # Query surface for renderers

    def vertices(self) -> Iterator[tuple[int, np.ndarray]]:
        """Iterate (id, position) in creation order."""
        for i in range(self.num_vertices):
            yield i, self._positions[i]

    def edges(self, include_boundary: bool = False) -> np.ndarray:
        """
        Wireframe segments, one per half-edge in creation order.

        Paired half-edges emit (origin, pair origin), so each interior edge
        appears twice, once per direction. Unpaired half-edges are skipped
        unless ``include_boundary`` is set, in which case they emit
        (origin, destination). Use :meth:`boundary_half_edges` to flag them.
        """
        if self.num_half_edges == 0:
            return np.zeros((0, 2), dtype=np.int64)

        dest = self._edge_origin[self._edge_next]
        segments = np.stack([self._edge_origin, dest], axis=1)
        if include_boundary:
            return segments
        return segments[self._edge_pair != NO_INDEX]

    def unique_edges(self) -> np.ndarray:
        """Each undirected edge once, as (origin, destination) of its lower half-edge."""
        if self.num_half_edges == 0:
            return np.zeros((0, 2), dtype=np.int64)

        idx = np.arange(self.num_half_edges)
        keep = (self._edge_pair == NO_INDEX) | (idx < self._edge_pair)
        dest = self._edge_origin[self._edge_next]
        return np.stack([self._edge_origin[keep], dest[keep]], axis=1)

    def boundary_half_edges(self) -> list[int]:
        """Half-edges without a pair (boundary or non-manifold edges)."""
        return [int(e) for e in np.flatnonzero(self._edge_pair == NO_INDEX)]

    def triangles(self) -> np.ndarray:
        """
        Vertex index triples for every face, in face creation order.

        Faces are recovered by walking ``next``; any face with more than three
        sides is fan-triangulated from its first vertex.
        """
        if self.num_faces == 0:
            return np.zeros((0, 3), dtype=np.int64)

        e0 = self._face_edge
        e1 = self._edge_next[e0]
        e2 = self._edge_next[e1]
        if np.all(self._edge_next[e2] == e0):
            return np.stack(
                [self._edge_origin[e0], self._edge_origin[e1], self._edge_origin[e2]], axis=1
            )

        tris = []
        for f in range(self.num_faces):
            verts = self.face_vertices(f)
            for i in range(1, len(verts) - 1):
                tris.append([verts[0], verts[i], verts[i + 1]])
        return np.asarray(tris, dtype=np.int64).reshape(-1, 3)

    def to_mesh(self) -> Mesh:
        return Mesh(vertices=self._positions.copy(), faces=self.triangles(), name=self.name)

    def to_payload(self) -> RenderPayload:
        """Package positions, wireframe lines and triangles for display."""
        return RenderPayload(
            positions=self._positions.astype(np.float32),
            lines=self.edges().astype(np.uint32),
            triangles=self.triangles().astype(np.uint32),
        )

    # ------------------------------------------------------------------
    # Invariants

    def validate(self) -> None:
        """
        Check structural invariants.

        Raises:
            TopologyError: If a pair is not mutual or does not run opposite,
                a face cycle does not close, or a vertex seed does not start
                at its vertex.
        """
        n = self.num_half_edges
        idx = np.arange(n)

        paired = self._edge_pair != NO_INDEX
        if np.any(self._edge_pair[self._edge_pair[paired]] != idx[paired]):
            raise TopologyError("Half-edge pairs are not mutual")

        dest = self._edge_origin[self._edge_next]
        if np.any(self._edge_origin[self._edge_pair[paired]] != dest[paired]):
            raise TopologyError("Paired half-edges do not run in opposite directions")

        for f in range(self.num_faces):
            for e in self.face_half_edges(f):
                if self._edge_face[e] != f:
                    raise TopologyError(f"Half-edge {e} in cycle of face {f} belongs to face {self._edge_face[e]}")

        seeded = self._vertex_edge != NO_INDEX
        if np.any(self._edge_origin[self._vertex_edge[seeded]] != np.flatnonzero(seeded)):
            raise TopologyError("Vertex seed half-edge does not originate at its vertex")

    def __repr__(self) -> str:
        return (
            f"HalfEdgeMesh('{self.name}', {self.num_vertices} verts, {self.num_edges} edges, "
            f"{self.num_faces} faces, {self.num_boundary_half_edges} unpaired)"
        )
