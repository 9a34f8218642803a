"""
Half-edge mesh tests.

Covers the builder, pairing, defect counting and the query surface.
"""

import pytest
import numpy as np

from implicitmesh.core.errors import TopologyError
from implicitmesh.core.halfedge import HalfEdgeMesh, NO_INDEX
from implicitmesh.core.mesh import Mesh


TRIANGLE = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])
QUAD = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [1.0, 1.0, 0.0]])


@pytest.fixture
def tetra():
    return HalfEdgeMesh.tetrahedron((0, 0, 0), (1, 0, 0), (0, 1, 0), (0, 0, 1))


class TestTetrahedron:
    """Test the closed tetrahedron."""

    def test_counts(self, tetra):
        """V=4, E=6, F=4."""
        assert tetra.num_vertices == 4
        assert tetra.num_half_edges == 12
        assert tetra.num_edges == 6
        assert tetra.num_faces == 4
        assert tetra.euler_characteristic == 2

    def test_closed(self, tetra):
        """Every half-edge is paired."""
        assert tetra.is_closed
        assert tetra.num_boundary_half_edges == 0
        assert tetra.boundary_half_edges() == []

    def test_pair_and_next(self, tetra):
        """pair is an involution and next cycles in three steps."""
        for e in range(tetra.num_half_edges):
            p = tetra.pair(e)
            assert p is not None
            assert tetra.pair(p) == e
            assert tetra.origin(p) == tetra.destination(e)
            assert tetra.next(tetra.next(tetra.next(e))) == e
            assert tetra.prev(tetra.next(e)) == e
            assert tetra.face(tetra.next(e)) == tetra.face(e)
        tetra.validate()

    def test_outward(self, tetra):
        """Faces wind outwards."""
        assert tetra.to_mesh().signed_volume() == pytest.approx(1.0 / 6.0)

    def test_reversed_points(self):
        """Negatively ordered points still give outward faces."""
        mesh = HalfEdgeMesh.tetrahedron((0, 0, 0), (0, 1, 0), (1, 0, 0), (0, 0, 1))
        assert mesh.to_mesh().signed_volume() == pytest.approx(1.0 / 6.0)
        assert mesh.is_closed

    def test_coplanar(self):
        """Coplanar points cannot form a tetrahedron."""
        with pytest.raises(ValueError):
            HalfEdgeMesh.tetrahedron((0, 0, 0), (1, 0, 0), (0, 1, 0), (1, 1, 0))

    def test_vertex_rotation(self, tetra):
        """Each vertex reaches all three neighbours by rotation."""
        for v in range(4):
            fan = tetra.outgoing_half_edges(v)
            assert len(fan) == 3
            assert all(tetra.origin(e) == v for e in fan)
            assert sorted(tetra.neighbors(v)) == sorted(set(range(4)) - {v})

    def test_query_surface(self, tetra):
        """Edges once per paired half-edge, unique edges once per edge."""
        edges = tetra.edges()
        assert edges.shape == (12, 2)
        assert {tuple(sorted(e)) for e in edges.tolist()} == {
            (0, 1), (0, 2), (0, 3), (1, 2), (1, 3), (2, 3)
        }
        assert tetra.unique_edges().shape == (6, 2)
        assert tetra.triangles().tolist() == [[0, 2, 1], [0, 1, 3], [0, 3, 2], [1, 2, 3]]
        assert tetra.face_vertices(0) == [0, 2, 1]


class TestBuilder:
    """Test building from triangle soups."""

    def test_single_triangle(self):
        """A lone triangle has three unpaired half-edges."""
        mesh = HalfEdgeMesh.from_triangles(TRIANGLE, [[0, 1, 2]])

        assert mesh.num_half_edges == 3
        assert mesh.num_edges == 3
        assert mesh.euler_characteristic == 1
        assert not mesh.is_closed
        assert all(mesh.pair(e) is None for e in range(3))
        assert mesh.boundary_half_edges() == [0, 1, 2]
        assert mesh.edges().shape == (0, 2)
        assert mesh.edges(include_boundary=True).tolist() == [[0, 1], [1, 2], [2, 0]]
        mesh.validate()

    def test_shared_edge(self):
        """Opposite half-edges of neighbouring triangles pair up."""
        mesh = HalfEdgeMesh.from_triangles(QUAD, [[0, 1, 2], [2, 1, 3]])

        # 1->2 is half-edge 1, 2->1 is half-edge 3
        assert mesh.pair(1) == 3
        assert mesh.pair(3) == 1
        assert mesh.num_edges == 5
        assert mesh.num_boundary_half_edges == 4
        assert mesh.edges().tolist() == [[1, 2], [2, 1]]
        assert mesh.unique_edges().shape == (5, 2)
        mesh.validate()

    def test_creation_order(self):
        """Vertices and faces come back in creation order."""
        mesh = HalfEdgeMesh.from_triangles(QUAD, [[0, 1, 2], [2, 1, 3]])

        ids = [v for v, _ in mesh.vertices()]
        assert ids == [0, 1, 2, 3]
        np.testing.assert_allclose(mesh.position(3), [1.0, 1.0, 0.0])
        assert mesh.triangles().tolist() == [[0, 1, 2], [2, 1, 3]]
        assert [mesh.origin(e) for e in range(6)] == [0, 1, 2, 2, 1, 3]

    def test_face_half_edge(self):
        """Each face starts at its first created half-edge."""
        mesh = HalfEdgeMesh.from_triangles(QUAD, [[0, 1, 2], [2, 1, 3]])

        assert mesh.face_half_edge(0) == 0
        assert mesh.face_half_edge(1) == 3
        assert list(mesh.face_half_edges(1)) == [3, 4, 5]
        assert mesh.face(mesh.face_half_edge(1)) == 1

    def test_vertex_seed(self):
        """Seed is the first outgoing half-edge; unused vertices have none."""
        verts = np.vstack([QUAD, [[5.0, 5.0, 5.0]]])
        mesh = HalfEdgeMesh.from_triangles(verts, [[0, 1, 2], [2, 1, 3]])

        assert mesh.vertex_half_edge(1) == 1
        assert mesh.vertex_half_edge(2) == 2
        assert mesh.vertex_half_edge(4) is None
        assert mesh.outgoing_half_edges(4) == []

    def test_boundary_vertex_fan(self):
        """Rotation around a boundary vertex walks both ways from the seed."""
        mesh = HalfEdgeMesh.from_triangles(QUAD, [[0, 1, 2], [2, 1, 3]])

        fan = mesh.outgoing_half_edges(1)
        assert sorted(fan) == [1, 4]
        assert sorted(mesh.neighbors(1)) == [0, 2, 3]

    def test_duplicate_directed_edge(self):
        """A directed edge used twice is counted, not overwritten."""
        verts = np.vstack([TRIANGLE, [[0.0, 0.0, 1.0]]])
        mesh = HalfEdgeMesh.from_triangles(verts, [[0, 1, 2], [0, 1, 3]])

        assert mesh.duplicate_half_edges == 1
        assert mesh.num_faces == 2
        assert mesh.num_boundary_half_edges == 6

    def test_degenerate_triangle_skipped(self):
        """Triangles with a repeated vertex are skipped and counted."""
        mesh = HalfEdgeMesh.from_triangles(TRIANGLE, [[0, 1, 1], [0, 1, 2]])
        assert mesh.skipped_faces == 1
        assert mesh.num_faces == 1
        assert mesh.triangles().tolist() == [[0, 1, 2]]

    def test_bad_input(self):
        """Mis-shaped or out-of-range input is rejected."""
        with pytest.raises(ValueError):
            HalfEdgeMesh.from_triangles(TRIANGLE, [[0, 1, 5]])
        with pytest.raises(ValueError):
            HalfEdgeMesh.from_triangles(TRIANGLE, [[0, 1]])
        with pytest.raises(ValueError):
            HalfEdgeMesh.from_triangles(np.zeros((3, 2)), [[0, 1, 2]])

    def test_from_mesh(self):
        """Building from a Mesh keeps its name and faces."""
        mesh = Mesh(vertices=QUAD, faces=[[0, 1, 2], [2, 1, 3]], name="quad")
        he = HalfEdgeMesh.from_mesh(mesh)

        assert he.name == "quad"
        np.testing.assert_array_equal(he.to_mesh().faces, mesh.faces)


class TestEmpty:
    """Test the empty mesh."""

    def test_empty(self):
        """All lists are empty."""
        mesh = HalfEdgeMesh.empty()
        assert mesh.is_empty
        assert mesh.num_vertices == 0
        assert mesh.num_edges == 0
        assert list(mesh.vertices()) == []
        assert mesh.edges().shape == (0, 2)
        assert mesh.triangles().shape == (0, 3)
        mesh.validate()

    def test_empty_from_triangles(self):
        """Empty arrays build an empty mesh."""
        mesh = HalfEdgeMesh.from_triangles(np.zeros((0, 3)), np.zeros((0, 3), dtype=int))
        assert mesh.num_faces == 0
        assert mesh.euler_characteristic == 0


class TestImmutability:
    """Test that built meshes are read-only values."""

    def test_arrays_frozen(self, tetra):
        """Positions cannot be written."""
        with pytest.raises(ValueError):
            tetra.positions[0, 0] = 5.0

    def test_input_untouched(self):
        """The caller's arrays stay writeable."""
        verts = TRIANGLE.copy()
        HalfEdgeMesh.from_triangles(verts, [[0, 1, 2]])
        assert verts.flags.writeable
        verts[0, 0] = 1.0


class TestValidate:
    """Test structural invariant checks."""

    def test_non_mutual_pair(self):
        """A one-sided pair link is reported."""
        mesh = HalfEdgeMesh(
            TRIANGLE,
            vertex_edge=[0, 1, 2],
            edge_origin=[0, 1, 2],
            edge_pair=[1, NO_INDEX, NO_INDEX],
            edge_next=[1, 2, 0],
            edge_face=[0, 0, 0],
            face_edge=[0],
        )
        with pytest.raises(TopologyError):
            mesh.validate()

    def test_wrong_seed(self):
        """A vertex seed leaving another vertex is reported."""
        mesh = HalfEdgeMesh(
            TRIANGLE,
            vertex_edge=[1, 1, 2],
            edge_origin=[0, 1, 2],
            edge_pair=[NO_INDEX] * 3,
            edge_next=[1, 2, 0],
            edge_face=[0, 0, 0],
            face_edge=[0],
        )
        with pytest.raises(TopologyError):
            mesh.validate()


class TestPayload:
    """Test the renderer hand-off."""

    def test_payload(self, tetra):
        """Payload arrays have renderer dtypes."""
        payload = tetra.to_payload()
        assert payload.positions.dtype == np.float32
        assert payload.positions.shape == (4, 3)
        assert payload.lines.dtype == np.uint32
        assert payload.lines.shape == (12, 2)
        assert payload.triangles.dtype == np.uint32
        assert payload.triangles.shape == (4, 3)
