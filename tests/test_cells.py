"""
Per-cell tessellation tests.

Covers the decomposition tables, loop assembly, loop triangulation and the
tessellator on single-cell lattices.
"""

import pytest
import numpy as np

from implicitmesh.core.errors import ConfigurationError, LoopAssemblyError
from implicitmesh.core.fields import ScalarField, plane_field
from implicitmesh.tessellate.cells import (
    BODY_CORNERS, BODY_FACES, CELL_SLOTS, FACE_SLOTS,
    CellTessellator, LoopPolicy,
    assemble_loop, cell_segments, gather_cell_slots, triangulate_loop,
)
from implicitmesh.tessellate.sampler import (
    EDGE_DIRECTIONS, NO_CROSSING, GridSampler, Lattice,
)


def slot_edge(slot):
    """The two cell corners joined by the lattice edge behind a slot."""
    offset, direction = CELL_SLOTS[slot]
    start = tuple(offset)
    end = tuple(int(c) for c in np.add(offset, EDGE_DIRECTIONS[direction]))
    return start, end


def corner_field(value_at_origin=-1.0):
    """Negative only near the (0, 0, 0) corner of a [-1, 1]^3 single cell."""
    return ScalarField(
        lambda p: np.linalg.norm(p + 1.0, axis=1) + value_at_origin,
        name="corner",
        vectorized=True,
    )


class TestTables:
    """Test the decomposition lookup tables."""

    def test_table_sizes(self):
        """19 slots, 18 faces, 6 bodies of 4 faces."""
        assert len(CELL_SLOTS) == 19
        assert len(FACE_SLOTS) == 18
        assert len(BODY_FACES) == 6
        assert all(len(faces) == 4 for faces in BODY_FACES)

    def test_slots_stay_inside_cell(self):
        """Every slot edge joins two corners of the unit cell."""
        for slot in range(19):
            start, end = slot_edge(slot)
            assert all(c in (0, 1) for c in start + end)

    def test_faces_are_triangles(self):
        """The three slots of a face are the sides of one triangle."""
        for face in FACE_SLOTS:
            corners = set()
            sides = set()
            for slot in face:
                start, end = slot_edge(slot)
                corners.update((start, end))
                sides.add(frozenset((start, end)))
            assert len(corners) == 3
            assert len(sides) == 3

    def test_bodies_match_corners(self):
        """The four faces of a body are the faces of its tetrahedron."""
        for body, faces in enumerate(BODY_FACES):
            expected = {tuple(c) for c in BODY_CORNERS[body].tolist()}
            seen = []
            for f in faces:
                corners = set()
                for slot in FACE_SLOTS[f]:
                    corners.update(slot_edge(slot))
                assert corners <= expected
                seen.append(frozenset(corners))
            assert len(set(seen)) == 4

    def test_bodies_share_diagonal(self):
        """Every tetrahedron contains the (0,0,0)-(1,1,1) diagonal."""
        for corners in BODY_CORNERS.tolist():
            assert [0, 0, 0] in corners
            assert [1, 1, 1] in corners

    def test_interior_faces_shared(self):
        """Faces on the diagonal belong to two bodies, cell-boundary faces to one."""
        counts = np.bincount(np.asarray(BODY_FACES).reshape(-1), minlength=18)
        for f, slots in enumerate(FACE_SLOTS):
            assert counts[f] == (2 if 6 in slots else 1)


class TestAssembleLoop:
    """Test chaining segments into loops."""

    def test_triangle(self):
        """Three segments close into a triangle."""
        assert assemble_loop([(1, 2), (3, 1), (2, 3)]) == ([1, 2, 3], True)

    def test_quad(self):
        """Four segments close into a quad, starting from the first segment."""
        assert assemble_loop([(0, 1), (2, 3), (1, 2), (3, 0)]) == ([0, 1, 2, 3], True)

    def test_reversed_segments(self):
        """Segments are undirected."""
        assert assemble_loop([(1, 2), (1, 3), (3, 2)]) == ([1, 2, 3], True)

    def test_open_chain(self):
        """A chain that never returns to its head is reported open."""
        assert assemble_loop([(0, 1), (1, 2)]) == ([0, 1, 2], False)

    def test_empty(self):
        """No segments give no loop."""
        assert assemble_loop([]) == ([], False)


class TestTriangulateLoop:
    """Test loop triangulation and policies."""

    def test_triangle(self):
        """A closed triangle is emitted as is."""
        assert triangulate_loop([4, 5, 6]) == [(4, 5, 6)]

    def test_quad_split(self):
        """Quads are always cut along v0-v3."""
        assert triangulate_loop([10, 11, 12, 13]) == [(10, 11, 13), (11, 12, 13)]

    def test_reject(self):
        """Irregular loops are dropped by default."""
        assert triangulate_loop([1, 2, 3, 4, 5]) == []
        assert triangulate_loop([1, 2, 3], closed=False) == []

    def test_fan(self):
        """Fan policy triangulates from the first vertex."""
        assert triangulate_loop([1, 2, 3, 4, 5], policy="fan") == [(1, 2, 3), (1, 3, 4), (1, 4, 5)]
        assert triangulate_loop([1, 2, 3], closed=False, policy=LoopPolicy.FAN) == [(1, 2, 3)]

    def test_chunk(self):
        """Chunk policy takes consecutive triples and drops the tail."""
        assert triangulate_loop([1, 2, 3, 4, 5], policy="chunk") == [(1, 2, 3)]
        assert triangulate_loop([1, 2, 3, 4, 5, 6], policy="chunk") == [(1, 2, 3), (4, 5, 6)]

    def test_error(self):
        """Error policy raises with the offending loop attached."""
        with pytest.raises(LoopAssemblyError) as exc_info:
            triangulate_loop([1, 2, 3, 4, 5], policy="error")
        assert exc_info.value.loop == (1, 2, 3, 4, 5)
        assert exc_info.value.closed is True

    def test_parse_policy(self):
        """Policies parse case-insensitively; unknown names are rejected."""
        assert LoopPolicy.parse("FAN") is LoopPolicy.FAN
        assert LoopPolicy.parse(LoopPolicy.CHUNK) is LoopPolicy.CHUNK
        with pytest.raises(ConfigurationError):
            LoopPolicy.parse("bogus")


class TestCellSegments:
    """Test slot gathering and face segments."""

    def test_gather_single_cell(self):
        """A one-cell lattice reads its own corner's 7 edges first."""
        crossings = GridSampler(corner_field(), Lattice(half_extent=1.0, split=1)).sample()
        slots = gather_cell_slots(crossings)

        assert slots.shape == (1, 1, 1, 19)
        np.testing.assert_array_equal(slots[0, 0, 0, :7], np.arange(7))
        assert np.all(slots[0, 0, 0, 7:] == NO_CROSSING)

    def test_face_with_two_crossings(self):
        """Faces with exactly two crossings give a segment."""
        slots = [NO_CROSSING] * 19
        slots[0] = 5
        slots[3] = 6
        segments = cell_segments(slots)

        assert len(segments) == 18
        assert segments[15] == (5, 6)  # slots (0, 3, 7)
        assert segments[12] is None    # slots (0, 5, 8): one crossing
        assert segments[14] is None    # slots (1, 3, 10): one crossing

    def test_face_with_three_crossings(self):
        """Faces with three crossings give nothing."""
        slots = [NO_CROSSING] * 19
        slots[0], slots[3], slots[7] = 1, 2, 3
        assert cell_segments(slots)[15] is None


class TestCellTessellator:
    """Test tessellation of single cells."""

    def test_single_negative_corner(self):
        """One negative corner gives a fan of six triangles, one per body."""
        crossings = GridSampler(corner_field(), Lattice(half_extent=1.0, split=1)).sample()
        result = CellTessellator().tessellate(crossings)

        assert result.mesh.num_vertices == 7
        assert result.mesh.num_faces == 6
        assert result.stats.active_cells == 1
        assert result.stats.loops == 6
        assert result.stats.irregular_loops == 0
        assert result.stats.open_loops == 0

        # Every triangle uses the body-diagonal crossing
        assert np.all(np.any(result.mesh.faces == 6, axis=1))

        # Oriented towards positive values, away from the corner
        normals = result.mesh.face_normals()
        assert np.all(normals @ np.ones(3) > 0)

    def test_plane_section(self):
        """A plane through the cell gives a flat, consistently wound square."""
        crossings = GridSampler(plane_field(offset=0.0), Lattice(half_extent=1.0, split=1)).sample()
        result = CellTessellator().tessellate(crossings)
        mesh = result.mesh

        assert mesh.num_vertices == 9
        assert mesh.num_faces == 8  # four triangles + two quads
        np.testing.assert_allclose(mesh.vertices[:, 0], 0.0, atol=1e-12)

        v0 = mesh.vertices[mesh.faces[:, 0]]
        v1 = mesh.vertices[mesh.faces[:, 1]]
        v2 = mesh.vertices[mesh.faces[:, 2]]
        cross = np.cross(v1 - v0, v2 - v0)
        assert np.all(cross[:, 0] > 0)
        assert 0.5 * np.sum(np.linalg.norm(cross, axis=1)) == pytest.approx(4.0)

    def test_unoriented_keeps_all_faces(self):
        """Turning orientation off changes winding, not the face count."""
        crossings = GridSampler(plane_field(offset=0.0), Lattice(half_extent=1.0, split=1)).sample()
        result = CellTessellator(orient=False).tessellate(crossings)
        assert result.mesh.num_faces == 8

    def test_empty(self):
        """No crossings give an empty triangle list."""
        field = ScalarField(lambda p: np.ones(len(p)), vectorized=True)
        crossings = GridSampler(field, Lattice(half_extent=1.0, split=2)).sample()
        result = CellTessellator().tessellate(crossings)

        assert result.mesh.num_faces == 0
        assert result.mesh.num_vertices == 0
        assert result.stats.cells == 8
        assert result.stats.active_cells == 0
