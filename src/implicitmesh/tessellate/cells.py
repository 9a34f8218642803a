"""
Per-cell marching tetrahedra.

Each lattice cell is split into six tetrahedra that share the body diagonal
from corner (0,0,0) to corner (1,1,1). A cell reads 19 crossing slots from
the lattice: the 7 edges owned by its own lower corner plus 12 positive-
direction edges owned by neighbouring corners. The 18 triangular faces of
the decomposition turn into line segments where exactly two of their three
edges carry a crossing, and the four faces of each tetrahedron chain into a
closed polygon loop which is then triangulated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence, Union
import logging
import numpy as np

from implicitmesh.core.errors import ConfigurationError, LoopAssemblyError
from implicitmesh.core.mesh import Mesh
from implicitmesh.tessellate.sampler import (
    NO_CROSSING, EdgeCrossings, X, Y, Z, XY, YZ, XZ, XYZ,
)
from implicitmesh.utils.timing import ProgressTimer

logger = logging.getLogger("implicitmesh.tessellate.cells")

# (corner offset, direction) feeding each crossing slot of a cell.
CELL_SLOTS: tuple[tuple[tuple[int, int, int], int], ...] = (
    ((0, 0, 0), X),
    ((0, 0, 0), Y),
    ((0, 0, 0), Z),
    ((0, 0, 0), XY),
    ((0, 0, 0), YZ),
    ((0, 0, 0), XZ),
    ((0, 0, 0), XYZ),
    ((1, 0, 0), Y),
    ((1, 0, 0), Z),
    ((1, 0, 0), YZ),
    ((0, 1, 0), X),
    ((0, 1, 0), Z),
    ((0, 1, 0), XZ),
    ((0, 0, 1), X),
    ((0, 0, 1), Y),
    ((0, 0, 1), XY),
    ((1, 1, 0), Z),
    ((0, 1, 1), X),
    ((1, 0, 1), Y),
)

# Slots forming the three sides of each triangular face of the decomposition.
FACE_SLOTS: tuple[tuple[int, int, int], ...] = (
    (4, 6, 17),
    (1, 6, 12),
    (3, 6, 16),
    (0, 6, 9),
    (5, 6, 18),
    (2, 6, 15),
    (2, 4, 14),
    (1, 4, 11),
    (11, 12, 17),
    (10, 12, 16),
    (7, 9, 16),
    (8, 9, 18),
    (0, 5, 8),
    (2, 5, 13),
    (1, 3, 10),
    (0, 3, 7),
    (14, 15, 17),
    (13, 15, 18),
)

# Faces bounding each of the six tetrahedra.
BODY_FACES: tuple[tuple[int, int, int, int], ...] = (
    (0, 5, 6, 16),
    (0, 1, 7, 8),
    (1, 2, 9, 14),
    (2, 3, 10, 15),
    (3, 4, 11, 12),
    (4, 5, 13, 17),
)

# Cell corners of each tetrahedron, matching BODY_FACES.
BODY_CORNERS = np.array(
    [
        [[0, 0, 0], [0, 0, 1], [0, 1, 1], [1, 1, 1]],
        [[0, 0, 0], [0, 1, 0], [0, 1, 1], [1, 1, 1]],
        [[0, 0, 0], [0, 1, 0], [1, 1, 0], [1, 1, 1]],
        [[0, 0, 0], [1, 0, 0], [1, 1, 0], [1, 1, 1]],
        [[0, 0, 0], [1, 0, 0], [1, 0, 1], [1, 1, 1]],
        [[0, 0, 0], [0, 0, 1], [1, 0, 1], [1, 1, 1]],
    ],
    dtype=np.int64,
)


class LoopPolicy(str, Enum):
    """How loops that are not closed triangles or quads are handled."""
    REJECT = "reject"  # drop the loop, count it
    FAN = "fan"        # fan triangulation from the first vertex
    CHUNK = "chunk"    # consecutive vertex triples, incomplete tail dropped
    ERROR = "error"    # raise LoopAssemblyError

    @classmethod
    def parse(cls, value: Union[str, LoopPolicy]) -> LoopPolicy:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            available = ", ".join(p.value for p in cls)
            raise ConfigurationError(f"Unknown loop policy: {value}. Available: {available}") from None


def assemble_loop(segments: Sequence[tuple[int, int]]) -> tuple[list[int], bool]:
    """
    Chain undirected segments into an ordered vertex loop.

    Starts from the first segment and repeatedly extends the tail with an
    unused segment that shares the tail vertex, until nothing extends it or
    the head vertex comes back round. The closing repeat of the head is not
    included in the result.

    Returns:
        (vertices, closed)
    """
    if not segments:
        return [], False

    head, tail = segments[0]
    loop = [head, tail]
    remaining = list(segments[1:])

    while remaining:
        for idx, (a, b) in enumerate(remaining):
            if a == tail:
                step = b
                break
            if b == tail:
                step = a
                break
        else:
            break

        remaining.pop(idx)
        if step == head:
            return loop, True
        loop.append(step)
        tail = step

    return loop, False


def triangulate_loop(
    loop: Sequence[int],
    closed: bool = True,
    policy: Union[str, LoopPolicy] = LoopPolicy.REJECT,
) -> list[tuple[int, int, int]]:
    """
    Split an ordered vertex loop into triangles.

    A closed triangle is emitted as is. A closed quad (v0, v1, v2, v3) is
    always cut along v0-v3 into (v0, v1, v3) and (v1, v2, v3). Anything else
    (longer loops, open chains) is handled according to ``policy``.
    """
    policy = LoopPolicy.parse(policy)
    loop = list(loop)

    if closed and len(loop) == 3:
        return [(loop[0], loop[1], loop[2])]
    if closed and len(loop) == 4:
        v0, v1, v2, v3 = loop
        return [(v0, v1, v3), (v1, v2, v3)]

    if policy is LoopPolicy.REJECT:
        return []
    if policy is LoopPolicy.ERROR:
        state = "closed" if closed else "open"
        raise LoopAssemblyError(
            f"Cannot triangulate {state} loop of {len(loop)} vertices: {loop}",
            loop=tuple(loop),
            closed=closed,
        )
    if policy is LoopPolicy.FAN:
        return [(loop[0], loop[i], loop[i + 1]) for i in range(1, len(loop) - 1)]
    return [tuple(loop[i:i + 3]) for i in range(0, len(loop) - 2, 3)]


def gather_cell_slots(crossings: EdgeCrossings) -> np.ndarray:
    """Crossing ids of every cell's 19 slots, shape (n, n, n, 19)."""
    n = int(crossings.lattice.split)
    ids = crossings.ids
    slots = np.empty((n, n, n, len(CELL_SLOTS)), dtype=np.int64)
    for s, ((ox, oy, oz), d) in enumerate(CELL_SLOTS):
        slots[..., s] = ids[ox:ox + n, oy:oy + n, oz:oz + n, d]
    return slots


def cell_segments(cell_slots: Sequence[int]) -> list:
    """
    Reduce each of the 18 faces to a segment between its two crossings.

    Faces with any other number of crossings give ``None``.
    """
    segments = []
    for a, b, c in FACE_SLOTS:
        present = [v for v in (cell_slots[a], cell_slots[b], cell_slots[c]) if v != NO_CROSSING]
        segments.append((present[0], present[1]) if len(present) == 2 else None)
    return segments


@dataclass
class TessellationStats:
    """Counters collected while tessellating cells."""
    cells: int = 0
    active_cells: int = 0
    loops: int = 0
    triangles: int = 0
    irregular_loops: int = 0
    open_loops: int = 0

    def to_dict(self) -> dict:
        return {
            "cells": self.cells,
            "active_cells": self.active_cells,
            "loops": self.loops,
            "triangles": self.triangles,
            "irregular_loops": self.irregular_loops,
            "open_loops": self.open_loops,
        }


@dataclass
class TessellationResult:
    """Triangle soup produced from a set of edge crossings."""
    mesh: Mesh
    stats: TessellationStats = field(default_factory=TessellationStats)


class CellTessellator:
    """
    Turn lattice edge crossings into a triangle soup.

    Args:
        policy: Handling of loops that are not closed triangles or quads
        orient: Wind every loop so its normal points towards positive field
            values. Adjacent loops then traverse shared edges in opposite
            directions, which the half-edge builder needs to pair them.
    """

    def __init__(self, policy: Union[str, LoopPolicy] = LoopPolicy.REJECT, orient: bool = True):
        self.policy = LoopPolicy.parse(policy)
        self.orient = orient

    def tessellate(self, crossings: EdgeCrossings, name: str = "implicit") -> TessellationResult:
        stats = TessellationStats(cells=crossings.lattice.num_cells)
        triangles: list[tuple[int, int, int]] = []

        if crossings.num_vertices == 0:
            mesh = Mesh(vertices=crossings.vertices, faces=np.zeros((0, 3), dtype=np.int64), name=name)
            return TessellationResult(mesh=mesh, stats=stats)

        slots = gather_cell_slots(crossings)
        active = np.argwhere(np.any(slots != NO_CROSSING, axis=-1))
        stats.active_cells = len(active)
        midpoints = crossings.edge_midpoints()

        progress = ProgressTimer(len(active), operation_name="Cell tessellation")
        for x, y, z in active.tolist():
            segments = cell_segments(slots[x, y, z].tolist())

            for body, faces in enumerate(BODY_FACES):
                body_segments = [segments[f] for f in faces if segments[f] is not None]
                if len(body_segments) < 3:
                    continue

                loop, closed = assemble_loop(body_segments)
                stats.loops += 1
                if not closed:
                    stats.open_loops += 1
                elif len(loop) not in (3, 4):
                    stats.irregular_loops += 1

                if self.orient and closed and len(loop) >= 3:
                    loop = self._orient_loop(loop, (x, y, z), body, crossings.values, midpoints)

                triangles.extend(triangulate_loop(loop, closed=closed, policy=self.policy))
            progress.update()
        progress.finish()

        stats.triangles = len(triangles)
        if stats.open_loops or stats.irregular_loops:
            logger.warning(
                f"{stats.open_loops} open and {stats.irregular_loops} irregular loops "
                f"handled with policy '{self.policy.value}'"
            )
        logger.debug(
            f"Tessellated {stats.active_cells}/{stats.cells} active cells into {stats.triangles} triangles"
        )

        faces = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
        mesh = Mesh(vertices=crossings.vertices, faces=faces, name=name)
        return TessellationResult(mesh=mesh, stats=stats)

    @staticmethod
    def _orient_loop(
        loop: list[int],
        cell: tuple[int, int, int],
        body: int,
        values: np.ndarray,
        midpoints: np.ndarray,
    ) -> list[int]:
        """
        Reverse ``loop`` if its winding normal points towards negative values.

        The loop normal is taken from the lattice-edge midpoints of its
        crossings rather than the interpolated positions, so nearly coincident
        crossings cannot flip it.
        """
        pts = midpoints[loop]
        normal = np.cross(pts, np.roll(pts, -1, axis=0)).sum(axis=0)

        corners = BODY_CORNERS[body] + np.asarray(cell, dtype=np.int64)
        vals = values[corners[:, 0], corners[:, 1], corners[:, 2]]
        towards_positive = corners[vals > 0].mean(axis=0) - corners[vals < 0].mean(axis=0)

        if float(np.dot(normal, towards_positive)) < 0.0:
            return loop[::-1]
        return loop
