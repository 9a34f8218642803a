"""
Lattice sampling and sign-crossing detection.

The field is sampled on an (n+1)^3 lattice over [-r, r]^3. Every lattice
corner owns 7 outgoing edges (3 axis steps, 3 face diagonals, 1 body
diagonal); a vertex is created on an edge when the field changes sign along
it. Because each edge is owned by its lower corner, neighbouring cells look
up the same crossing vertex instead of creating their own copy, which is what
keeps the final surface watertight.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence
import logging
import math
import numpy as np

from implicitmesh.core.errors import ConfigurationError
from implicitmesh.core.fields import ScalarField

logger = logging.getLogger("implicitmesh.tessellate.sampler")

NO_CROSSING = -1

# Canonical outgoing directions of a lattice corner, in slot order.
EDGE_DIRECTIONS = np.array(
    [
        [1, 0, 0],  # X
        [0, 1, 0],  # Y
        [0, 0, 1],  # Z
        [1, 1, 0],  # XY
        [0, 1, 1],  # YZ
        [1, 0, 1],  # XZ
        [1, 1, 1],  # XYZ
    ],
    dtype=np.int64,
)
X, Y, Z, XY, YZ, XZ, XYZ = range(7)


@dataclass(frozen=True)
class Lattice:
    """
    Regular sample grid over an axis-aligned cube.

    Attributes:
        half_extent: Cube half-size r; the lattice spans [-r, r] on every axis
        split: Number of cells per axis n; the lattice has n+1 points per axis
    """
    half_extent: float
    split: int

    def __post_init__(self):
        if isinstance(self.split, bool) or not isinstance(self.split, (int, np.integer)):
            raise ConfigurationError(f"split must be an integer, got {self.split!r}")
        if self.split < 1:
            raise ConfigurationError(f"split must be >= 1, got {self.split}")
        try:
            r = float(self.half_extent)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"half_extent must be a number, got {self.half_extent!r}") from e
        if not math.isfinite(r) or r <= 0.0:
            raise ConfigurationError(f"half_extent must be positive and finite, got {self.half_extent}")

    @property
    def grid_size(self) -> float:
        """Edge length of one cell."""
        return 2.0 * float(self.half_extent) / int(self.split)

    @property
    def shape(self) -> tuple[int, int, int]:
        n = int(self.split) + 1
        return (n, n, n)

    @property
    def num_points(self) -> int:
        return (int(self.split) + 1) ** 3

    @property
    def num_cells(self) -> int:
        return int(self.split) ** 3

    def coordinates(self, index: Sequence[float]) -> np.ndarray:
        """Position of a (possibly fractional) lattice index."""
        return np.asarray(index, dtype=np.float64) * self.grid_size - float(self.half_extent)

    def points(self) -> np.ndarray:
        """All lattice positions as an (n+1, n+1, n+1, 3) array, indexed [i, j, k]."""
        axis = np.arange(int(self.split) + 1, dtype=np.float64) * self.grid_size - float(self.half_extent)
        gx, gy, gz = np.meshgrid(axis, axis, axis, indexing="ij")
        return np.stack([gx, gy, gz], axis=-1)


@dataclass
class EdgeCrossings:
    """
    Sign crossings found on the lattice edges.

    Attributes:
        lattice: Sampled lattice
        values: (n+1, n+1, n+1) field values at the lattice corners
        ids: (n+1, n+1, n+1, 7) crossing vertex id per corner and direction,
            ``NO_CROSSING`` where the field keeps its sign
        vertices: (V, 3) crossing positions, in id order
        origins: (V, 3) lattice index of the lower corner of each crossing edge
        directions: (V,) direction slot of each crossing edge
    """
    lattice: Lattice
    values: np.ndarray
    ids: np.ndarray
    vertices: np.ndarray
    origins: np.ndarray
    directions: np.ndarray

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)

    def crossing(self, corner: Sequence[int], direction: int) -> Optional[int]:
        """Vertex id on the edge leaving ``corner`` along ``direction``, if any."""
        i, j, k = (int(c) for c in corner)
        vid = int(self.ids[i, j, k, direction])
        return None if vid == NO_CROSSING else vid

    def edge_midpoints(self) -> np.ndarray:
        """(V, 3) midpoint of each crossing's lattice edge, in lattice index units."""
        return self.origins + 0.5 * EDGE_DIRECTIONS[self.directions]


class GridSampler:
    """
    Sample a scalar field on a lattice and record sign crossings per edge.

    The field is evaluated once per lattice corner; each edge then reads
    v0 = f(p0) and v1 = f(p1) from those samples. An edge gets a vertex iff
    v0 * v1 < 0, placed at p0 + t (p1 - p0) with t = v0 / (v0 - v1). Exact
    zeros (v0 * v1 == 0) fall on the no-crossing side.
    """

    def __init__(self, field: ScalarField, lattice: Lattice):
        self.field = field
        self.lattice = lattice

    def sample_values(self) -> np.ndarray:
        """Field values at every lattice corner, shape (n+1, n+1, n+1)."""
        points = self.lattice.points()
        values = self.field.evaluate(points.reshape(-1, 3))
        return values.reshape(self.lattice.shape)

    def sample(self) -> EdgeCrossings:
        values = self.sample_values()
        n1 = int(self.lattice.split) + 1

        crossing = np.zeros(self.lattice.shape + (len(EDGE_DIRECTIONS),), dtype=bool)
        params = np.zeros(crossing.shape, dtype=np.float64)

        # Edges leaving the lattice are not lattice edges and stay empty.
        for d, (dx, dy, dz) in enumerate(EDGE_DIRECTIONS):
            v0 = values[: n1 - dx, : n1 - dy, : n1 - dz]
            v1 = values[dx:, dy:, dz:]
            mask = v0 * v1 < 0.0
            with np.errstate(divide="ignore", invalid="ignore"):
                t = np.where(mask, v0 / (v0 - v1), 0.0)
            crossing[: n1 - dx, : n1 - dy, : n1 - dz, d] = mask
            params[: n1 - dx, : n1 - dy, : n1 - dz, d] = t

        # Ids follow creation order: corner (i, j, k) major, then direction.
        flat = np.flatnonzero(crossing.reshape(-1))
        ids = np.full(crossing.shape, NO_CROSSING, dtype=np.int64)
        ids.reshape(-1)[flat] = np.arange(len(flat), dtype=np.int64)

        index = np.argwhere(crossing)
        origins = index[:, :3]
        directions = index[:, 3]
        t = params[crossing]

        p0 = self.lattice.coordinates(origins)
        p1 = self.lattice.coordinates(origins + EDGE_DIRECTIONS[directions])
        vertices = p0 + t[:, None] * (p1 - p0)

        logger.debug(
            f"Sampled {self.lattice.num_points} lattice points of field '{self.field.name}': "
            f"{len(vertices)} edge crossings"
        )

        return EdgeCrossings(
            lattice=self.lattice,
            values=values,
            ids=ids,
            vertices=vertices.reshape(-1, 3),
            origins=origins.astype(np.int64),
            directions=directions.astype(np.int64),
        )
