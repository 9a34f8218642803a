"""Lattice sampling and per-cell marching tetrahedra."""

from implicitmesh.tessellate.sampler import (
    Lattice,
    EdgeCrossings,
    GridSampler,
    EDGE_DIRECTIONS,
    NO_CROSSING,
)
from implicitmesh.tessellate.cells import (
    CellTessellator,
    TessellationResult,
    TessellationStats,
    LoopPolicy,
    assemble_loop,
    triangulate_loop,
)

__all__ = [
    "Lattice",
    "EdgeCrossings",
    "GridSampler",
    "EDGE_DIRECTIONS",
    "NO_CROSSING",
    "CellTessellator",
    "TessellationResult",
    "TessellationStats",
    "LoopPolicy",
    "assemble_loop",
    "triangulate_loop",
]
