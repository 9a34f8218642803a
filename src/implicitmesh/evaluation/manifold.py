"""
Manifold testing on half-edge meshes.

Reports every defect that leaves a half-edge without a pair, plus vertices
whose surrounding faces do not form a single fan.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List

from implicitmesh.core.halfedge import HalfEdgeMesh

logger = logging.getLogger("implicitmesh.evaluation.manifold")


@dataclass
class ManifoldTestResult:
    """Results from manifold testing."""

    # Overall status
    is_manifold: bool

    # Vertices whose faces form more than one fan (pinch points, bowties)
    non_manifold_vertices: List[int] = field(default_factory=list)

    # Undirected edges shared by more than two faces
    non_manifold_edges: List[tuple] = field(default_factory=list)

    # Undirected edges whose two faces traverse them in the same direction
    inconsistent_edges: List[tuple] = field(default_factory=list)

    # Undirected edges with a single face - open mesh borders
    boundary_edges: List[tuple] = field(default_factory=list)

    # Vertices not used by any face
    isolated_vertices: List[int] = field(default_factory=list)

    @property
    def num_non_manifold_vertices(self) -> int:
        return len(self.non_manifold_vertices)

    @property
    def num_non_manifold_edges(self) -> int:
        return len(self.non_manifold_edges)

    @property
    def num_inconsistent_edges(self) -> int:
        return len(self.inconsistent_edges)

    @property
    def num_boundary_edges(self) -> int:
        return len(self.boundary_edges)

    @property
    def num_isolated_vertices(self) -> int:
        return len(self.isolated_vertices)

    def summary(self) -> str:
        """Return a human-readable summary."""
        status = "MANIFOLD" if self.is_manifold else "NON-MANIFOLD"
        lines = [
            f"Manifold Test: {status}",
            f"  Non-manifold vertices: {self.num_non_manifold_vertices}",
            f"  Non-manifold edges: {self.num_non_manifold_edges}",
            f"  Inconsistent edges: {self.num_inconsistent_edges}",
            f"  Boundary edges: {self.num_boundary_edges}",
            f"  Isolated vertices: {self.num_isolated_vertices}",
        ]
        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "is_manifold": self.is_manifold,
            "num_non_manifold_vertices": self.num_non_manifold_vertices,
            "num_non_manifold_edges": self.num_non_manifold_edges,
            "num_inconsistent_edges": self.num_inconsistent_edges,
            "num_boundary_edges": self.num_boundary_edges,
            "num_isolated_vertices": self.num_isolated_vertices,
            "non_manifold_vertices": self.non_manifold_vertices[:100],  # Limit for JSON
            "non_manifold_edges": [list(e) for e in self.non_manifold_edges[:100]],
            "boundary_edges": [list(e) for e in self.boundary_edges[:100]],
        }


def check_manifold(mesh: HalfEdgeMesh) -> ManifoldTestResult:
    """
    Test manifold properties of a half-edge mesh.

    Boundary edges do not make a mesh non-manifold, they just mean it is open.
    """
    directed = Counter()
    for e in range(mesh.num_half_edges):
        directed[(mesh.origin(e), mesh.destination(e))] += 1

    undirected = Counter()
    for (a, b), count in directed.items():
        undirected[(min(a, b), max(a, b))] += count

    non_manifold_edges = []
    inconsistent_edges = []
    boundary_edges = []
    for edge, count in undirected.items():
        a, b = edge
        if count > 2:
            non_manifold_edges.append(edge)
        elif count == 2 and (directed[(a, b)] == 2 or directed[(b, a)] == 2):
            inconsistent_edges.append(edge)
        elif count == 1:
            boundary_edges.append(edge)

    degree = mesh.vertex_degree_counts()
    non_manifold_vertices = []
    isolated_vertices = []
    for v in range(mesh.num_vertices):
        if degree[v] == 0:
            isolated_vertices.append(v)
            continue
        # A single fan reaches every half-edge leaving the vertex
        if len(mesh.outgoing_half_edges(v)) < degree[v]:
            non_manifold_vertices.append(v)

    is_manifold = (
        len(non_manifold_vertices) == 0 and
        len(non_manifold_edges) == 0 and
        len(inconsistent_edges) == 0
    )

    result = ManifoldTestResult(
        is_manifold=is_manifold,
        non_manifold_vertices=non_manifold_vertices,
        non_manifold_edges=sorted(non_manifold_edges),
        inconsistent_edges=sorted(inconsistent_edges),
        boundary_edges=sorted(boundary_edges),
        isolated_vertices=isolated_vertices,
    )
    if not is_manifold:
        logger.warning(result.summary())
    return result
