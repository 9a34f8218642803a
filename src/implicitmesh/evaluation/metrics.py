"""
Tessellation quality metrics.

Two views of a tessellated surface:
- topology: counts, Euler characteristic, boundaries, components, genus
- field residual: how far the output vertices sit from the zero level-set
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

import numpy as np

from implicitmesh.core.fields import ScalarField
from implicitmesh.core.halfedge import HalfEdgeMesh
from implicitmesh.evaluation.manifold import check_manifold, ManifoldTestResult

logger = logging.getLogger("implicitmesh.evaluation.metrics")


@dataclass
class TopologyMetrics:
    """Metrics about mesh topology."""
    num_vertices: int
    num_edges: int
    num_faces: int
    euler_characteristic: int
    num_boundary_edges: int
    num_boundaries: int
    num_components: int
    num_isolated_vertices: int
    is_closed: bool
    is_manifold: bool
    genus: int

    def to_dict(self) -> dict:
        return {
            "num_vertices": self.num_vertices,
            "num_edges": self.num_edges,
            "num_faces": self.num_faces,
            "euler_characteristic": self.euler_characteristic,
            "num_boundary_edges": self.num_boundary_edges,
            "num_boundaries": self.num_boundaries,
            "num_components": self.num_components,
            "num_isolated_vertices": self.num_isolated_vertices,
            "is_closed": self.is_closed,
            "is_manifold": self.is_manifold,
            "genus": self.genus,
        }


@dataclass
class FieldResidualMetrics:
    """Absolute field value at the output vertices (zero on the exact surface)."""
    max_abs: float
    mean_abs: float
    rms: float

    def to_dict(self) -> dict:
        return {
            "max_abs": self.max_abs,
            "mean_abs": self.mean_abs,
            "rms": self.rms,
        }


@dataclass
class TessellationReport:
    """Combined evaluation of one tessellation."""
    topology: TopologyMetrics
    manifold: ManifoldTestResult
    residual: Optional[FieldResidualMetrics] = None
    signed_volume: float = 0.0

    def summary(self) -> str:
        """Return human-readable summary."""
        t = self.topology
        lines = [
            "=== Tessellation Report ===",
            f"  Vertices:        {t.num_vertices}",
            f"  Edges:           {t.num_edges}",
            f"  Faces:           {t.num_faces}",
            f"  Euler (V-E+F):   {t.euler_characteristic}",
            f"  Components:      {t.num_components}",
            f"  Genus:           {t.genus}",
            f"  Closed:          {t.is_closed} ({t.num_boundary_edges} boundary edges, {t.num_boundaries} loops)",
            f"  Manifold:        {t.is_manifold}",
            f"  Signed volume:   {self.signed_volume:.6f}",
        ]
        if self.residual is not None:
            lines.extend([
                f"  Field residual:  max {self.residual.max_abs:.3e}, mean {self.residual.mean_abs:.3e}",
            ])
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "topology": self.topology.to_dict(),
            "manifold": self.manifold.to_dict(),
            "residual": self.residual.to_dict() if self.residual else None,
            "signed_volume": self.signed_volume,
        }


class _DisjointSet:
    def __init__(self, n: int):
        self.parent = list(range(n))

    def find(self, i: int) -> int:
        while self.parent[i] != i:
            self.parent[i] = self.parent[self.parent[i]]
            i = self.parent[i]
        return i

    def union(self, a: int, b: int) -> None:
        ra, rb = self.find(a), self.find(b)
        if ra != rb:
            self.parent[rb] = ra

    def count(self, items) -> int:
        return len({self.find(i) for i in items})


def count_components(mesh: HalfEdgeMesh) -> int:
    """Connected groups of faces, joined across paired half-edges."""
    if mesh.num_faces == 0:
        return 0
    ds = _DisjointSet(mesh.num_faces)
    for e in range(mesh.num_half_edges):
        p = mesh.pair(e)
        if p is not None:
            ds.union(mesh.face(e), mesh.face(p))
    return ds.count(range(mesh.num_faces))


def count_boundary_loops(mesh: HalfEdgeMesh) -> int:
    """Connected groups of boundary edges."""
    boundary = mesh.boundary_half_edges()
    if not boundary:
        return 0
    ds = _DisjointSet(mesh.num_vertices)
    touched = set()
    for e in boundary:
        a, b = mesh.origin(e), mesh.destination(e)
        ds.union(a, b)
        touched.update((a, b))
    return ds.count(touched)


def compute_topology(mesh: HalfEdgeMesh, manifold: Optional[ManifoldTestResult] = None) -> TopologyMetrics:
    """Topology metrics of a half-edge mesh."""
    manifold = manifold or check_manifold(mesh)

    euler = mesh.euler_characteristic
    n_components = count_components(mesh)
    n_boundaries = count_boundary_loops(mesh)
    n_isolated = manifold.num_isolated_vertices

    # chi = sum over components of (2 - 2g - b); isolated vertices add 1 each
    genus = max(0, (2 * n_components - (euler - n_isolated) - n_boundaries) // 2)

    return TopologyMetrics(
        num_vertices=mesh.num_vertices,
        num_edges=mesh.num_edges,
        num_faces=mesh.num_faces,
        euler_characteristic=euler,
        num_boundary_edges=mesh.num_boundary_half_edges,
        num_boundaries=n_boundaries,
        num_components=n_components,
        num_isolated_vertices=n_isolated,
        is_closed=mesh.is_closed,
        is_manifold=manifold.is_manifold,
        genus=genus,
    )


def compute_field_residual(mesh: HalfEdgeMesh, field: ScalarField) -> FieldResidualMetrics:
    """Field values at the mesh vertices."""
    if mesh.num_vertices == 0:
        return FieldResidualMetrics(max_abs=0.0, mean_abs=0.0, rms=0.0)
    values = np.abs(field.evaluate(mesh.positions))
    return FieldResidualMetrics(
        max_abs=float(np.max(values)),
        mean_abs=float(np.mean(values)),
        rms=float(np.sqrt(np.mean(values ** 2))),
    )


def evaluate_tessellation(mesh: HalfEdgeMesh, field: Optional[ScalarField] = None) -> TessellationReport:
    """
    Evaluate a tessellated surface.

    Args:
        mesh: Half-edge mesh to evaluate
        field: Source field; enables the residual metrics when given

    Returns:
        TessellationReport with topology, manifold and residual metrics
    """
    start_time = time.perf_counter()

    manifold = check_manifold(mesh)
    topology = compute_topology(mesh, manifold)
    residual = compute_field_residual(mesh, field) if field is not None else None

    report = TessellationReport(
        topology=topology,
        manifold=manifold,
        residual=residual,
        signed_volume=mesh.to_mesh().signed_volume(),
    )

    logger.info(
        f"Evaluation complete in {time.perf_counter() - start_time:.2f}s: "
        f"chi={topology.euler_characteristic}, closed={topology.is_closed}"
    )
    return report
