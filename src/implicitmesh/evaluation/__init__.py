"""Evaluation and metrics modules."""

from implicitmesh.evaluation.metrics import (
    TessellationReport,
    TopologyMetrics,
    FieldResidualMetrics,
    compute_topology,
    compute_field_residual,
    evaluate_tessellation,
)
from implicitmesh.evaluation.manifold import (
    check_manifold,
    ManifoldTestResult,
)

__all__ = [
    "TessellationReport",
    "TopologyMetrics",
    "FieldResidualMetrics",
    "compute_topology",
    "compute_field_residual",
    "evaluate_tessellation",
    # Manifold testing
    "check_manifold",
    "ManifoldTestResult",
]
