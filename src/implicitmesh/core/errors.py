"""
Exception hierarchy for implicitmesh.

Configuration problems subclass ValueError so callers that already guard
numeric input with ``except ValueError`` keep working.
"""

from __future__ import annotations


class ImplicitMeshError(Exception):
    """Base class for all implicitmesh errors."""
    pass


class ConfigurationError(ImplicitMeshError, ValueError):
    """Raised for invalid tessellation settings (split, range, policy, field name)."""
    pass


class FieldEvaluationError(ImplicitMeshError):
    """Raised when a scalar field raises, or returns non-finite or mis-shaped values."""
    pass


class LoopAssemblyError(ImplicitMeshError):
    """Raised when a cell produces a polygon loop that cannot be triangulated."""

    def __init__(self, message: str, loop: tuple[int, ...] = (), closed: bool = True):
        super().__init__(message)
        self.loop = tuple(loop)
        self.closed = closed


class TopologyError(ImplicitMeshError):
    """Raised when a half-edge mesh violates a structural invariant."""
    pass
