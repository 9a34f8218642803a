"""Core mesh data structures and operations."""

from implicitmesh.core.mesh import Mesh
from implicitmesh.core.fields import ScalarField, FIELDS, get_field
from implicitmesh.core.halfedge import HalfEdgeMesh, RenderPayload, NO_INDEX

__all__ = ["Mesh", "ScalarField", "FIELDS", "get_field", "HalfEdgeMesh", "RenderPayload", "NO_INDEX"]
