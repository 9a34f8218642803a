"""
implicitmesh: Implicit Surface Tessellation

Marching-tetrahedra extraction of scalar-field level-sets into half-edge meshes.
"""

__version__ = "0.1.0"

# Suppress trimesh's verbose logs by default
import logging
logging.getLogger("trimesh").setLevel(logging.WARNING)

from implicitmesh.core.mesh import Mesh
from implicitmesh.core.fields import ScalarField, get_field
from implicitmesh.core.halfedge import HalfEdgeMesh, RenderPayload
from implicitmesh.core.io import load_mesh, save_mesh
from implicitmesh.pipeline import TessellationPipeline, tessellate

__all__ = [
    "Mesh",
    "ScalarField",
    "get_field",
    "HalfEdgeMesh",
    "RenderPayload",
    "TessellationPipeline",
    "tessellate",
    "load_mesh",
    "save_mesh",
    "__version__",
]
